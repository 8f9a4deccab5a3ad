"""Errors raised by the services layer.

Every error carries a stable ``code``; the HTTP layer maps error classes to
status codes and never inspects messages.
"""

from __future__ import annotations

from typing import Optional


class LedgerError(Exception):
    code = "error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class Unauthorized(LedgerError):
    """Authentication required"""
    code = "not_authenticated"


class Forbidden(LedgerError):
    """Insufficient permissions"""
    code = "forbidden"


class NotFound(LedgerError):
    """Resource not found"""
    code = "not_found"


class BookUnavailable(LedgerError):
    """Book is not available for borrowing"""
    code = "book_unavailable"


class AlreadyReturned(LedgerError):
    """Loan already returned"""
    code = "already_returned"


class DuplicateError(LedgerError):
    """Resource already exists"""
    code = "duplicate"


class InvalidOperation(LedgerError):
    """Invalid request"""
    code = "invalid"


class NotSupported(LedgerError):
    """Operation not supported yet"""
    code = "not_supported"


class Conflict(LedgerError):
    """Concurrent update detected, retry the request"""
    code = "conflict"


class Timeout(LedgerError):
    """Operation deadline exceeded"""
    code = "timeout"


class StoreFailure(LedgerError):
    """Storage backend failure"""
    code = "store_failure"

    def __init__(self, detail: Optional[str] = None, transient: bool = False) -> None:
        super().__init__(detail)
        self.transient = transient

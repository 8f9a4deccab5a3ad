"""Borrow/return state machine.

A loan is created ``BORROWED`` by :meth:`LoanLedger.borrow` and moves to
``RETURNED`` exactly once through :meth:`LoanLedger.return_loan`. Each
transition writes three documents (the loan, the book's availability flag and
the user's ``active_loans`` list) in one unit of work, and every update is
conditional on the version read earlier in the same unit of work. Two borrows
racing for one book therefore cannot both commit: the loser sees ``Conflict``,
is retried, re-reads the book as checked out and fails with
``BookUnavailable``.

The ledger keeps no state of its own besides its collaborators, so any number
of instances may share one store.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Optional, TypeVar

from bookloans.models.domain import STAFF_ROLES, Availability, Book, Loan, LoanStatus, Role, User, utcnow
from bookloans.services.authorization import authorize, authorize_self_or
from bookloans.services.errors import (
    AlreadyReturned, BookUnavailable, Conflict, InvalidOperation, NotFound,
    NotSupported, StoreFailure, Timeout, Unauthorized,
)
from bookloans.services.identity import RequestContext
from bookloans.services.policy import AvailabilityPolicy
from bookloans.store.base import BOOKS, LOANS, USERS, DocumentStore, UnitOfWork, new_id

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LoanLedger:
    def __init__(
        self,
        store: DocumentStore,
        policy: Optional[AvailabilityPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
        max_retries: int = 3,
        backoff: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.policy = policy or AvailabilityPolicy()
        self.clock = clock
        self.max_retries = max_retries
        self.backoff = backoff
        self.sleep = sleep

    def _run(self, ctx: RequestContext, operation: str, work: Callable[[UnitOfWork], T]) -> T:
        """Run ``work`` in a unit of work, retrying conflicts with exponential backoff.

        Anything raised by ``work`` rolls the unit of work back. Only
        ``Conflict`` and transient ``StoreFailure`` are retried, at most
        ``max_retries`` times; after that the last error propagates.
        """
        attempt = 0
        while True:
            ctx.check_deadline()
            try:
                with self.store.unit_of_work() as uow:
                    result = work(uow)
                    # last chance to abandon the writes before they commit
                    ctx.check_deadline()
                return result
            except (Conflict, StoreFailure) as exc:
                if isinstance(exc, StoreFailure) and not exc.transient:
                    raise
                if attempt >= self.max_retries:
                    logger.warning(f"{operation} gave up after {attempt + 1} attempts: {exc.detail}")
                    raise
                delay = self.backoff * (2 ** attempt)
                attempt += 1
                remaining = ctx.remaining()
                if remaining is not None and remaining <= delay:
                    raise Timeout() from exc
                logger.warning(f"{operation} attempt {attempt} failed ({exc.code}), retrying in {delay:.3f}s")
                self.sleep(delay)

    def borrow(self, ctx: RequestContext, book_id: str, user_id: Optional[str] = None) -> Loan:
        """Check ``book_id`` out to ``user_id`` (the caller when omitted).

        Readers may only borrow for themselves; librarians and admins may
        borrow on behalf of anyone.
        """
        if ctx.identity is None:
            raise Unauthorized()
        user_id = user_id or ctx.identity.user_id
        authorize_self_or(ctx.identity, user_id, *STAFF_ROLES)

        def work(uow: UnitOfWork) -> Loan:
            book_doc = uow.find_by_id(BOOKS, book_id)
            if book_doc is None:
                raise NotFound(f"Book {book_id} not found")
            book = Book.from_document(book_doc)
            if not self.policy.can_borrow(book):
                raise BookUnavailable(f"Book {book_id} is already checked out")
            user_doc = uow.find_by_id(USERS, user_id)
            if user_doc is None:
                raise NotFound(f"User {user_id} not found")
            user = User.from_document(user_doc)
            ctx.check_deadline()

            now = self.clock()
            loan = Loan(
                id=new_id(),
                book_id=book.id,
                user_id=user.id,
                borrowed_at=now,
                due_at=self.policy.compute_due_date(now),
            )
            uow.insert(LOANS, loan.to_document())
            uow.update(
                BOOKS, book.id,
                {"availability": Availability.CHECKED_OUT.value},
                expected_version=book.version,
            )
            uow.update(
                USERS, user.id,
                {"active_loans": user.active_loans + [loan.id]},
                expected_version=user.version,
            )
            return loan

        loan = self._run(ctx, "borrow", work)
        logger.info(f"User {loan.user_id} borrowed book {loan.book_id} loan {loan.id}")
        return loan

    def return_loan(self, ctx: RequestContext, loan_id: str) -> Loan:
        """Close a loan and put its book back on the shelf.

        A loan that is already returned raises AlreadyReturned and nothing is
        written.
        """
        if ctx.identity is None:
            raise Unauthorized()

        def work(uow: UnitOfWork) -> Loan:
            loan_doc = uow.find_by_id(LOANS, loan_id)
            if loan_doc is None:
                raise NotFound(f"Loan {loan_id} not found")
            loan = Loan.from_document(loan_doc)
            if loan.status == LoanStatus.RETURNED:
                raise AlreadyReturned(f"Loan {loan_id} already returned")
            authorize_self_or(ctx.identity, loan.user_id, *STAFF_ROLES)
            book_doc = uow.find_by_id(BOOKS, loan.book_id)
            user_doc = uow.find_by_id(USERS, loan.user_id)
            ctx.check_deadline()

            now = self.clock()
            uow.update(
                LOANS, loan.id,
                {"status": LoanStatus.RETURNED.value, "returned_at": now},
                expected_version=loan.version,
            )
            if book_doc is not None:
                uow.update(
                    BOOKS, loan.book_id,
                    {"availability": Availability.AVAILABLE.value},
                    expected_version=book_doc["version"],
                )
            else:
                logger.warning(f"Loan {loan.id} references missing book {loan.book_id}")
            if user_doc is not None:
                user = User.from_document(user_doc)
                uow.update(
                    USERS, user.id,
                    {"active_loans": [x for x in user.active_loans if x != loan.id]},
                    expected_version=user.version,
                )
            else:
                logger.warning(f"Loan {loan.id} references missing user {loan.user_id}")

            loan.status = LoanStatus.RETURNED
            loan.returned_at = now
            loan.version += 1
            return loan

        loan = self._run(ctx, "return", work)
        logger.info(f"Loan {loan.id} returned, book {loan.book_id} available again")
        return loan

    def update_loan(self, ctx: RequestContext, loan_id: str, status: LoanStatus) -> Loan:
        """Status update entry point; RETURNED is the only reachable target."""
        if LoanStatus(status) != LoanStatus.RETURNED:
            raise InvalidOperation("A loan can only be updated to RETURNED")
        return self.return_loan(ctx, loan_id)

    def reserve(self, ctx: RequestContext, book_id: str) -> None:
        authorize(ctx.identity, *Role)
        with self.store.unit_of_work() as uow:
            if uow.find_by_id(BOOKS, book_id) is None:
                raise NotFound(f"Book {book_id} not found")
        raise NotSupported("Reservations are not supported yet")

"""Document store interface.

A store hands out units of work. Everything done through one unit of work is
applied together when the ``with`` block exits cleanly, and discarded when it
raises::

    with store.unit_of_work() as uow:
        book = uow.find_by_id(BOOKS, book_id)
        uow.update(BOOKS, book_id, {"title": "Dune"}, expected_version=book["version"])

Documents are plain dicts keyed by column name; ``id`` is always present.
Collections listed in ``VERSIONED`` carry an integer ``version`` that every
update bumps, which is what ``expected_version`` is checked against.
"""

from __future__ import annotations

import abc
import uuid
from contextlib import AbstractContextManager
from typing import Any, Dict, List, Mapping, Optional

BOOKS = "books"
USERS = "users"
LOANS = "loans"
TOKENS = "tokens"
AUTHORS = "authors"
PUBLISHERS = "publishers"
REVIEWS = "reviews"

COLLECTIONS = (BOOKS, USERS, LOANS, TOKENS, AUTHORS, PUBLISHERS, REVIEWS)
VERSIONED = frozenset({BOOKS, USERS, LOANS, AUTHORS, PUBLISHERS, REVIEWS})

Document = Dict[str, Any]


def new_id() -> str:
    return uuid.uuid4().hex


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise KeyError(f"unknown collection {collection!r}")


class UnitOfWork(abc.ABC):
    @abc.abstractmethod
    def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        """Return a copy of the document, or None."""

    @abc.abstractmethod
    def find(self, collection: str, **criteria: Any) -> List[Document]:
        """Return copies of every document whose fields equal ``criteria``."""

    @abc.abstractmethod
    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        """Insert a document, generating its ``id`` when missing; returns the id."""

    @abc.abstractmethod
    def update(
        self,
        collection: str,
        doc_id: str,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        """Apply ``changes`` to one document.

        Raises ``NotFound`` when the document is absent and ``Conflict`` when
        ``expected_version`` no longer matches the stored version.
        """

    @abc.abstractmethod
    def delete(self, collection: str, doc_id: str, expected_version: Optional[int] = None) -> bool:
        """Delete a document; returns False when it did not exist.

        With ``expected_version``, raises ``Conflict`` when the stored version differs.
        """


class DocumentStore(abc.ABC):
    @abc.abstractmethod
    def unit_of_work(self) -> AbstractContextManager:
        """Context manager yielding a UnitOfWork; commit on exit, rollback on error."""

    def create_schema(self) -> None:
        """Prepare the backing storage. No-op unless the backend needs it."""

    def dispose(self) -> None:
        """Release backend resources."""

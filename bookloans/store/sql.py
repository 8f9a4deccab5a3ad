"""SQLAlchemy-backed document store.

Each collection is a table (see ``bookloans.models.models``). A unit of work
is one ``Session`` transaction. Versioned updates are issued as
``UPDATE ... WHERE id = :id AND version = :expected``, so two transactions
racing on the same document cannot both win: the loser matches zero rows and
gets ``Conflict``.
"""

import copy
import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional

from sqlalchemy import delete, inspect, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from bookloans.core.database import Base, make_engine, make_session_factory
from bookloans.models import models
from bookloans.services.errors import Conflict, DuplicateError, LedgerError, NotFound, StoreFailure
from bookloans.store.base import (
    AUTHORS, BOOKS, LOANS, PUBLISHERS, REVIEWS, TOKENS, USERS, VERSIONED,
    Document, DocumentStore, UnitOfWork, check_collection, new_id,
)

logger = logging.getLogger(__name__)

MODELS = {
    BOOKS: models.Book,
    USERS: models.User,
    LOANS: models.Loan,
    TOKENS: models.AuthToken,
    AUTHORS: models.Author,
    PUBLISHERS: models.Publisher,
    REVIEWS: models.Review,
}


def _to_document(obj) -> Document:
    mapper = inspect(obj).mapper
    return {attr.key: copy.deepcopy(getattr(obj, attr.key)) for attr in mapper.column_attrs}


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session: Session) -> None:
        self.session = session

    def _model(self, collection: str):
        check_collection(collection)
        return MODELS[collection]

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        obj = self.session.get(self._model(collection), doc_id, populate_existing=True)
        return _to_document(obj) if obj is not None else None

    def find(self, collection: str, **criteria: Any) -> List[Document]:
        model = self._model(collection)
        query = select(model).filter_by(**criteria).execution_options(populate_existing=True)
        return [_to_document(obj) for obj in self.session.execute(query).scalars().all()]

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        model = self._model(collection)
        doc = dict(document)
        doc.setdefault("id", new_id())
        if collection in VERSIONED:
            doc.setdefault("version", 0)
        self.session.add(model(**doc))
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicateError(f"{collection} document violates a uniqueness constraint") from exc
        return doc["id"]

    def update(
        self,
        collection: str,
        doc_id: str,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        model = self._model(collection)
        values = {k: v for k, v in changes.items() if k not in ("id", "version")}
        stmt = update(model).where(model.id == doc_id)
        if collection in VERSIONED:
            values["version"] = model.version + 1
            if expected_version is not None:
                stmt = stmt.where(model.version == expected_version)
        try:
            result = self.session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
        except IntegrityError as exc:
            raise DuplicateError(f"{collection} document violates a uniqueness constraint") from exc
        if result.rowcount == 0:
            exists = self.session.execute(
                select(model.id).where(model.id == doc_id)
            ).first()
            if exists is None:
                raise NotFound(f"{collection} document {doc_id} not found")
            raise Conflict(f"{collection} document {doc_id} was modified concurrently")

    def delete(self, collection: str, doc_id: str, expected_version: Optional[int] = None) -> bool:
        model = self._model(collection)
        stmt = delete(model).where(model.id == doc_id)
        if expected_version is not None and collection in VERSIONED:
            stmt = stmt.where(model.version == expected_version)
        result = self.session.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount == 0 and expected_version is not None:
            if self.session.execute(select(model.id).where(model.id == doc_id)).first() is not None:
                raise Conflict(f"{collection} document {doc_id} was modified concurrently")
        return result.rowcount > 0


class SqlDocumentStore(DocumentStore):
    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self.engine = make_engine(database_url)
        self._session_factory = make_session_factory(self.engine)

    def create_schema(self) -> None:
        logger.info("Creating database tables (if not present)...")
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def unit_of_work(self) -> Iterator[SqlUnitOfWork]:
        session = self._session_factory()
        try:
            yield SqlUnitOfWork(session)
            session.commit()
        except LedgerError as exc:
            session.rollback()
            logger.debug(f"Rolled back unit of work: {exc.code}")
            raise
        except OperationalError as exc:
            session.rollback()
            logger.warning(f"Transient database error: {exc.orig}")
            raise StoreFailure("database temporarily unavailable", transient=True) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Database error: {exc}")
            raise StoreFailure("database error") from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

"""In-process document store.

Committed documents live in per-collection dicts. A unit of work keeps its own
writes private until commit; at commit time, under the store lock, it checks
that every document it touched still has the version it started from and then
applies everything at once. A unit of work that lost a race raises
``Conflict`` and applies nothing.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple

from bookloans.services.errors import Conflict, DuplicateError, NotFound
from bookloans.store.base import (
    BOOKS, COLLECTIONS, USERS, VERSIONED,
    Document, DocumentStore, UnitOfWork, check_collection, new_id,
)

Key = Tuple[str, str]

# fields that must stay unique within a collection (None values excluded)
UNIQUE_FIELDS = {BOOKS: ("isbn",), USERS: ("email",)}

_DELETED = object()


class InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, store: "InMemoryDocumentStore") -> None:
        self._store = store
        self._pending: Dict[Key, Any] = {}
        # version of each touched document when this unit of work first saw it;
        # None means "must not exist yet"
        self._base_versions: Dict[Key, Optional[int]] = {}
        self._inserted: Set[Key] = set()

    def _current(self, collection: str, doc_id: str) -> Optional[Document]:
        key = (collection, doc_id)
        if key in self._pending:
            doc = self._pending[key]
            return None if doc is _DELETED else doc
        return self._store._read(collection, doc_id)

    def _touch(self, key: Key, doc: Optional[Document]) -> None:
        if key not in self._base_versions:
            self._base_versions[key] = doc.get("version", 0) if doc is not None else None

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        check_collection(collection)
        doc = self._current(collection, doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, collection: str, **criteria: Any) -> List[Document]:
        check_collection(collection)
        ids = dict.fromkeys(self._store._ids(collection))
        ids.update(dict.fromkeys(doc_id for (coll, doc_id) in self._pending if coll == collection))
        found = []
        for doc_id in ids:
            doc = self._current(collection, doc_id)
            if doc is not None and all(doc.get(k) == v for k, v in criteria.items()):
                found.append(copy.deepcopy(doc))
        return found

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        check_collection(collection)
        doc = copy.deepcopy(dict(document))
        doc.setdefault("id", new_id())
        if collection in VERSIONED:
            doc.setdefault("version", 0)
        key = (collection, doc["id"])
        if self._current(collection, doc["id"]) is not None:
            raise DuplicateError(f"{collection} document {doc['id']} already exists")
        self._check_unique(collection, doc)
        self._touch(key, None)
        self._pending[key] = doc
        self._inserted.add(key)
        return doc["id"]

    def update(
        self,
        collection: str,
        doc_id: str,
        changes: Mapping[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        check_collection(collection)
        key = (collection, doc_id)
        doc = self._current(collection, doc_id)
        if doc is None:
            raise NotFound(f"{collection} document {doc_id} not found")
        if expected_version is not None and doc.get("version", 0) != expected_version:
            raise Conflict(f"{collection} document {doc_id} was modified concurrently")
        self._touch(key, doc)
        updated = copy.deepcopy(doc)
        updated.update({k: copy.deepcopy(v) for k, v in changes.items() if k not in ("id", "version")})
        if collection in VERSIONED:
            updated["version"] = doc.get("version", 0) + 1
        self._check_unique(collection, updated)
        self._pending[key] = updated

    def delete(self, collection: str, doc_id: str, expected_version: Optional[int] = None) -> bool:
        check_collection(collection)
        key = (collection, doc_id)
        doc = self._current(collection, doc_id)
        if doc is None:
            return False
        if expected_version is not None and doc.get("version", 0) != expected_version:
            raise Conflict(f"{collection} document {doc_id} was modified concurrently")
        self._touch(key, doc)
        self._pending[key] = _DELETED
        return True

    def _check_unique(self, collection: str, doc: Document) -> None:
        for field_name in UNIQUE_FIELDS.get(collection, ()):
            value = doc.get(field_name)
            if value is None:
                continue
            for other in self.find(collection, **{field_name: value}):
                if other["id"] != doc["id"]:
                    raise DuplicateError(f"{collection}.{field_name} {value!r} already exists")

    def commit(self) -> None:
        self._store._apply(self._pending, self._base_versions)


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Document]] = {name: {} for name in COLLECTIONS}

    @contextmanager
    def unit_of_work(self) -> Iterator[InMemoryUnitOfWork]:
        uow = InMemoryUnitOfWork(self)
        yield uow
        # an exception raised in the block skips this line: nothing is applied
        uow.commit()

    def _read(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            doc = self._collections[collection].get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def _ids(self, collection: str) -> List[str]:
        with self._lock:
            return list(self._collections[collection])

    def _check_unique(self, collection: str, pending: Dict[Key, Any]) -> None:
        # the collection as it will look once ``pending`` is applied
        view = dict(self._collections[collection])
        for (coll, doc_id), doc in pending.items():
            if coll != collection:
                continue
            if doc is _DELETED:
                view.pop(doc_id, None)
            else:
                view[doc_id] = doc
        for field_name in UNIQUE_FIELDS.get(collection, ()):
            seen: Set[Any] = set()
            for doc in view.values():
                value = doc.get(field_name)
                if value is None:
                    continue
                if value in seen:
                    raise DuplicateError(f"{collection}.{field_name} {value!r} already exists")
                seen.add(value)

    def _apply(self, pending: Dict[Key, Any], base_versions: Dict[Key, Optional[int]]) -> None:
        with self._lock:
            for (collection, doc_id), base in base_versions.items():
                stored = self._collections[collection].get(doc_id)
                stored_version = None if stored is None else stored.get("version", 0)
                if stored_version != base:
                    raise Conflict(f"{collection} document {doc_id} was modified concurrently")
            for collection in {coll for (coll, _) in pending}:
                self._check_unique(collection, pending)
            for (collection, doc_id), doc in pending.items():
                if doc is _DELETED:
                    self._collections[collection].pop(doc_id, None)
                else:
                    self._collections[collection][doc_id] = doc

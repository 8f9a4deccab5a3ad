import pytest

from bookloans.services.errors import Conflict, DuplicateError, NotFound
from bookloans.store.base import BOOKS, TOKENS, USERS
from bookloans.store.memory import InMemoryDocumentStore


def _insert_book(store, **fields):
    doc = {"title": "Dune", "author": "Frank Herbert", "availability": "AVAILABLE"}
    doc.update(fields)
    with store.unit_of_work() as uow:
        return uow.insert(BOOKS, doc)


def test_insert_generates_id_and_version(store):
    book_id = _insert_book(store)
    with store.unit_of_work() as uow:
        doc = uow.find_by_id(BOOKS, book_id)
    assert doc["id"] == book_id
    assert doc["version"] == 0
    assert doc["title"] == "Dune"


def test_find_by_id_missing_returns_none(store):
    with store.unit_of_work() as uow:
        assert uow.find_by_id(BOOKS, "nope") is None


def test_find_filters_on_fields(store):
    _insert_book(store, title="Dune")
    _insert_book(store, title="Emma", availability="CHECKED_OUT")
    with store.unit_of_work() as uow:
        out = uow.find(BOOKS, availability="CHECKED_OUT")
    assert [d["title"] for d in out] == ["Emma"]


def test_update_bumps_version(store):
    book_id = _insert_book(store)
    with store.unit_of_work() as uow:
        uow.update(BOOKS, book_id, {"title": "Dune Messiah"}, expected_version=0)
    with store.unit_of_work() as uow:
        doc = uow.find_by_id(BOOKS, book_id)
    assert doc["title"] == "Dune Messiah"
    assert doc["version"] == 1


def test_update_with_stale_version_conflicts(store):
    book_id = _insert_book(store)
    with store.unit_of_work() as uow:
        uow.update(BOOKS, book_id, {"title": "Second"})
    with pytest.raises(Conflict):
        with store.unit_of_work() as uow:
            uow.update(BOOKS, book_id, {"title": "Third"}, expected_version=0)
    with store.unit_of_work() as uow:
        assert uow.find_by_id(BOOKS, book_id)["title"] == "Second"


def test_update_missing_document_is_not_found(store):
    with pytest.raises(NotFound):
        with store.unit_of_work() as uow:
            uow.update(BOOKS, "nope", {"title": "x"}, expected_version=0)


def test_exception_rolls_back_every_write(store):
    book_id = _insert_book(store)
    with pytest.raises(RuntimeError):
        with store.unit_of_work() as uow:
            uow.update(BOOKS, book_id, {"availability": "CHECKED_OUT"})
            uow.insert(TOKENS, {"id": "tok", "user_id": "u1"})
            raise RuntimeError("boom")
    with store.unit_of_work() as uow:
        assert uow.find_by_id(BOOKS, book_id)["availability"] == "AVAILABLE"
        assert uow.find_by_id(TOKENS, "tok") is None


def test_reads_see_own_writes(store):
    book_id = _insert_book(store)
    with store.unit_of_work() as uow:
        uow.update(BOOKS, book_id, {"title": "Changed"})
        assert uow.find_by_id(BOOKS, book_id)["title"] == "Changed"


def test_interleaved_units_of_work_conflict(store):
    book_id = _insert_book(store)
    with store.unit_of_work() as first:
        seen = first.find_by_id(BOOKS, book_id)
        with store.unit_of_work() as second:
            other = second.find_by_id(BOOKS, book_id)
            second.update(BOOKS, book_id, {"availability": "CHECKED_OUT"},
                          expected_version=other["version"])
        with pytest.raises(Conflict):
            first.update(BOOKS, book_id, {"availability": "CHECKED_OUT"},
                         expected_version=seen["version"])
    with store.unit_of_work() as uow:
        assert uow.find_by_id(BOOKS, book_id)["version"] == 1


def test_memory_store_validates_versions_at_commit():
    store = InMemoryDocumentStore()
    book_id = _insert_book(store)
    with pytest.raises(Conflict):
        with store.unit_of_work() as first:
            first.update(BOOKS, book_id, {"title": "First"})
            with store.unit_of_work() as second:
                second.update(BOOKS, book_id, {"title": "Second"})
    with store.unit_of_work() as uow:
        assert uow.find_by_id(BOOKS, book_id)["title"] == "Second"


def test_unique_email_is_enforced(store):
    doc = {"name": "A", "email": "a@example.com", "password_hash": "", "role": "READER", "active_loans": []}
    with store.unit_of_work() as uow:
        uow.insert(USERS, dict(doc))
    with pytest.raises(DuplicateError):
        with store.unit_of_work() as uow:
            uow.insert(USERS, dict(doc))


def test_delete_with_stale_version_conflicts(store):
    book_id = _insert_book(store)
    with store.unit_of_work() as uow:
        uow.update(BOOKS, book_id, {"title": "Changed"})
    with pytest.raises(Conflict):
        with store.unit_of_work() as uow:
            uow.delete(BOOKS, book_id, expected_version=0)
    with store.unit_of_work() as uow:
        assert uow.delete(BOOKS, book_id, expected_version=1) is True
        assert uow.delete(BOOKS, book_id) is False


def test_unique_value_can_move_between_documents_in_one_unit(store):
    first = _insert_book(store, isbn="X")
    with store.unit_of_work() as uow:
        uow.update(BOOKS, first, {"isbn": "Y"})
        second = uow.insert(BOOKS, {"title": "Emma", "author": "Jane Austen",
                                    "availability": "AVAILABLE", "isbn": "X"})
    with store.unit_of_work() as uow:
        assert uow.find_by_id(BOOKS, first)["isbn"] == "Y"
        assert uow.find_by_id(BOOKS, second)["isbn"] == "X"


def test_duplicate_from_concurrent_units_is_rejected_at_commit():
    store = InMemoryDocumentStore()
    with pytest.raises(DuplicateError):
        with store.unit_of_work() as first:
            first.insert(BOOKS, {"title": "A", "author": "B", "availability": "AVAILABLE", "isbn": "X"})
            with store.unit_of_work() as second:
                second.insert(BOOKS, {"title": "C", "author": "D", "availability": "AVAILABLE", "isbn": "X"})
    with store.unit_of_work() as uow:
        assert len(uow.find(BOOKS, isbn="X")) == 1

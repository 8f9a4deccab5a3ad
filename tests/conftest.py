from datetime import datetime, timedelta

import pytest

from bookloans.models.domain import Availability, Role
from bookloans.services import accounts
from bookloans.services.identity import Identity, RequestContext
from bookloans.services.ledger import LoanLedger
from bookloans.services.queries import LoanQueries
from bookloans.store.base import BOOKS, USERS, new_id
from bookloans.store.memory import InMemoryDocumentStore
from bookloans.store.sql import SqlDocumentStore


class FakeClock:
    def __init__(self, now=datetime(2024, 3, 1, 12, 0, 0)):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(accounts, "PBKDF2_ITERATIONS", 1000)


@pytest.fixture
def sql_store(tmp_path):
    store = SqlDocumentStore(f"sqlite:///{tmp_path / 'loans.db'}")
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture(params=["sql", "memory"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryDocumentStore()
        return
    store = SqlDocumentStore(f"sqlite:///{tmp_path / 'loans.db'}")
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(store, clock):
    return LoanLedger(store, clock=clock, sleep=lambda seconds: None)


@pytest.fixture
def queries(store, clock):
    return LoanQueries(store, clock=clock)


def add_user(store, role=Role.READER, name="Reader"):
    user_id = new_id()
    with store.unit_of_work() as uow:
        uow.insert(USERS, {
            "id": user_id,
            "name": name,
            "email": f"{user_id}@example.com",
            "password_hash": "",
            "role": role.value,
            "active_loans": [],
        })
    return Identity(user_id=user_id, role=role)


def add_book(store, title="Dune", availability=Availability.AVAILABLE):
    book_id = new_id()
    with store.unit_of_work() as uow:
        uow.insert(BOOKS, {
            "id": book_id,
            "title": title,
            "author": "Frank Herbert",
            "availability": availability.value,
        })
    return book_id


def ctx_for(identity, timeout=None):
    return RequestContext.with_timeout(identity, timeout)

from datetime import datetime, timedelta

from bookloans.models.domain import Availability, Book, Loan, LoanStatus
from bookloans.services.policy import AvailabilityPolicy

NOW = datetime(2024, 3, 1, 12, 0, 0)


def _loan(due_at, status=LoanStatus.BORROWED):
    return Loan(id="l1", book_id="b1", user_id="u1", borrowed_at=due_at - timedelta(days=14),
                due_at=due_at, status=status)


def test_can_borrow_only_available_books():
    policy = AvailabilityPolicy()
    assert policy.can_borrow(Book(id="b1", title="T", author="A"))
    assert not policy.can_borrow(Book(id="b1", title="T", author="A", availability=Availability.CHECKED_OUT))


def test_due_date_is_fourteen_days_by_default():
    assert AvailabilityPolicy().compute_due_date(NOW) == NOW + timedelta(days=14)


def test_loan_period_is_configurable():
    assert AvailabilityPolicy.from_days(7).compute_due_date(NOW) == datetime(2024, 3, 8, 12, 0, 0)


def test_overdue_is_strictly_after_due_date():
    policy = AvailabilityPolicy()
    loan = _loan(due_at=NOW)
    assert not policy.is_overdue(loan, NOW - timedelta(seconds=1))
    assert not policy.is_overdue(loan, NOW)
    assert policy.is_overdue(loan, NOW + timedelta(seconds=1))
    assert policy.is_overdue(loan, NOW + timedelta(days=30))


def test_returned_loan_is_never_overdue():
    loan = _loan(due_at=NOW, status=LoanStatus.RETURNED)
    assert not AvailabilityPolicy().is_overdue(loan, NOW + timedelta(days=30))

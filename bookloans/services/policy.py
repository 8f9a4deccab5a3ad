from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from bookloans.models.domain import Availability, Book, Loan, LoanStatus

DEFAULT_LOAN_DAYS = 14


@dataclass(frozen=True)
class AvailabilityPolicy:
    """Lending rules: who can take a book out and when it is due back."""
    loan_period: timedelta = timedelta(days=DEFAULT_LOAN_DAYS)

    @classmethod
    def from_days(cls, days: int) -> "AvailabilityPolicy":
        return cls(loan_period=timedelta(days=days))

    def can_borrow(self, book: Book) -> bool:
        return book.availability == Availability.AVAILABLE

    def compute_due_date(self, borrowed_at: datetime) -> datetime:
        return borrowed_at + self.loan_period

    def is_overdue(self, loan: Loan, now: datetime) -> bool:
        return loan.status == LoanStatus.BORROWED and now > loan.due_at

"""Domain records handled by the services layer.

Documents come out of the store as plain dicts; these dataclasses give the
ledger and the policy a typed view of them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Naive UTC now; SQLite hands back naive datetimes, so we store them that way."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, Enum):
    ADMIN = "ADMIN"
    LIBRARIAN = "LIBRARIAN"
    READER = "READER"


STAFF_ROLES = (Role.ADMIN, Role.LIBRARIAN)


class Availability(str, Enum):
    AVAILABLE = "AVAILABLE"
    CHECKED_OUT = "CHECKED_OUT"


class LoanStatus(str, Enum):
    BORROWED = "BORROWED"
    RETURNED = "RETURNED"


@dataclass
class Book:
    id: str
    title: str
    author: str
    availability: Availability = Availability.AVAILABLE
    isbn: Optional[str] = None
    description: Optional[str] = None
    published_year: Optional[int] = None
    version: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Book":
        return cls(
            id=doc["id"],
            title=doc["title"],
            author=doc["author"],
            availability=Availability(doc["availability"]),
            isbn=doc.get("isbn"),
            description=doc.get("description"),
            published_year=doc.get("published_year"),
            version=doc.get("version", 0),
            created_at=doc.get("created_at"),
        )


@dataclass
class User:
    id: str
    name: str
    email: str
    role: Role = Role.READER
    active_loans: List[str] = field(default_factory=list)
    password_hash: str = ""
    version: int = 0
    joined_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "User":
        return cls(
            id=doc["id"],
            name=doc["name"],
            email=doc["email"],
            role=Role(doc["role"]),
            active_loans=list(doc.get("active_loans") or []),
            password_hash=doc.get("password_hash", ""),
            version=doc.get("version", 0),
            joined_at=doc.get("joined_at"),
        )


@dataclass
class Loan:
    id: str
    book_id: str
    user_id: str
    borrowed_at: datetime
    due_at: datetime
    status: LoanStatus = LoanStatus.BORROWED
    returned_at: Optional[datetime] = None
    version: int = 0

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Loan":
        return cls(
            id=doc["id"],
            book_id=doc["book_id"],
            user_id=doc["user_id"],
            borrowed_at=doc["borrowed_at"],
            due_at=doc["due_at"],
            status=LoanStatus(doc["status"]),
            returned_at=doc.get("returned_at"),
            version=doc.get("version", 0),
        )

    @property
    def active(self) -> bool:
        return self.status == LoanStatus.BORROWED

    def to_document(self) -> Dict[str, Any]:
        doc = asdict(self)
        doc["status"] = self.status.value
        return doc


@dataclass
class Author:
    id: str
    name: str
    biography: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    awards: List[str] = field(default_factory=list)
    website_url: Optional[str] = None
    version: int = 0

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Author":
        return cls(
            id=doc["id"],
            name=doc["name"],
            biography=doc.get("biography"),
            birth_date=doc.get("birth_date"),
            nationality=doc.get("nationality"),
            awards=list(doc.get("awards") or []),
            website_url=doc.get("website_url"),
            version=doc.get("version", 0),
        )


@dataclass
class Publisher:
    id: str
    name: str
    founded_year: Optional[int] = None
    location: Optional[str] = None
    website_url: Optional[str] = None
    version: int = 0

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Publisher":
        return cls(
            id=doc["id"],
            name=doc["name"],
            founded_year=doc.get("founded_year"),
            location=doc.get("location"),
            website_url=doc.get("website_url"),
            version=doc.get("version", 0),
        )


@dataclass
class Review:
    id: str
    book_id: str
    user_id: str
    rating: int
    content: Optional[str] = None
    created_at: Optional[datetime] = None
    version: int = 0

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Review":
        return cls(
            id=doc["id"],
            book_id=doc["book_id"],
            user_id=doc["user_id"],
            rating=doc["rating"],
            content=doc.get("content"),
            created_at=doc.get("created_at"),
            version=doc.get("version", 0),
        )

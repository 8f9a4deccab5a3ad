from sqlalchemy import Column, Integer, String, Text, Date, DateTime, JSON, Index
from bookloans.core.database import Base
from bookloans.models.domain import Availability, LoanStatus, Role, utcnow


class Book(Base):
    __tablename__ = "books"
    id = Column(String(32), primary_key=True)
    title = Column(String, nullable=False, index=True)
    author = Column(String, nullable=False, index=True)
    isbn = Column(String, unique=True, index=True, nullable=True)
    description = Column(Text, nullable=True)
    published_year = Column(Integer, nullable=True)
    availability = Column(String(16), nullable=False, default=Availability.AVAILABLE.value, index=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

Index('ix_books_title_author', Book.title, Book.author)

class User(Base):
    __tablename__ = "users"
    id = Column(String(32), primary_key=True)
    name = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False, default="")
    role = Column(String(16), nullable=False, default=Role.READER.value)
    active_loans = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=0)
    joined_at = Column(DateTime, default=utcnow)

class Loan(Base):
    __tablename__ = "loans"
    # book_id/user_id are plain references: loans outlive the documents they point at
    id = Column(String(32), primary_key=True)
    book_id = Column(String(32), nullable=False, index=True)
    user_id = Column(String(32), nullable=False, index=True)
    borrowed_at = Column(DateTime, nullable=False, default=utcnow)
    due_at = Column(DateTime, nullable=False, index=True)
    returned_at = Column(DateTime, nullable=True)
    status = Column(String(16), nullable=False, default=LoanStatus.BORROWED.value, index=True)
    version = Column(Integer, nullable=False, default=0)

Index('ix_loans_status_due', Loan.status, Loan.due_at)

class AuthToken(Base):
    __tablename__ = "tokens"
    id = Column(String(64), primary_key=True)
    user_id = Column(String(32), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)

class Author(Base):
    __tablename__ = "authors"
    id = Column(String(32), primary_key=True)
    name = Column(String, nullable=False, index=True)
    biography = Column(Text, nullable=True)
    birth_date = Column(Date, nullable=True)
    nationality = Column(String, nullable=True)
    awards = Column(JSON, nullable=False, default=list)
    website_url = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

class Publisher(Base):
    __tablename__ = "publishers"
    id = Column(String(32), primary_key=True)
    name = Column(String, nullable=False, index=True)
    founded_year = Column(Integer, nullable=True)
    location = Column(String, nullable=True)
    website_url = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

class Review(Base):
    __tablename__ = "reviews"
    id = Column(String(32), primary_key=True)
    book_id = Column(String(32), nullable=False, index=True)
    user_id = Column(String(32), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    version = Column(Integer, nullable=False, default=0)

from pydantic import BaseModel, Field, computed_field, conint, constr, field_validator
from datetime import date, datetime
from typing import List, Optional

from bookloans.models.domain import Availability, LoanStatus, Role

class BookBase(BaseModel):
    title: constr(min_length=1)
    author: constr(min_length=1)
    isbn: Optional[str] = None
    description: Optional[str] = None
    published_year: Optional[int] = Field(default=None, ge=0)

    @field_validator('title', 'author')
    @classmethod
    def strip_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v

class BookCreate(BookBase):
    pass

class BookUpdate(BaseModel):
    title: Optional[constr(min_length=1)] = None
    author: Optional[constr(min_length=1)] = None
    isbn: Optional[str] = None
    description: Optional[str] = None
    published_year: Optional[int] = Field(default=None, ge=0)

class BookOut(BookBase):
    id: str
    availability: Availability
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class UserBase(BaseModel):
    name: constr(min_length=1)
    email: constr(min_length=5)

class SignUp(UserBase):
    password: constr(min_length=8)

class UserCreate(SignUp):
    role: Role = Role.READER

class RoleUpdate(BaseModel):
    role: Role

class UserOut(UserBase):
    id: str
    role: Role
    active_loans: List[str]
    joined_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class Login(BaseModel):
    email: str
    password: str

class AuthPayload(BaseModel):
    token: str
    user: UserOut

class BorrowRequest(BaseModel):
    book_id: str
    user_id: Optional[str] = None

class LoanUpdate(BaseModel):
    status: LoanStatus

class LoanOut(BaseModel):
    id: str
    user_id: str
    book_id: str
    borrowed_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    status: LoanStatus
    class Config:
        from_attributes = True

    @computed_field
    @property
    def active(self) -> bool:
        return self.status == LoanStatus.BORROWED

class ProfileUpdate(BaseModel):
    name: Optional[constr(min_length=1)] = None
    email: Optional[constr(min_length=5)] = None
    current_password: Optional[str] = None
    new_password: Optional[constr(min_length=8)] = None

class AuthorBase(BaseModel):
    name: constr(min_length=1)
    biography: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    awards: List[str] = []
    website_url: Optional[str] = None

class AuthorCreate(AuthorBase):
    pass

class AuthorUpdate(BaseModel):
    name: Optional[constr(min_length=1)] = None
    biography: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    awards: Optional[List[str]] = None
    website_url: Optional[str] = None

class AuthorOut(AuthorBase):
    id: str
    class Config:
        from_attributes = True

class PublisherBase(BaseModel):
    name: constr(min_length=1)
    founded_year: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    website_url: Optional[str] = None

class PublisherCreate(PublisherBase):
    pass

class PublisherUpdate(BaseModel):
    name: Optional[constr(min_length=1)] = None
    founded_year: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    website_url: Optional[str] = None

class PublisherOut(PublisherBase):
    id: str
    class Config:
        from_attributes = True

class ReviewCreate(BaseModel):
    rating: conint(ge=1, le=5)
    content: Optional[str] = None

class ReviewUpdate(BaseModel):
    rating: Optional[conint(ge=1, le=5)] = None
    content: Optional[str] = None

class ReviewOut(BaseModel):
    id: str
    book_id: str
    user_id: str
    rating: int
    content: Optional[str] = None
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True

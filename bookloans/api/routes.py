from fastapi import APIRouter, Depends
from typing import List

from bookloans.api.deps import Services, get_services, request_context
from bookloans.schemas import schemas
from bookloans.services.identity import RequestContext

router = APIRouter()

# -----------------------------
# Books
# -----------------------------
@router.post("/books/", response_model=schemas.BookOut)
def create_book(book_in: schemas.BookCreate, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    return services.catalog.add_book(ctx, book_in.model_dump())

@router.get("/books/", response_model=List[schemas.BookOut])
def list_books(skip: int = 0, limit: int = 20, services: Services = Depends(get_services)):
    return services.catalog.list_books(skip=skip, limit=limit)

@router.get("/books/{book_id}", response_model=schemas.BookOut)
def read_book(book_id: str, services: Services = Depends(get_services)):
    return services.catalog.get_book(book_id)

@router.put("/books/{book_id}", response_model=schemas.BookOut)
def update_book(book_id: str, book_upd: schemas.BookUpdate, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    return services.catalog.update_book(ctx, book_id, book_upd.model_dump(exclude_unset=True))

@router.delete("/books/{book_id}")
def delete_book(book_id: str, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    services.catalog.delete_book(ctx, book_id)
    return {"ok": True}

@router.post("/books/{book_id}/reserve")
def reserve_book(book_id: str, ctx: RequestContext = Depends(request_context),
                 services: Services = Depends(get_services)):
    services.ledger.reserve(ctx, book_id)

# -----------------------------
# Users
# -----------------------------
@router.post("/users/", response_model=schemas.UserOut)
def create_user(user_in: schemas.UserCreate, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    return services.accounts.create_user(ctx, user_in.name, user_in.email, user_in.password, user_in.role)

@router.get("/users/", response_model=List[schemas.UserOut])
def list_users(skip: int = 0, limit: int = 50, ctx: RequestContext = Depends(request_context),
               services: Services = Depends(get_services)):
    return services.accounts.list_users(ctx, skip=skip, limit=limit)

@router.get("/users/{user_id}", response_model=schemas.UserOut)
def read_user(user_id: str, ctx: RequestContext = Depends(request_context),
              services: Services = Depends(get_services)):
    return services.accounts.get_user(ctx, user_id)

@router.put("/users/{user_id}", response_model=schemas.UserOut)
def update_user(user_id: str, body: schemas.ProfileUpdate, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    return services.accounts.update_profile(ctx, user_id, **body.model_dump(exclude_unset=True))

@router.put("/users/{user_id}/role", response_model=schemas.UserOut)
def change_role(user_id: str, body: schemas.RoleUpdate, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    return services.accounts.change_role(ctx, user_id, body.role)

@router.delete("/users/{user_id}")
def delete_user(user_id: str, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    services.accounts.delete_user(ctx, user_id)
    return {"ok": True}

@router.get("/users/{user_id}/loans", response_model=List[schemas.LoanOut])
def user_loans(user_id: str, ctx: RequestContext = Depends(request_context),
               services: Services = Depends(get_services)):
    return services.queries.loans_for_user(ctx, user_id)

# -----------------------------
# Loans (borrow & return)
# -----------------------------
@router.post("/loans/borrow", response_model=schemas.LoanOut)
def borrow_book(body: schemas.BorrowRequest, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    return services.ledger.borrow(ctx, body.book_id, body.user_id)

@router.get("/loans/overdue", response_model=List[schemas.LoanOut])
def overdue_loans(ctx: RequestContext = Depends(request_context), services: Services = Depends(get_services)):
    return services.queries.overdue_loans(ctx)

@router.get("/loans/{loan_id}", response_model=schemas.LoanOut)
def read_loan(loan_id: str, ctx: RequestContext = Depends(request_context),
              services: Services = Depends(get_services)):
    return services.queries.get_loan(ctx, loan_id)

@router.post("/loans/{loan_id}/return", response_model=schemas.LoanOut)
def return_book(loan_id: str, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    return services.ledger.return_loan(ctx, loan_id)

@router.patch("/loans/{loan_id}", response_model=schemas.LoanOut)
def update_loan(loan_id: str, body: schemas.LoanUpdate, ctx: RequestContext = Depends(request_context),
                services: Services = Depends(get_services)):
    return services.ledger.update_loan(ctx, loan_id, body.status)

# -----------------------------
# Reviews
# -----------------------------
@router.post("/books/{book_id}/reviews", response_model=schemas.ReviewOut)
def add_review(book_id: str, body: schemas.ReviewCreate, ctx: RequestContext = Depends(request_context),
               services: Services = Depends(get_services)):
    return services.reviews.add_review(ctx, book_id, body.rating, body.content)

@router.get("/books/{book_id}/reviews", response_model=List[schemas.ReviewOut])
def book_reviews(book_id: str, ctx: RequestContext = Depends(request_context),
                 services: Services = Depends(get_services)):
    return services.reviews.list_reviews(ctx, book_id)

@router.put("/reviews/{review_id}", response_model=schemas.ReviewOut)
def update_review(review_id: str, body: schemas.ReviewUpdate, ctx: RequestContext = Depends(request_context),
                  services: Services = Depends(get_services)):
    return services.reviews.update_review(ctx, review_id, body.rating, body.content)

@router.delete("/reviews/{review_id}")
def delete_review(review_id: str, ctx: RequestContext = Depends(request_context),
                  services: Services = Depends(get_services)):
    services.reviews.delete_review(ctx, review_id)
    return {"ok": True}

# -----------------------------
# Authors
# -----------------------------
@router.post("/authors/", response_model=schemas.AuthorOut)
def create_author(author_in: schemas.AuthorCreate, ctx: RequestContext = Depends(request_context),
                  services: Services = Depends(get_services)):
    return services.catalog.add_author(ctx, author_in.model_dump())

@router.get("/authors/", response_model=List[schemas.AuthorOut])
def list_authors(skip: int = 0, limit: int = 50, services: Services = Depends(get_services)):
    return services.catalog.list_authors(skip=skip, limit=limit)

@router.get("/authors/{author_id}", response_model=schemas.AuthorOut)
def read_author(author_id: str, services: Services = Depends(get_services)):
    return services.catalog.get_author(author_id)

@router.put("/authors/{author_id}", response_model=schemas.AuthorOut)
def update_author(author_id: str, author_upd: schemas.AuthorUpdate, ctx: RequestContext = Depends(request_context),
                  services: Services = Depends(get_services)):
    return services.catalog.update_author(ctx, author_id, author_upd.model_dump(exclude_unset=True))

@router.delete("/authors/{author_id}")
def delete_author(author_id: str, ctx: RequestContext = Depends(request_context),
                  services: Services = Depends(get_services)):
    services.catalog.delete_author(ctx, author_id)
    return {"ok": True}

# -----------------------------
# Publishers
# -----------------------------
@router.post("/publishers/", response_model=schemas.PublisherOut)
def create_publisher(publisher_in: schemas.PublisherCreate, ctx: RequestContext = Depends(request_context),
                     services: Services = Depends(get_services)):
    return services.catalog.add_publisher(ctx, publisher_in.model_dump())

@router.get("/publishers/", response_model=List[schemas.PublisherOut])
def list_publishers(skip: int = 0, limit: int = 50, services: Services = Depends(get_services)):
    return services.catalog.list_publishers(skip=skip, limit=limit)

@router.get("/publishers/{publisher_id}", response_model=schemas.PublisherOut)
def read_publisher(publisher_id: str, services: Services = Depends(get_services)):
    return services.catalog.get_publisher(publisher_id)

@router.put("/publishers/{publisher_id}", response_model=schemas.PublisherOut)
def update_publisher(publisher_id: str, publisher_upd: schemas.PublisherUpdate,
                     ctx: RequestContext = Depends(request_context), services: Services = Depends(get_services)):
    return services.catalog.update_publisher(ctx, publisher_id, publisher_upd.model_dump(exclude_unset=True))

@router.delete("/publishers/{publisher_id}")
def delete_publisher(publisher_id: str, ctx: RequestContext = Depends(request_context),
                     services: Services = Depends(get_services)):
    services.catalog.delete_publisher(ctx, publisher_id)
    return {"ok": True}

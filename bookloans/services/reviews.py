"""Reader reviews of books.

Any logged-in user may review a book and read its reviews. A review belongs
to its author: only they may edit it, while librarians and admins may also
remove it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from bookloans.models.domain import STAFF_ROLES, Review, Role, utcnow
from bookloans.services.authorization import authorize, authorize_self_or
from bookloans.services.errors import InvalidOperation, NotFound
from bookloans.services.identity import RequestContext
from bookloans.store.base import BOOKS, REVIEWS, USERS, DocumentStore, new_id

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _check_rating(rating: int) -> None:
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidOperation(f"Rating must be between {MIN_RATING} and {MAX_RATING}")


class ReviewService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.clock = clock

    def add_review(self, ctx: RequestContext, book_id: str, rating: int, content: Optional[str] = None) -> Review:
        identity = authorize(ctx.identity, *Role)
        _check_rating(rating)
        doc = {
            "id": new_id(),
            "book_id": book_id,
            "user_id": identity.user_id,
            "rating": rating,
            "content": content,
            "created_at": self.clock(),
        }
        with self.store.unit_of_work() as uow:
            if uow.find_by_id(BOOKS, book_id) is None:
                raise NotFound(f"Book {book_id} not found")
            if uow.find_by_id(USERS, identity.user_id) is None:
                raise NotFound(f"User {identity.user_id} not found")
            uow.insert(REVIEWS, doc)
            created = uow.find_by_id(REVIEWS, doc["id"])
        logger.info(f"User {identity.user_id} reviewed book {book_id} rating={rating}")
        return Review.from_document(created)

    def list_reviews(self, ctx: RequestContext, book_id: str) -> List[Review]:
        """Reviews of ``book_id``, oldest first."""
        authorize(ctx.identity, *Role)
        with self.store.unit_of_work() as uow:
            if uow.find_by_id(BOOKS, book_id) is None:
                raise NotFound(f"Book {book_id} not found")
            docs = uow.find(REVIEWS, book_id=book_id)
        reviews = [Review.from_document(d) for d in docs]
        return sorted(reviews, key=lambda r: (r.created_at, r.id))

    def update_review(
        self,
        ctx: RequestContext,
        review_id: str,
        rating: Optional[int] = None,
        content: Optional[str] = None,
    ) -> Review:
        if rating is not None:
            _check_rating(rating)
        changes = {k: v for k, v in (("rating", rating), ("content", content)) if v is not None}
        with self.store.unit_of_work() as uow:
            doc = self._load(uow, ctx, review_id)
            authorize_self_or(ctx.identity, doc["user_id"])
            if changes:
                uow.update(REVIEWS, review_id, changes, expected_version=doc["version"])
            updated = uow.find_by_id(REVIEWS, review_id)
        return Review.from_document(updated)

    def delete_review(self, ctx: RequestContext, review_id: str) -> None:
        with self.store.unit_of_work() as uow:
            doc = self._load(uow, ctx, review_id)
            authorize_self_or(ctx.identity, doc["user_id"], *STAFF_ROLES)
            uow.delete(REVIEWS, review_id, expected_version=doc["version"])
        logger.info(f"Deleted review id={review_id}")

    def _load(self, uow, ctx, review_id):
        authorize(ctx.identity, *Role)
        doc = uow.find_by_id(REVIEWS, review_id)
        if doc is None:
            raise NotFound(f"Review {review_id} not found")
        return doc

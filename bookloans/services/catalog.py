import logging

from bookloans.models.domain import Author, Availability, Book, Publisher, Role, utcnow
from bookloans.services.authorization import authorize
from bookloans.services.errors import InvalidOperation, NotFound
from bookloans.store.base import AUTHORS, BOOKS, PUBLISHERS, REVIEWS, new_id

logger = logging.getLogger(__name__)

# fields a book update may touch; availability belongs to the ledger
BOOK_FIELDS = ("title", "author", "isbn", "description", "published_year")
AUTHOR_FIELDS = ("name", "biography", "birth_date", "nationality", "awards", "website_url")
PUBLISHER_FIELDS = ("name", "founded_year", "location", "website_url")


class CatalogService:
    def __init__(self, store):
        self.store = store

    def _add(self, ctx, collection, fields, data, **extra):
        authorize(ctx.identity, Role.ADMIN)
        doc = {k: data.get(k) for k in fields}
        doc.update(id=new_id(), created_at=utcnow(), **extra)
        with self.store.unit_of_work() as uow:
            uow.insert(collection, doc)
            created = uow.find_by_id(collection, doc["id"])
        logger.info(f"Created {collection} id={doc['id']}")
        return created

    def _get(self, collection, label, doc_id):
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(collection, doc_id)
        if doc is None:
            raise NotFound(f"{label} {doc_id} not found")
        return doc

    def _list(self, collection, sort_field, skip, limit):
        with self.store.unit_of_work() as uow:
            docs = uow.find(collection)
        docs.sort(key=lambda d: (d[sort_field].lower(), d["id"]))
        return docs[skip:skip + limit]

    def _update(self, ctx, collection, label, doc_id, fields, changes):
        authorize(ctx.identity, Role.ADMIN)
        data = {k: v for k, v in changes.items() if k in fields}
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(collection, doc_id)
            if doc is None:
                raise NotFound(f"{label} {doc_id} not found")
            if data:
                uow.update(collection, doc_id, data, expected_version=doc["version"])
            updated = uow.find_by_id(collection, doc_id)
        logger.info(f"Updated {collection} id={doc_id}")
        return updated

    def _delete(self, ctx, collection, label, doc_id):
        authorize(ctx.identity, Role.ADMIN)
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(collection, doc_id)
            if doc is None:
                raise NotFound(f"{label} {doc_id} not found")
            uow.delete(collection, doc_id, expected_version=doc["version"])
        logger.info(f"Deleted {collection} id={doc_id}")

    # -----------------------------
    # Books
    # -----------------------------
    def add_book(self, ctx, data):
        doc = self._add(ctx, BOOKS, BOOK_FIELDS, data, availability=Availability.AVAILABLE.value)
        return Book.from_document(doc)

    def get_book(self, book_id):
        return Book.from_document(self._get(BOOKS, "Book", book_id))

    def list_books(self, skip=0, limit=20):
        return [Book.from_document(d) for d in self._list(BOOKS, "title", skip, limit)]

    def update_book(self, ctx, book_id, changes):
        return Book.from_document(self._update(ctx, BOOKS, "Book", book_id, BOOK_FIELDS, changes))

    def delete_book(self, ctx, book_id):
        """Remove a book and its reviews. Checked-out books stay until returned."""
        authorize(ctx.identity, Role.ADMIN)
        with self.store.unit_of_work() as uow:
            doc = uow.find_by_id(BOOKS, book_id)
            if doc is None:
                raise NotFound(f"Book {book_id} not found")
            if doc["availability"] != Availability.AVAILABLE.value:
                raise InvalidOperation("Cannot delete book with active loans")
            uow.delete(BOOKS, book_id, expected_version=doc["version"])
            for review in uow.find(REVIEWS, book_id=book_id):
                uow.delete(REVIEWS, review["id"])
        logger.info(f"Deleted book id={book_id}")

    # -----------------------------
    # Authors
    # -----------------------------
    def add_author(self, ctx, data):
        doc = self._add(ctx, AUTHORS, AUTHOR_FIELDS, data, awards=list(data.get("awards") or []))
        return Author.from_document(doc)

    def get_author(self, author_id):
        return Author.from_document(self._get(AUTHORS, "Author", author_id))

    def list_authors(self, skip=0, limit=50):
        return [Author.from_document(d) for d in self._list(AUTHORS, "name", skip, limit)]

    def update_author(self, ctx, author_id, changes):
        return Author.from_document(self._update(ctx, AUTHORS, "Author", author_id, AUTHOR_FIELDS, changes))

    def delete_author(self, ctx, author_id):
        self._delete(ctx, AUTHORS, "Author", author_id)

    # -----------------------------
    # Publishers
    # -----------------------------
    def add_publisher(self, ctx, data):
        return Publisher.from_document(self._add(ctx, PUBLISHERS, PUBLISHER_FIELDS, data))

    def get_publisher(self, publisher_id):
        return Publisher.from_document(self._get(PUBLISHERS, "Publisher", publisher_id))

    def list_publishers(self, skip=0, limit=50):
        return [Publisher.from_document(d) for d in self._list(PUBLISHERS, "name", skip, limit)]

    def update_publisher(self, ctx, publisher_id, changes):
        doc = self._update(ctx, PUBLISHERS, "Publisher", publisher_id, PUBLISHER_FIELDS, changes)
        return Publisher.from_document(doc)

    def delete_publisher(self, ctx, publisher_id):
        self._delete(ctx, PUBLISHERS, "Publisher", publisher_id)

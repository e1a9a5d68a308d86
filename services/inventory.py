"""Copy accounting for the catalog.

Every change to ``available_copies`` goes through this module. Borrowing takes
a copy with one atomic conditional update, so two readers can never both take
the last copy. Returns and total-copy edits use compare-and-swap on the
current counts and retry a few times before giving up.

A borrow or a return touches two documents (the book and its borrow record)
without a transaction. When only one side lands, the caller gets a
PartialFailureError instead of a silent success.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pydantic
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

import models
from config import settings
from database import obj_to_str, to_object_id, utcnow, wrap_store_errors
from exceptions import (
    AlreadyBorrowedError,
    DuplicateISBNError,
    NoActiveBorrowError,
    NoCopiesAvailableError,
    NotFoundError,
    PartialFailureError,
    UpdateConflictError,
    ValidationError,
)
from services.catalog import serialize_book

logger = logging.getLogger(__name__)

REQUIRED_BOOK_FIELDS = ("title", "author", "genre", "published_year", "publisher", "total_copies")
BOOK_SUMMARY_PROJECTION = {"title": 1, "author": 1, "isbn": 1, "image_url": 1}


def _field_errors(exc: pydantic.ValidationError) -> dict:
    errors = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "body"
        errors.setdefault(field, []).append(err["msg"])
    return errors


def _book_id_or_404(book_id):
    oid = to_object_id(book_id)
    if oid is None:
        raise NotFoundError("Book not found")
    return oid


def serialize_borrow(doc: dict, book: Optional[dict] = None, now: Optional[datetime] = None) -> dict:
    """Flatten a borrow record for responses.

    ``is_overdue`` is only worked out for active records and only when ``now``
    is given; returned records keep it as None.
    """
    borrow = {
        "id": obj_to_str(doc["_id"]),
        "user_id": obj_to_str(doc["user_id"]),
        "book_id": obj_to_str(doc["book_id"]),
        "borrowed_date": doc["borrowed_date"],
        "due_date": doc["due_date"],
        "returned": doc["returned"],
        "return_date": doc.get("return_date"),
        "is_overdue": None,
        "book": None,
    }
    if now is not None and not doc["returned"]:
        borrow["is_overdue"] = now > doc["due_date"]
    if book is not None:
        borrow["book"] = {
            "id": obj_to_str(book["_id"]),
            "title": book.get("title"),
            "author": book.get("author"),
            "isbn": book.get("isbn"),
            "image_url": book.get("image_url"),
        }
    return borrow


# ---------- Books ----------
@wrap_store_errors
async def create_book(db, fields: dict, now: Optional[datetime] = None) -> dict:
    try:
        book = models.BookCreate.model_validate(fields)
    except pydantic.ValidationError as e:
        raise ValidationError(_field_errors(e), "Invalid book data") from e

    if await db.books.find_one({"isbn": book.isbn}, {"_id": 1}):
        raise DuplicateISBNError()

    now = now or utcnow()
    doc = {
        **book.model_dump(mode="json"),
        "available_copies": book.total_copies,
        "created_at": now,
        "updated_at": now,
    }
    try:
        await db.books.insert_one(doc)
    except DuplicateKeyError as e:
        raise DuplicateISBNError() from e

    logger.info(f"Book created: {doc['_id']} isbn={book.isbn} copies={book.total_copies}")
    return serialize_book(doc)


@wrap_store_errors
async def update_book(db, book_id, fields: dict, now: Optional[datetime] = None) -> dict:
    """Apply a partial update. ``isbn`` cannot change and is dropped.

    Changing ``total_copies`` shifts ``available_copies`` by the same delta
    (floored at 0) so copies that are out on loan stay accounted for.
    """
    fields = {k: v for k, v in dict(fields).items() if k != "isbn"}
    try:
        update = models.BookUpdate.model_validate(fields)
    except pydantic.ValidationError as e:
        raise ValidationError(_field_errors(e), "Invalid book data") from e

    changes = update.model_dump(mode="json", exclude_unset=True)
    nulls = {k: ["field cannot be null"] for k in REQUIRED_BOOK_FIELDS if k in changes and changes[k] is None}
    if nulls:
        raise ValidationError(nulls, "Invalid book data")

    oid = _book_id_or_404(book_id)
    for attempt in range(settings.cas_max_retries):
        book = await db.books.find_one({"_id": oid})
        if not book:
            raise NotFoundError("Book not found")

        new_values = {**changes, "updated_at": now or utcnow()}
        new_total = changes.get("total_copies")
        if new_total is not None and new_total != book["total_copies"]:
            delta = new_total - book["total_copies"]
            new_values["available_copies"] = max(0, book["available_copies"] + delta)

        updated = await db.books.find_one_and_update(
            {
                "_id": oid,
                "total_copies": book["total_copies"],
                "available_copies": book["available_copies"],
            },
            {"$set": new_values},
            return_document=ReturnDocument.AFTER,
        )
        if updated:
            logger.info(f"Book updated: {oid} fields={sorted(changes)}")
            return serialize_book(updated)
        logger.warning(f"Copy counts of book {oid} changed during update, retrying ({attempt + 1})")

    raise UpdateConflictError()


@wrap_store_errors
async def delete_book(db, book_id) -> None:
    oid = _book_id_or_404(book_id)
    result = await db.books.delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise NotFoundError("Book not found")
    logger.info(f"Book deleted: {oid}")


# ---------- Copies ----------
async def _release_copy(db, book_oid) -> bool:
    """Give one copy back to the book, never going above ``total_copies``.

    Returns False when the book no longer exists. Raises UpdateConflictError
    when the counts keep moving under us.
    """
    for _ in range(settings.cas_max_retries):
        book = await db.books.find_one({"_id": book_oid}, {"total_copies": 1, "available_copies": 1})
        if not book:
            logger.warning(f"Book {book_oid} is gone, copy not released")
            return False

        current = book["available_copies"]
        if current >= book["total_copies"]:
            logger.warning(f"Book {book_oid} already has all {current} copies on the shelf")
            return True

        result = await db.books.update_one(
            {"_id": book_oid, "available_copies": current},
            {"$set": {"available_copies": current + 1}},
        )
        if result.modified_count == 1:
            return True

    raise UpdateConflictError()


# ---------- Borrowing ----------
@wrap_store_errors
async def borrow_book(db, user_id, book_id, now: Optional[datetime] = None) -> dict:
    book_oid = _book_id_or_404(book_id)
    user_oid = to_object_id(user_id)
    if user_oid is None:
        raise NotFoundError("User not found")

    if not await db.books.find_one({"_id": book_oid}, {"_id": 1}):
        raise NotFoundError("Book not found")

    active = await db.borrow_records.find_one(
        {"user_id": user_oid, "book_id": book_oid, "returned": False}, {"_id": 1}
    )
    if active:
        raise AlreadyBorrowedError()

    taken = await db.books.find_one_and_update(
        {"_id": book_oid, "available_copies": {"$gt": 0}},
        {"$inc": {"available_copies": -1}},
        return_document=ReturnDocument.AFTER,
    )
    if not taken:
        if not await db.books.find_one({"_id": book_oid}, {"_id": 1}):
            raise NotFoundError("Book not found")
        raise NoCopiesAvailableError()

    now = now or utcnow()
    record = {
        "user_id": user_oid,
        "book_id": book_oid,
        "borrowed_date": now,
        "due_date": now + timedelta(days=settings.loan_period_days),
        "returned": False,
        "return_date": None,
    }
    try:
        await db.borrow_records.insert_one(record)
    except PyMongoError as e:
        try:
            compensated = await _release_copy(db, book_oid)
        except (PyMongoError, UpdateConflictError) as comp_err:
            logger.error(f"Could not give back copy of book {book_oid}: {comp_err}")
            compensated = False

        if isinstance(e, DuplicateKeyError) and compensated:
            # a concurrent borrow by the same user won the unique index
            raise AlreadyBorrowedError() from e
        logger.error(f"Borrow record for user {user_oid} book {book_oid} not saved: {e}")
        raise PartialFailureError(
            "Book copy was taken but the borrow record could not be saved",
            compensated=compensated,
        ) from e

    logger.info(f"User {user_oid} borrowed book {book_oid}, {taken['available_copies']} left")
    return serialize_borrow(record, now=now)


@wrap_store_errors
async def return_book(db, user_id, book_id, now: Optional[datetime] = None) -> dict:
    user_oid = to_object_id(user_id)
    book_oid = to_object_id(book_id)
    if user_oid is None or book_oid is None:
        raise NoActiveBorrowError()

    now = now or utcnow()
    record = await db.borrow_records.find_one_and_update(
        {"user_id": user_oid, "book_id": book_oid, "returned": False},
        {"$set": {"returned": True, "return_date": now}},
        return_document=ReturnDocument.AFTER,
    )
    if not record:
        raise NoActiveBorrowError()

    try:
        await _release_copy(db, book_oid)
    except (PyMongoError, UpdateConflictError) as e:
        logger.error(f"Borrow {record['_id']} closed but copy of book {book_oid} not released: {e}")
        raise PartialFailureError(
            "Borrow record was closed but the book's available copies could not be updated"
        ) from e

    logger.info(f"User {user_oid} returned book {book_oid}")
    return serialize_borrow(record)


# ---------- Listings ----------
async def _books_by_id(db, book_ids) -> dict:
    books = {}
    async for book in db.books.find({"_id": {"$in": list(book_ids)}}, BOOK_SUMMARY_PROJECTION):
        books[book["_id"]] = book
    return books


async def _list_borrows(db, query: dict, now: Optional[datetime]) -> list:
    records = [r async for r in db.borrow_records.find(query).sort("_id", 1)]
    books = await _books_by_id(db, {r["book_id"] for r in records})
    return [serialize_borrow(r, books.get(r["book_id"]), now) for r in records]


@wrap_store_errors
async def list_active_borrows(db, user_id, now: Optional[datetime] = None) -> list:
    user_oid = to_object_id(user_id)
    if user_oid is None:
        return []
    return await _list_borrows(db, {"user_id": user_oid, "returned": False}, now or utcnow())


@wrap_store_errors
async def list_borrow_history(db, user_id, now: Optional[datetime] = None) -> list:
    user_oid = to_object_id(user_id)
    if user_oid is None:
        return []
    return await _list_borrows(db, {"user_id": user_oid}, now or utcnow())

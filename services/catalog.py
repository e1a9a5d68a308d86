import math
import re
from typing import Optional

from config import settings
from database import obj_to_str, to_object_id, wrap_store_errors
from exceptions import NotFoundError, ValidationError

NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


def serialize_book(doc: dict) -> dict:
    book = dict(doc)
    book["id"] = obj_to_str(book.pop("_id"))
    return book


def build_search_query(search: Optional[str] = None, genre: Optional[str] = None) -> dict:
    """Mongo filter for the catalog listing.

    ``search`` is a case-insensitive substring over title or author. ``genre``
    must match the whole value, ignoring case, so "Academic" does not pick up
    "Non-Academic" books.
    """
    query = {}
    search = (search or "").strip()
    genre = (genre or "").strip()

    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"author": {"$regex": pattern, "$options": "i"}},
        ]
    if genre:
        query["genre"] = {"$regex": f"^{re.escape(genre)}$", "$options": "i"}
    return query


@wrap_store_errors
async def search_books(db, search: Optional[str] = None, genre: Optional[str] = None,
                       page: int = 1, page_size: Optional[int] = None) -> dict:
    if page_size is None:
        page_size = settings.default_page_size

    errors = {}
    if page < 1:
        errors["page"] = ["must be at least 1"]
    if page_size < 1:
        errors["page_size"] = ["must be at least 1"]
    if errors:
        raise ValidationError(errors, "Invalid pagination parameters")

    page_size = min(page_size, settings.max_page_size)
    query = build_search_query(search, genre)

    total = await db.books.count_documents(query)
    cursor = db.books.find(query).sort(NEWEST_FIRST).skip((page - 1) * page_size).limit(page_size)
    books = [serialize_book(b) async for b in cursor]

    return {
        "books": books,
        "total": total,
        "total_pages": math.ceil(total / page_size),
        "current_page": page,
    }


@wrap_store_errors
async def get_book(db, book_id) -> dict:
    oid = to_object_id(book_id)
    book = await db.books.find_one({"_id": oid}) if oid is not None else None
    if not book:
        raise NotFoundError("Book not found")
    return serialize_book(book)

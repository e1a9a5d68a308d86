from datetime import timedelta

import pytest
from bson import ObjectId

from config import settings
from exceptions import NotFoundError, ValidationError
from services import catalog, inventory
from tests.conftest import NOW, book_fields


async def seed(db):
    """Five books created a minute apart, oldest first."""
    rows = [
        ("Introduction to Algorithms", "Cormen", "Academic"),
        ("The Hobbit", "J.R.R. Tolkien", "Non-Academic"),
        ("Algorithms Unlocked", "Thomas Cormen", "Academic"),
        ("Dune", "Frank Herbert", "Non-Academic"),
        ("Linear Algebra Done Right", "Sheldon Axler", "Academic"),
    ]
    books = []
    for i, (title, author, genre) in enumerate(rows):
        books.append(await inventory.create_book(
            db,
            book_fields(title=title, author=author, genre=genre, isbn=f"isbn-{i}"),
            now=NOW + timedelta(minutes=i),
        ))
    return books


async def test_search_without_filters_is_newest_first(db):
    await seed(db)
    result = await catalog.search_books(db)
    assert [b["title"] for b in result["books"]] == [
        "Linear Algebra Done Right",
        "Dune",
        "Algorithms Unlocked",
        "The Hobbit",
        "Introduction to Algorithms",
    ]
    assert result["total"] == 5
    assert result["total_pages"] == 1
    assert result["current_page"] == 1


async def test_search_by_genre_excludes_non_academic(db):
    await seed(db)
    result = await catalog.search_books(db, genre="Academic", page=1, page_size=10)
    assert [b["title"] for b in result["books"]] == [
        "Linear Algebra Done Right",
        "Algorithms Unlocked",
        "Introduction to Algorithms",
    ]
    assert result["total"] == 3
    assert result["total_pages"] == 1


async def test_genre_match_ignores_case(db):
    await seed(db)
    result = await catalog.search_books(db, genre="non-academic")
    assert {b["title"] for b in result["books"]} == {"The Hobbit", "Dune"}


async def test_search_text_matches_title_or_author(db):
    await seed(db)
    by_title = await catalog.search_books(db, search="algorithms")
    assert {b["title"] for b in by_title["books"]} == {"Introduction to Algorithms", "Algorithms Unlocked"}

    by_author = await catalog.search_books(db, search="TOLKIEN")
    assert [b["title"] for b in by_author["books"]] == ["The Hobbit"]


async def test_search_and_genre_combine(db):
    await seed(db)
    result = await catalog.search_books(db, search="cormen", genre="Academic")
    assert result["total"] == 2
    result = await catalog.search_books(db, search="cormen", genre="Non-Academic")
    assert result["total"] == 0
    assert result["books"] == []
    assert result["total_pages"] == 0


async def test_search_text_is_literal(db):
    await seed(db)
    result = await catalog.search_books(db, search="J.R.R.")
    assert result["total"] == 1
    result = await catalog.search_books(db, search=".*")
    assert result["total"] == 0


async def test_pagination(db):
    await seed(db)
    first = await catalog.search_books(db, page=1, page_size=2)
    third = await catalog.search_books(db, page=3, page_size=2)
    beyond = await catalog.search_books(db, page=4, page_size=2)

    assert [b["title"] for b in first["books"]] == ["Linear Algebra Done Right", "Dune"]
    assert [b["title"] for b in third["books"]] == ["Introduction to Algorithms"]
    assert first["total_pages"] == 3
    assert beyond["books"] == []
    assert beyond["total"] == 5


async def test_page_size_is_capped(db, monkeypatch):
    monkeypatch.setattr(settings, "max_page_size", 2)
    await seed(db)
    result = await catalog.search_books(db, page_size=50)
    assert len(result["books"]) == 2
    assert result["total_pages"] == 3


@pytest.mark.parametrize("page,page_size,field", [(0, 10, "page"), (1, 0, "page_size")])
async def test_invalid_pagination(db, page, page_size, field):
    with pytest.raises(ValidationError) as exc:
        await catalog.search_books(db, page=page, page_size=page_size)
    assert field in exc.value.errors


async def test_get_book(db):
    books = await seed(db)
    book = await catalog.get_book(db, books[1]["id"])
    assert book["title"] == "The Hobbit"
    assert book["available_copies"] == book["total_copies"]


@pytest.mark.parametrize("book_id", [str(ObjectId()), "nope"])
async def test_get_book_not_found(db, book_id):
    with pytest.raises(NotFoundError):
        await catalog.get_book(db, book_id)

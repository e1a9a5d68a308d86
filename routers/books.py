from typing import Optional

from fastapi import APIRouter, Depends, Query, status

import models
from services import catalog, inventory
from utils.dependencies import admin_required, get_db

router = APIRouter(prefix="/books", tags=["Books"])

@router.get("/", response_model=models.BookPage)
async def list_books(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    genre: Optional[str] = None,
    db=Depends(get_db),
):
    """Search the catalog, newest books first. ``limit`` is capped at MAX_PAGE_SIZE."""
    return await catalog.search_books(db, search=search, genre=genre, page=page, page_size=limit)

@router.get("/{book_id}", response_model=models.BookResponse)
async def get_book(book_id: str, db=Depends(get_db)):
    return await catalog.get_book(db, book_id)

@router.post("/", response_model=models.BookResponse, status_code=status.HTTP_201_CREATED)
async def add_book(book: models.BookCreate, admin=Depends(admin_required), db=Depends(get_db)):
    return await inventory.create_book(db, book.model_dump(mode="json"))

@router.put("/{book_id}", response_model=models.BookResponse)
async def update_book(book_id: str, book: models.BookUpdate, admin=Depends(admin_required), db=Depends(get_db)):
    return await inventory.update_book(db, book_id, book.model_dump(mode="json", exclude_unset=True))

@router.delete("/{book_id}", response_model=models.Message)
async def delete_book(book_id: str, admin=Depends(admin_required), db=Depends(get_db)):
    await inventory.delete_book(db, book_id)
    return {"message": "Book deleted successfully"}

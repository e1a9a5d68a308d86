from fastapi import APIRouter, Depends

import models
from services import inventory
from utils.dependencies import get_current_user, get_db

router = APIRouter(prefix="/borrow", tags=["Borrow"])

@router.get("/my-books", response_model=list[models.BorrowResponse])
async def get_my_books(current_user=Depends(get_current_user), db=Depends(get_db)):
    """Books the caller currently holds, each flagged when overdue."""
    return await inventory.list_active_borrows(db, current_user["id"])

@router.get("/history", response_model=list[models.BorrowResponse])
async def get_history(current_user=Depends(get_current_user), db=Depends(get_db)):
    return await inventory.list_borrow_history(db, current_user["id"])

@router.post("/return/{book_id}", response_model=models.BorrowResult)
async def return_book(book_id: str, current_user=Depends(get_current_user), db=Depends(get_db)):
    borrow = await inventory.return_book(db, current_user["id"], book_id)
    return {"message": "Book returned successfully", "borrow": borrow}

@router.post("/{book_id}", response_model=models.BorrowResult)
async def borrow_book(book_id: str, current_user=Depends(get_current_user), db=Depends(get_db)):
    borrow = await inventory.borrow_book(db, current_user["id"], book_id)
    return {"message": "Book borrowed successfully", "due_date": borrow["due_date"], "borrow": borrow}

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from typing import Annotated, List, Optional
from datetime import datetime
from enum import Enum

MIN_PUBLISHED_YEAR = 1000


class Role(str, Enum):
    user = "user"
    admin = "admin"


class Genre(str, Enum):
    academic = "Academic"
    non_academic = "Non-Academic"


# ---------- Auth ----------
class UserBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1, pattern=r"^[^@]+$")
    email: EmailStr

class UserCreate(UserBase):
    password: str = Field(..., min_length=6)

class UserResponse(UserBase):
    id: str
    role: Role

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

# ---------- Books ----------
def _check_published_year(value):
    current_year = datetime.now().year
    if value is not None and not MIN_PUBLISHED_YEAR <= value <= current_year:
        raise ValueError(f"published_year must be between {MIN_PUBLISHED_YEAR} and {current_year}")
    return value


PublishedYear = Annotated[int, AfterValidator(_check_published_year)]


class BookBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    genre: Genre
    published_year: PublishedYear
    publisher: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None

class BookCreate(BookBase):
    isbn: str = Field(..., min_length=1)
    total_copies: int = Field(..., ge=1)

class BookUpdate(BaseModel):
    """Partial update. ``isbn`` is not part of it and is dropped if sent."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    genre: Optional[Genre] = None
    published_year: Optional[PublishedYear] = None
    publisher: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    total_copies: Optional[int] = Field(None, ge=1)

class BookResponse(BookBase):
    id: str
    isbn: str
    total_copies: int
    available_copies: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class BookPage(BaseModel):
    books: List[BookResponse]
    total: int
    total_pages: int
    current_page: int

class BookSummary(BaseModel):
    id: str
    title: str
    author: str
    isbn: str
    image_url: Optional[str] = None

# ---------- Borrow ----------
class BorrowResponse(BaseModel):
    id: str
    user_id: str
    book_id: str
    borrowed_date: datetime
    due_date: datetime
    returned: bool
    return_date: Optional[datetime] = None
    is_overdue: Optional[bool] = None  # only computed for active borrows
    book: Optional[BookSummary] = None

class BorrowResult(BaseModel):
    message: str
    due_date: Optional[datetime] = None
    borrow: Optional[BorrowResponse] = None

class Message(BaseModel):
    message: str

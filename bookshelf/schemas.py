"""Request/response models shared by the API layer and the typed client."""
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field

from bookshelf.book import NO_DESCRIPTION, UNKNOWN_AUTHOR, WANT_TO_READ


# --- Auth ---
class RegisterRequest(BaseModel):
    # Optional here so missing fields get the service's own message instead of a 422
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserModel(BaseModel):
    id: int
    username: str
    email: str


class AuthResponse(UserModel):
    token: str


# --- Catalog search ---
class CatalogBookModel(BaseModel):
    catalogId: str
    title: str
    subtitle: str = ""
    authors: List[str] = Field(default_factory=lambda: [UNKNOWN_AUTHOR])
    description: str = NO_DESCRIPTION
    thumbnail: str = ""
    link: str = ""


class SearchResponse(BaseModel):
    success: bool = True
    count: int
    totalItems: int
    currentPage: int
    booksPerPage: int
    totalPages: int
    data: List[CatalogBookModel]


# --- Saved books ---
class SavedBookCreate(BaseModel):
    catalogId: Optional[str] = Field(default=None, validation_alias=AliasChoices("catalogId", "googleId"))
    title: Optional[str] = None
    subtitle: Optional[str] = None
    authors: Optional[List[str]] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    link: Optional[str] = None


class SavedBookUpdate(BaseModel):
    status: Optional[str] = None
    personalReview: Optional[str] = None


class SavedBookModel(BaseModel):
    id: int
    userId: int
    catalogId: str
    title: str
    subtitle: str = ""
    authors: List[str]
    description: str
    thumbnail: str = ""
    link: str = ""
    status: str = WANT_TO_READ
    personalReview: str = ""
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class BookListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[SavedBookModel]


class BookResponse(BaseModel):
    success: bool = True
    data: SavedBookModel


class BookDeleteResponse(BaseModel):
    success: bool = True
    message: str
    data: SavedBookModel


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None

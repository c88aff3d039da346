import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, Security
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookshelf.auth import CredentialStore, User
from bookshelf.config import configure_logging, settings
from bookshelf.database import get_db_connection
from bookshelf.errors import BookshelfError
from bookshelf.library import Library
from bookshelf.schemas import (
    AuthResponse,
    BookDeleteResponse,
    BookListResponse,
    BookResponse,
    ErrorResponse,
    LoginRequest,
    RegisterRequest,
    SavedBookCreate,
    SavedBookUpdate,
    SearchResponse,
    UserModel,
)
from bookshelf.services.google_books_service import GoogleBooksService, SearchFilters
from bookshelf.services.http_client import cleanup_http_client, get_http_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Start shared resources
    configure_logging()
    await get_http_client()
    logger.info(f"{settings.app_name} {settings.app_version} starting ({settings.environment})")
    try:
        yield
    finally:
        # Release them on shutdown
        await cleanup_http_client()


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    # Per-user data must never be cached by intermediaries
    if request.url.path.startswith("/books") or request.url.path.startswith("/auth"):
        response.headers["Cache-Control"] = "no-store"
    return response


# --- Error handling ---
def _error_body(message: str, detail: Optional[str] = None) -> dict:
    return ErrorResponse(message=message, error=detail).model_dump(exclude_none=True)


@app.exception_handler(BookshelfError)
async def bookshelf_error_handler(request: Request, exc: BookshelfError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {field} {first.get('msg', '')}".strip()
    else:
        message = "Invalid request"
    logger.warning(f"{request.method} {request.url.path} -> 400: {message}")
    return JSONResponse(status_code=400, content=_error_body(message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content=_error_body("Route not found"))
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    detail = None if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content=_error_body("Something went wrong!", detail))


# --- Dependencies ---
_library: Optional[Library] = None
_credential_store: Optional[CredentialStore] = None
_catalog: Optional[GoogleBooksService] = None


def get_library() -> Library:
    global _library
    if _library is None:
        _library = Library()
    return _library


def get_credential_store() -> CredentialStore:
    global _credential_store
    if _credential_store is None:
        _credential_store = CredentialStore()
    return _credential_store


def get_catalog_service() -> GoogleBooksService:
    global _catalog
    if _catalog is None:
        _catalog = GoogleBooksService()
    return _catalog


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    store: CredentialStore = Depends(get_credential_store),
) -> User:
    """Authorization gate for every per-user route."""
    token = credentials.credentials if credentials else None
    return store.verify_token(token)


# --- Health check ---
@app.get("/health")
def health():
    """Lightweight liveness probe with a quick database round-trip."""
    db_ok = True
    try:
        conn = get_db_connection(get_library().db_file)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    except Exception:
        logger.exception("Health check database probe failed")
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": db_ok,
    }


# --- Auth endpoints ---
@app.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, store: CredentialStore = Depends(get_credential_store)):
    result = store.register(payload.username, payload.email, payload.password)
    return result.to_dict()


@app.post("/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, store: CredentialStore = Depends(get_credential_store)):
    result = store.login(payload.email, payload.password)
    return result.to_dict()


@app.get("/auth/me", response_model=UserModel)
def me(user: User = Depends(get_current_user)):
    return user.to_dict()


# --- Catalog search (public) ---
@app.get("/books/search", response_model=SearchResponse)
async def search_books(
    query: Optional[str] = Query(None, description="Search term"),
    page: int = Query(1, description="1-based page number"),
    filter: Optional[str] = Query(None, description="partial, full, free-ebooks, paid-ebooks or ebooks"),
    printType: Optional[str] = Query(None, description="all, books or magazines"),
    freeOnly: bool = Query(False, description="Only free ebooks"),
    catalog: GoogleBooksService = Depends(get_catalog_service),
):
    filters = SearchFilters(free_only=freeOnly, ebook_filter=filter, print_type=printType)
    result = await catalog.search(query, page, filters)
    return {
        "success": True,
        "count": len(result.items),
        "totalItems": result.total_items,
        "currentPage": result.current_page,
        "booksPerPage": result.page_size,
        "totalPages": result.total_pages,
        "data": [book.to_dict() for book in result.items],
    }


# --- Personal library (gated) ---
@app.get("/books", response_model=BookListResponse)
def list_books(
    status: Optional[str] = Query(None, description="Only books with this reading status"),
    user: User = Depends(get_current_user),
    library: Library = Depends(get_library),
):
    # An empty ?status= means no filter
    books = library.list_books(user.id, status=status or None)
    return {"success": True, "count": len(books), "data": [b.to_dict() for b in books]}


@app.post("/books", response_model=BookResponse, status_code=201)
def create_book(
    payload: SavedBookCreate,
    user: User = Depends(get_current_user),
    library: Library = Depends(get_library),
):
    book = library.add_book(user.id, payload.model_dump())
    return {"success": True, "data": book.to_dict()}


@app.put("/books/{book_id}", response_model=BookResponse)
def update_book(
    book_id: str,
    payload: SavedBookUpdate,
    user: User = Depends(get_current_user),
    library: Library = Depends(get_library),
):
    book = library.update_book(
        user.id,
        book_id,
        status=payload.status,
        personal_review=payload.personalReview,
    )
    return {"success": True, "data": book.to_dict()}


@app.delete("/books/{book_id}", response_model=BookDeleteResponse)
def delete_book(
    book_id: str,
    user: User = Depends(get_current_user),
    library: Library = Depends(get_library),
):
    book = library.remove_book(user.id, book_id)
    return {"success": True, "message": "Book removed from library", "data": book.to_dict()}

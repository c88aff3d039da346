"""Typed HTTP client for the bookshelf API.

``BookshelfClient`` covers the public routes (register, login, search).
Routes behind the authorization gate live on ``LibraryClient``, which can
only be built from an ``AuthSession``::

    client = BookshelfClient("http://127.0.0.1:8000")
    session = client.login("alice@x.com", "pw123456")
    books = client.authenticated(session).list_books()
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from bookshelf.errors import UpstreamError, error_for_status
from bookshelf.schemas import (
    AuthResponse,
    BookDeleteResponse,
    BookListResponse,
    BookResponse,
    CatalogBookModel,
    SavedBookModel,
    SearchResponse,
    UserModel,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    """Credentials of the signed-in user."""

    token: str
    user: UserModel

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token, "user": self.user.model_dump()}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AuthSession":
        return AuthSession(token=data["token"], user=UserModel.model_validate(data["user"]))

    @staticmethod
    def from_auth_response(response: AuthResponse) -> "AuthSession":
        return AuthSession(
            token=response.token,
            user=UserModel(id=response.id, username=response.username, email=response.email),
        )


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = None
    message = body.get("message") if isinstance(body, dict) else None
    raise error_for_status(response.status_code, message or response.reason_phrase)


def _send(http: httpx.Client, method: str, path: str, **kwargs) -> Dict[str, Any]:
    try:
        response = http.request(method, path, **kwargs)
    except httpx.HTTPError as e:
        logger.debug(f"{method} {path} failed: {e}")
        raise UpstreamError(f"Could not reach the bookshelf API: {e}") from e
    _raise_for_error(response)
    return response.json()


class BookshelfClient:
    """Public API routes plus the factory for the gated ones."""

    def __init__(self, base_url: Optional[str] = None, *, http: Optional[httpx.Client] = None,
                 timeout: float = 15.0) -> None:
        if http is None:
            if not base_url:
                raise ValueError("base_url is required when no http client is given")
            http = httpx.Client(base_url=base_url, timeout=timeout)
        self._http = http

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "BookshelfClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def register(self, username: str, email: str, password: str) -> AuthSession:
        data = _send(self._http, "POST", "/auth/register",
                     json={"username": username, "email": email, "password": password})
        return AuthSession.from_auth_response(AuthResponse.model_validate(data))

    def login(self, email: str, password: str) -> AuthSession:
        data = _send(self._http, "POST", "/auth/login", json={"email": email, "password": password})
        return AuthSession.from_auth_response(AuthResponse.model_validate(data))

    def search(self, query: str, page: int = 1, *, free_only: bool = False,
               ebook_filter: Optional[str] = None, print_type: Optional[str] = None) -> SearchResponse:
        params: Dict[str, Any] = {"query": query, "page": page}
        if free_only:
            params["freeOnly"] = "true"
        if ebook_filter:
            params["filter"] = ebook_filter
        if print_type:
            params["printType"] = print_type
        return SearchResponse.model_validate(_send(self._http, "GET", "/books/search", params=params))

    def authenticated(self, session: AuthSession) -> "LibraryClient":
        return LibraryClient(self._http, session)


class LibraryClient:
    """Gated routes; every request carries the session's bearer token."""

    def __init__(self, http: httpx.Client, session: AuthSession) -> None:
        self._http = http
        self.session = session

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.session.token}"}

    def me(self) -> UserModel:
        return UserModel.model_validate(_send(self._http, "GET", "/auth/me", headers=self._headers()))

    def list_books(self, status: Optional[str] = None) -> List[SavedBookModel]:
        params = {"status": status} if status else None
        data = _send(self._http, "GET", "/books", headers=self._headers(), params=params)
        return BookListResponse.model_validate(data).data

    def save_book(self, book: CatalogBookModel) -> SavedBookModel:
        data = _send(self._http, "POST", "/books", headers=self._headers(), json=book.model_dump())
        return BookResponse.model_validate(data).data

    def update_book(self, book_id: int, *, status: Optional[str] = None,
                    personal_review: Optional[str] = None) -> SavedBookModel:
        payload: Dict[str, Any] = {}
        if status is not None:
            payload["status"] = status
        if personal_review is not None:
            payload["personalReview"] = personal_review
        data = _send(self._http, "PUT", f"/books/{book_id}", headers=self._headers(), json=payload)
        return BookResponse.model_validate(data).data

    def delete_book(self, book_id: int) -> SavedBookModel:
        data = _send(self._http, "DELETE", f"/books/{book_id}", headers=self._headers())
        return BookDeleteResponse.model_validate(data).data

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from bookshelf import api
from bookshelf.auth import CredentialStore, TokenIssuer
from bookshelf.library import Library
from bookshelf.services.google_books_service import GoogleBooksService
from bookshelf.services.http_client import OptimizedHTTPClient

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


def make_volume(volume_id: str, title: Optional[str], **info: Any) -> Dict[str, Any]:
    """Build one item shaped like a Google Books volume."""
    volume_info = dict(info)
    if title is not None:
        volume_info["title"] = title
    return {"id": volume_id, "volumeInfo": volume_info}


@pytest.fixture
def db_file(tmp_path, request):
    # Unique database file per test
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def tokens():
    return TokenIssuer(secret_key=TEST_SECRET, algorithm="HS256", expiration_minutes=60)


@pytest.fixture
def store(db_file, tokens):
    return CredentialStore(db_file=db_file, tokens=tokens)


@pytest.fixture
def lib(db_file):
    return Library(db_file=db_file)


@pytest.fixture
def users(store):
    """Two registered accounts: alice and bob."""
    alice = store.register("alice", "alice@x.com", "pw123456")
    bob = store.register("bob", "bob@x.com", "hunter22")
    return {"alice": alice, "bob": bob}


class CatalogStub:
    """Canned Google Books backend; records every request it receives."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.items: List[Dict[str, Any]] = [
            make_volume(
                "abc123", "Dune",
                authors=["Frank Herbert"],
                description="Spice and sand.",
                imageLinks={"thumbnail": "http://img/dune.jpg"},
                previewLink="http://preview/dune",
                infoLink="http://info/dune",
            ),
            make_volume("def456", "Dune Messiah", authors=["Frank Herbert"]),
        ]
        self.total_items = 42
        self.responder: Optional[Callable[[httpx.Request], httpx.Response]] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responder is not None:
            return self.responder(request)
        return httpx.Response(200, json={"totalItems": self.total_items, "items": self.items})


@pytest.fixture
def catalog_stub():
    return CatalogStub()


@pytest.fixture
def catalog(catalog_stub):
    http_client = OptimizedHTTPClient(timeout=2.0, transport=httpx.MockTransport(catalog_stub))
    return GoogleBooksService(api_key=None, base_url="https://books.test/v1", http_client=http_client)


@pytest.fixture
def api_client(lib, store, catalog):
    api.app.dependency_overrides[api.get_library] = lambda: lib
    api.app.dependency_overrides[api.get_credential_store] = lambda: store
    api.app.dependency_overrides[api.get_catalog_service] = lambda: catalog
    try:
        with TestClient(api.app) as test_client:
            yield test_client
    finally:
        api.app.dependency_overrides.clear()


@pytest.fixture
def auth_header(api_client):
    """Register alice through the API and return her Authorization header."""
    response = api_client.post(
        "/auth/register",
        json={"username": "alice", "email": "alice@x.com", "password": "pw123456"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}

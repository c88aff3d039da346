import httpx
import pytest

from bookshelf.client import AuthSession, BookshelfClient
from bookshelf.errors import AuthError, ConflictError, NotFoundError, UpstreamError, ValidationError
from bookshelf.schemas import CatalogBookModel, UserModel


@pytest.fixture
def client(api_client):
    # Route the typed client through the in-process app
    return BookshelfClient(http=api_client)


@pytest.fixture
def session(client):
    return client.register("alice", "alice@x.com", "pw123456")


def test_register_and_login(client, session):
    assert session.user.username == "alice"
    assert session.token

    again = client.login("alice@x.com", "pw123456")
    assert again.user == session.user


def test_login_bad_password(client, session):
    with pytest.raises(AuthError, match="Invalid credentials"):
        client.login("alice@x.com", "wrong-password")


def test_register_duplicate_maps_to_validation_error(client, session):
    with pytest.raises(ValidationError, match="Email already registered"):
        client.register("other", "alice@x.com", "pw123456")


def test_me(client, session):
    assert client.authenticated(session).me() == session.user


def test_bad_session_token(client, session):
    stale = AuthSession(token="garbage", user=session.user)
    with pytest.raises(AuthError, match="Invalid token"):
        client.authenticated(stale).list_books()


def test_search(client, catalog_stub):
    result = client.search("dune", 1, free_only=True, print_type="books")

    assert result.totalItems == 42
    assert [b.catalogId for b in result.data] == ["abc123", "def456"]
    params = catalog_stub.requests[0].url.params
    assert params["filter"] == "free-ebooks"
    assert params["printType"] == "books"


def test_search_upstream_failure(client, catalog_stub):
    catalog_stub.responder = lambda request: httpx.Response(500)

    with pytest.raises(UpstreamError):
        client.search("dune")


def test_library_round_trip(client, session):
    library = client.authenticated(session)
    result = client.search("dune")

    saved = library.save_book(result.data[0])
    assert saved.catalogId == "abc123"
    assert saved.link == "http://preview/dune"

    with pytest.raises(ConflictError, match="already saved"):
        library.save_book(result.data[0])

    updated = library.update_book(saved.id, status="Completed", personal_review="Classic")
    assert (updated.status, updated.personalReview) == ("Completed", "Classic")

    assert [b.id for b in library.list_books(status="Completed")] == [saved.id]
    assert library.list_books(status="Reading") == []

    removed = library.delete_book(saved.id)
    assert removed.title == "Dune"
    assert library.list_books() == []

    with pytest.raises(NotFoundError, match="Book not found in your library"):
        library.delete_book(saved.id)


def test_save_book_without_title(client, session):
    library = client.authenticated(session)
    with pytest.raises(ValidationError):
        library.save_book(CatalogBookModel(catalogId="x", title=""))


def test_unreachable_server():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.Client(base_url="http://bookshelf.test", transport=httpx.MockTransport(refuse))
    with BookshelfClient(http=http) as client:
        with pytest.raises(UpstreamError, match="Could not reach the bookshelf API"):
            client.login("alice@x.com", "pw123456")


def test_non_json_error_body():
    http = httpx.Client(
        base_url="http://bookshelf.test",
        transport=httpx.MockTransport(lambda request: httpx.Response(404, text="nope")),
    )
    with BookshelfClient(http=http) as client:
        with pytest.raises(NotFoundError, match="Not Found"):
            client.login("alice@x.com", "pw123456")


def test_session_serialization():
    session = AuthSession(token="t", user=UserModel(id=1, username="alice", email="alice@x.com"))
    assert AuthSession.from_dict(session.to_dict()) == session


def test_client_requires_base_url():
    with pytest.raises(ValueError):
        BookshelfClient()

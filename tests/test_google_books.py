import asyncio

import httpx
import pytest

from conftest import make_volume
from bookshelf.book import NO_DESCRIPTION, UNKNOWN_AUTHOR
from bookshelf.errors import UpstreamError, ValidationError
from bookshelf.services.google_books_service import (
    GoogleBooksService,
    SearchFilters,
    SearchPage,
)
from bookshelf.services.http_client import OptimizedHTTPClient


def run(coro):
    return asyncio.run(coro)


def test_search_sends_paging_params(catalog, catalog_stub):
    result = run(catalog.search("  dune  ", page=3))

    request = catalog_stub.requests[0]
    assert request.url.path == "/v1/volumes"
    assert request.url.params["q"] == "dune"
    assert request.url.params["startIndex"] == "20"
    assert request.url.params["maxResults"] == "10"
    assert "key" not in request.url.params
    assert request.headers["User-Agent"].startswith("bookshelf/")
    assert result.current_page == 3


def test_search_normalizes_results(catalog):
    result = run(catalog.search("dune"))

    assert [b.catalog_id for b in result.items] == ["abc123", "def456"]
    dune = result.items[0].to_dict()
    assert dune == {
        "catalogId": "abc123",
        "title": "Dune",
        "subtitle": "",
        "authors": ["Frank Herbert"],
        "description": "Spice and sand.",
        "thumbnail": "http://img/dune.jpg",
        "link": "http://preview/dune",
    }
    assert result.total_items == 42
    assert result.total_pages == 5


def test_search_fills_defaults(catalog, catalog_stub):
    catalog_stub.items = [
        make_volume("v1", None),
        make_volume("v2", "Small", imageLinks={"smallThumbnail": "http://img/small.jpg"},
                    infoLink="http://info/v2", authors=[]),
        {"volumeInfo": {"title": "No id"}},
    ]

    result = run(catalog.search("anything"))

    assert len(result.items) == 2
    untitled, small = result.items
    assert untitled.title == "Untitled"
    assert untitled.authors == [UNKNOWN_AUTHOR]
    assert untitled.description == NO_DESCRIPTION
    assert untitled.thumbnail == ""
    assert untitled.link == ""
    assert small.thumbnail == "http://img/small.jpg"
    assert small.link == "http://info/v2"
    assert small.authors == [UNKNOWN_AUTHOR]


def test_search_single_author_string(catalog, catalog_stub):
    catalog_stub.items = [make_volume("v1", "Emma", authors="Jane Austen")]

    result = run(catalog.search("emma"))

    assert result.items[0].authors == ["Jane Austen"]


def test_search_no_items(catalog, catalog_stub):
    catalog_stub.items = []
    catalog_stub.total_items = 0

    result = run(catalog.search("zzzz"))

    assert result.items == []
    assert result.total_items == 0
    assert result.total_pages == 0


def test_total_items_never_below_page_count(catalog, catalog_stub):
    catalog_stub.total_items = 0

    result = run(catalog.search("dune"))

    assert result.total_items == 2


def test_api_key_is_forwarded(catalog_stub):
    http_client = OptimizedHTTPClient(timeout=2.0, transport=httpx.MockTransport(catalog_stub))
    service = GoogleBooksService(api_key="k-123", base_url="https://books.test/v1/", http_client=http_client)

    run(service.search("dune"))

    request = catalog_stub.requests[0]
    assert request.url.params["key"] == "k-123"
    assert request.url.path == "/v1/volumes"


@pytest.mark.parametrize("term", [None, "", "   "])
def test_empty_query_makes_no_call(catalog, catalog_stub, term):
    with pytest.raises(ValidationError, match="Search query is required"):
        run(catalog.search(term))
    assert catalog_stub.requests == []


@pytest.mark.parametrize("page", [0, -2])
def test_page_must_be_positive(catalog, catalog_stub, page):
    with pytest.raises(ValidationError, match="Page must be 1 or greater"):
        run(catalog.search("dune", page=page))
    assert catalog_stub.requests == []


def test_filters_are_passed_through(catalog, catalog_stub):
    run(catalog.search("dune", filters=SearchFilters(ebook_filter="partial", print_type="books")))

    params = catalog_stub.requests[0].url.params
    assert params["filter"] == "partial"
    assert params["printType"] == "books"


def test_free_only_maps_to_free_ebooks(catalog, catalog_stub):
    run(catalog.search("dune", filters=SearchFilters(free_only=True)))

    assert catalog_stub.requests[0].url.params["filter"] == "free-ebooks"


@pytest.mark.parametrize("filters,message", [
    (SearchFilters(ebook_filter="cheap"), "Invalid filter"),
    (SearchFilters(print_type="comics"), "Invalid printType"),
    (SearchFilters(free_only=True, ebook_filter="paid-ebooks"), "freeOnly"),
])
def test_invalid_filters_make_no_call(catalog, catalog_stub, filters, message):
    with pytest.raises(ValidationError, match=message):
        run(catalog.search("dune", filters=filters))
    assert catalog_stub.requests == []


def test_search_filters_to_params():
    assert SearchFilters().to_params() == {}
    assert SearchFilters(free_only=True, ebook_filter="free-ebooks").to_params() == {"filter": "free-ebooks"}
    assert SearchFilters(print_type="all").to_params() == {"printType": "all"}


def test_upstream_error_status(catalog, catalog_stub):
    catalog_stub.responder = lambda request: httpx.Response(500, text="boom")

    with pytest.raises(UpstreamError) as exc_info:
        run(catalog.search("dune"))
    assert exc_info.value.status_code == 502
    assert exc_info.value.message == "Error searching books from Google Books API"


def test_upstream_timeout(catalog, catalog_stub):
    def responder(request):
        raise httpx.ReadTimeout("too slow", request=request)

    catalog_stub.responder = responder

    with pytest.raises(UpstreamError, match="timed out"):
        run(catalog.search("dune"))


def test_upstream_connection_error(catalog, catalog_stub):
    def responder(request):
        raise httpx.ConnectError("refused", request=request)

    catalog_stub.responder = responder

    with pytest.raises(UpstreamError):
        run(catalog.search("dune"))


def test_upstream_non_json_body(catalog, catalog_stub):
    catalog_stub.responder = lambda request: httpx.Response(200, text="<html>")

    with pytest.raises(UpstreamError):
        run(catalog.search("dune"))


@pytest.mark.parametrize("total,pages", [(0, 0), (1, 1), (10, 1), (11, 2), (42, 5)])
def test_total_pages(total, pages):
    assert SearchPage(items=[], total_items=total, current_page=1).total_pages == pages

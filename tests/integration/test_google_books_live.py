"""
Live check against the real Google Books API.
Runs only when BOOKSHELF_LIVE_TESTS=1 is set.
"""

import asyncio
import os

import pytest

from bookshelf.services.google_books_service import GoogleBooksService, SearchFilters
from bookshelf.services.http_client import OptimizedHTTPClient

# Mark the entire module as integration to allow skipping by default
pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(os.getenv("BOOKSHELF_LIVE_TESTS") != "1", reason="live API tests disabled"),
]


async def _search(term, page=1, filters=None):
    async with OptimizedHTTPClient() as http_client:
        service = GoogleBooksService(http_client=http_client)
        return await service.search(term, page, filters)


def test_live_search():
    result = asyncio.run(_search("dune frank herbert"))

    assert result.items
    assert result.total_items >= len(result.items)
    for book in result.items:
        assert book.catalog_id
        assert book.title
        assert book.authors


def test_live_free_ebooks():
    result = asyncio.run(_search("pride and prejudice", filters=SearchFilters(free_only=True)))

    assert len(result.items) <= 10

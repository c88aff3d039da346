import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from bookshelf.book import NO_DESCRIPTION, UNKNOWN_AUTHOR, normalize_authors
from bookshelf.config import settings
from bookshelf.errors import UpstreamError, ValidationError
from bookshelf.services.http_client import OptimizedHTTPClient, get_http_client
from bookshelf.utils.validators import TextValidator

logger = logging.getLogger(__name__)

BOOKS_PER_PAGE = 10

# Google Books query vocabulary accepted for pass-through
EBOOK_FILTERS = ("partial", "full", "free-ebooks", "paid-ebooks", "ebooks")
PRINT_TYPES = ("all", "books", "magazines")


@dataclass
class CatalogBook:
    """A search result normalized into the saved-book shape"""
    catalog_id: str
    title: str
    subtitle: str = ""
    authors: List[str] = field(default_factory=lambda: [UNKNOWN_AUTHOR])
    description: str = NO_DESCRIPTION
    thumbnail: str = ""
    link: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalogId": self.catalog_id,
            "title": self.title,
            "subtitle": self.subtitle,
            "authors": self.authors,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "link": self.link,
        }


@dataclass
class SearchFilters:
    """Optional search restrictions, validated before going upstream"""
    free_only: bool = False
    ebook_filter: Optional[str] = None
    print_type: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        ebook_filter = self.ebook_filter or None
        if ebook_filter is not None and ebook_filter not in EBOOK_FILTERS:
            raise ValidationError(f"Invalid filter. Must be one of: {', '.join(EBOOK_FILTERS)}")
        if self.free_only:
            if ebook_filter not in (None, "free-ebooks"):
                raise ValidationError("freeOnly cannot be combined with a different filter")
            ebook_filter = "free-ebooks"

        print_type = self.print_type or None
        if print_type is not None and print_type not in PRINT_TYPES:
            raise ValidationError(f"Invalid printType. Must be one of: {', '.join(PRINT_TYPES)}")

        params: Dict[str, str] = {}
        if ebook_filter:
            params["filter"] = ebook_filter
        if print_type:
            params["printType"] = print_type
        return params


@dataclass
class SearchPage:
    """One page of normalized results plus the pagination metadata"""
    items: List[CatalogBook]
    total_items: int
    current_page: int
    page_size: int = BOOKS_PER_PAGE

    @property
    def total_pages(self) -> int:
        return (self.total_items + self.page_size - 1) // self.page_size


class GoogleBooksService:
    """Public proxy for the Google Books volume search"""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 http_client: Optional[OptimizedHTTPClient] = None):
        self.api_key = api_key or settings.google_books_api_key
        self.base_url = (base_url or settings.google_books_base_url).rstrip("/")
        self._http_client = http_client

    async def _client(self) -> OptimizedHTTPClient:
        if self._http_client is not None:
            return self._http_client
        return await get_http_client()

    async def _make_api_request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Make an API request to Google Books"""
        url = f"{self.base_url}/{endpoint}"

        # Add API key if available
        if self.api_key:
            params["key"] = self.api_key

        client = await self._client()
        start_time = time.time()
        try:
            response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"API request timed out after {client.timeout.read}s")
            raise UpstreamError("Google Books API timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"API request failed: {e}")
            raise UpstreamError() from e

        response_time_ms = int((time.time() - start_time) * 1000)
        if response.status_code != 200:
            logger.error(f"API request failed: {response.status_code} - {response.text[:200]}")
            raise UpstreamError()

        logger.info(f"Google Books {endpoint} answered in {response_time_ms}ms")
        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Google Books returned a non-JSON body: {e}")
            raise UpstreamError() from e
        if not isinstance(payload, dict):
            raise UpstreamError()
        return payload

    @staticmethod
    def _parse_volume(item: Dict[str, Any]) -> Optional[CatalogBook]:
        """Normalize one volume; items without an id are skipped"""
        catalog_id = item.get("id")
        if not catalog_id:
            return None

        volume_info = item.get("volumeInfo") or {}
        image_links = volume_info.get("imageLinks") or {}

        return CatalogBook(
            catalog_id=str(catalog_id),
            title=volume_info.get("title") or "Untitled",
            subtitle=volume_info.get("subtitle") or "",
            authors=normalize_authors(volume_info.get("authors")),
            description=volume_info.get("description") or NO_DESCRIPTION,
            thumbnail=image_links.get("thumbnail") or image_links.get("smallThumbnail") or "",
            # Prefer the preview link over the generic info page
            link=volume_info.get("previewLink") or volume_info.get("infoLink") or "",
        )

    async def search(self, term: Optional[str], page: int = 1,
                     filters: Optional[SearchFilters] = None) -> SearchPage:
        """
        Search the catalog for one page of results

        Args:
            term: Search query (title, author, etc.)
            page: 1-based page number
            filters: Optional ebook / print type restrictions

        Returns:
            SearchPage with normalized items and pagination metadata
        """
        if TextValidator.is_blank(term):
            raise ValidationError("Search query is required")
        if page < 1:
            raise ValidationError("Page must be 1 or greater")

        params: Dict[str, Any] = {
            "q": term.strip(),
            "startIndex": (page - 1) * BOOKS_PER_PAGE,
            "maxResults": BOOKS_PER_PAGE,
        }
        params.update((filters or SearchFilters()).to_params())

        response = await self._make_api_request("volumes", params)

        books = []
        for item in response.get("items") or []:
            book = self._parse_volume(item)
            if book:
                books.append(book)

        # Google's totalItems is an estimate and can undercount the page it just sent
        total_items = max(int(response.get("totalItems") or 0), len(books))
        logger.info(f"Found {len(books)} books for query: {term} (page {page}, total {total_items})")
        return SearchPage(items=books, total_items=total_items, current_page=page)

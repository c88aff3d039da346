import logging
from typing import Optional

import httpx

from bookshelf import __version__
from bookshelf.config import settings

logger = logging.getLogger(__name__)

# Decide whether HTTP/2 is available (requires the 'h2' package)
try:
    import h2  # type: ignore  # noqa: F401
    _HTTP2_AVAILABLE = True
except ImportError:
    _HTTP2_AVAILABLE = False
    logger.debug("HTTP/2 disabled: 'h2' package is not installed.")

USER_AGENT = f"bookshelf/{__version__}"


class OptimizedHTTPClient:
    """Pooled async HTTP client for calls to the external catalog.

    One instance is shared per process (see ``get_http_client``); tests pass
    their own ``transport`` to keep everything in memory.
    """

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        limits = httpx.Limits(
            max_keepalive_connections=20,
            max_connections=100,
            keepalive_expiry=30.0
        )

        total = timeout if timeout is not None else settings.google_books_timeout
        # Never wait longer to connect than for the whole request
        self.timeout = httpx.Timeout(total, connect=min(5.0, total))

        self._client = httpx.AsyncClient(
            limits=limits,
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
            http2=_HTTP2_AVAILABLE and transport is None
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """Single GET, no retries; timeouts surface as httpx.TimeoutException"""
        logger.debug(f"GET {url} params={kwargs.get('params')}")
        return await self._client.get(url, **kwargs)

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


_global_client: Optional[OptimizedHTTPClient] = None


async def get_http_client() -> OptimizedHTTPClient:
    """Return the process-wide client, creating it on first use or after shutdown"""
    global _global_client
    if _global_client is None or _global_client.is_closed:
        _global_client = OptimizedHTTPClient()
    return _global_client


async def cleanup_http_client():
    """Close the process-wide client (application shutdown)"""
    global _global_client
    if _global_client:
        await _global_client.close()
        _global_client = None

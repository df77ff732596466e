"""
Source Fetcher - retrieves raw availability content with httpx.

Fetches the partner booking page (HTML) or JSON API of an ExternalSource.
The timeout bounds the whole request, body included, not only each socket
operation. The fetcher never retries: the next scheduled sync is the
retry. Does not interpret the content.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from django.conf import settings

from availability.exceptions import FetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchResponse:
    """Raw content returned by a successful fetch."""

    content: str
    status_code: int
    headers: Dict[str, str]
    url: str

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class SourceFetcher:
    """
    Async fetcher for external availability sources.

    Features:
    - Async HTTP client with connection pooling
    - Hard timeout on the whole request, including a slowly sent body
    - JSON Accept header for API sources
    - Per-source custom headers
    """

    HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    JSON_ACCEPT = "application/json"

    # Only request gzip/deflate, httpx does not decode brotli without extras
    DEFAULT_HEADERS = {
        "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8",
        "Accept-Encoding": "gzip, deflate",
    }

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds (default from settings)
            user_agent: Custom User-Agent string (default from settings)
            transport: Optional httpx transport, used to stub the network
        """
        self.timeout = timeout or getattr(settings, "AVAILABILITY_REQUEST_TIMEOUT", 20)
        self.user_agent = user_agent or getattr(
            settings,
            "AVAILABILITY_USER_AGENT",
            "Mozilla/5.0 (compatible; GIRAvailabilityBot/1.0)",
        )
        self.transport = transport

        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self._init_http_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _init_http_client(self):
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={**self.DEFAULT_HEADERS, "User-Agent": self.user_agent},
                follow_redirects=True,
                transport=self.transport,
            )

    async def close(self):
        """Close HTTP client connection."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch(self, source) -> FetchResponse:
        """
        Fetch the raw content of an ExternalSource.

        Args:
            source: ExternalSource instance

        Returns:
            FetchResponse with the body text

        Raises:
            FetchError: on network failure, timeout, or non-2xx response
        """
        from availability.models import SourceKind

        accept = self.JSON_ACCEPT if source.source_kind == SourceKind.API else self.HTML_ACCEPT
        headers = {"Accept": accept, **(source.custom_headers or {})}
        return await self.fetch_url(source.source_url, headers=headers)

    async def fetch_url(
        self, url: str, headers: Optional[Dict[str, str]] = None
    ) -> FetchResponse:
        if self._http_client is None:
            await self._init_http_client()

        try:
            response = await asyncio.wait_for(
                self._http_client.get(url, headers=headers or {}), timeout=self.timeout
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.warning(f"Timeout fetching {url} after {self.timeout}s: {e}")
            raise FetchError(
                f"Timeout after {self.timeout}s fetching {url}", timed_out=True
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Network error fetching {url}: {e}")
            raise FetchError(f"Network error fetching {url}: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"HTTP {response.status_code} for {url}")
            raise FetchError(
                f"HTTP {response.status_code} from {url}",
                status_code=response.status_code,
            )

        return FetchResponse(
            content=response.text,
            status_code=response.status_code,
            headers=dict(response.headers),
            url=str(response.url),
        )

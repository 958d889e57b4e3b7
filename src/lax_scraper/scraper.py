"""Async client for sources that only publish rendered HTML pages."""

from typing import Any, Mapping, Optional

import httpx

from .http import DEFAULT_TIMEOUT_MS, build_headers, exchange
from .lax_logging import get_logger
from .rate_limit import TokenBucket

logger = get_logger(__name__)

HTML_HEADERS = {
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "accept-language": "en-US,en;q=0.5",
}


class ScrapeClient:
    """Fetches pages as text.

    Failures map onto the same errors as :class:`~lax_scraper.http.FetchClient`;
    the body is never decoded.
    """

    def __init__(
        self,
        *,
        default_headers: Optional[Mapping[str, str]] = None,
        user_agent: Optional[str] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        rate_limiter: Optional[TokenBucket] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.default_headers = {**HTML_HEADERS, **(default_headers or {})}
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self.rate_limiter = rate_limiter
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )

    async def get_text(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """GET ``url`` and return the body as text."""
        request_headers = build_headers(
            user_agent=self.user_agent,
            default_headers=self.default_headers,
            extra_headers=headers,
        )
        request_headers.pop("content-type", None)
        response = await exchange(
            self.client,
            "GET",
            url,
            timeout_ms=self.timeout_ms,
            headers=request_headers,
            params=params,
            rate_limiter=self.rate_limiter,
        )
        logger.debug("Fetched page", url=url, bytes=len(response.content))
        return response.text

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ScrapeClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

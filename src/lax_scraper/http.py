"""Async REST client mapping every failure into the pipeline error taxonomy."""

import asyncio
from typing import Any, Dict, Literal, Mapping, Optional, Type, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import (
    HttpError,
    NetworkError,
    ParseError,
    RateLimitError,
    RequestTimeoutError,
    ResponseDecodeError,
)
from .lax_logging import get_logger
from .rate_limit import TokenBucket

logger = get_logger(__name__)

T = TypeVar("T")

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

DEFAULT_TIMEOUT_MS = 30000


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Convert a Retry-After header in seconds to milliseconds.

    HTTP-date values and garbage are ignored so the caller falls back to its
    default wait.
    """
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return seconds * 1000


def build_headers(
    *,
    user_agent: Optional[str] = None,
    auth_token: Optional[str] = None,
    default_headers: Optional[Mapping[str, str]] = None,
    extra_headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    headers: Dict[str, str] = {"content-type": "application/json"}
    if user_agent:
        headers["user-agent"] = user_agent
    headers.update(default_headers or {})
    headers.update(extra_headers or {})
    if auth_token:
        headers["authorization"] = f"Bearer {auth_token}"
    return headers


async def exchange(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout_ms: int,
    headers: Dict[str, str],
    params: Optional[Mapping[str, Any]] = None,
    body: Optional[Any] = None,
    rate_limiter: Optional[TokenBucket] = None,
) -> httpx.Response:
    """Perform one HTTP exchange and return the successful response.

    ``timeout_ms`` bounds the whole exchange, connect through the last body
    byte, not each phase separately.

    Raises:
        RequestTimeoutError: request exceeded ``timeout_ms``
        NetworkError: connection-level failure
        RateLimitError: HTTP 429
        HttpError: any other non-2xx status
    """
    if rate_limiter is not None:
        await rate_limiter.acquire()

    try:
        logger.debug("Making HTTP request", method=method, url=url, params=params)
        async with asyncio.timeout(timeout_ms / 1000):
            response = await client.request(
                method,
                url,
                params=params,
                json=body,
                headers=headers,
                timeout=timeout_ms / 1000,
            )
    except (httpx.TimeoutException, TimeoutError) as e:
        raise RequestTimeoutError(
            f"Request timed out after {timeout_ms}ms", url=url, timeout_ms=timeout_ms
        ) from e
    except httpx.RequestError as e:
        raise NetworkError(f"Network error: {e!r}", url=url, cause=e) from e

    logger.debug("HTTP response received", url=url, status_code=response.status_code)

    if response.status_code == 429:
        retry_after_ms = parse_retry_after(response.headers.get("retry-after"))
        logger.warning("Rate limited by server", url=url, retry_after_ms=retry_after_ms)
        raise RateLimitError("Rate limited by server", url=url, retry_after_ms=retry_after_ms)

    if not response.is_success:
        logger.warning(
            "HTTP error response",
            url=url,
            status_code=response.status_code,
            response_text=response.text[:500],
        )
        raise HttpError(
            f"HTTP {response.status_code}: {response.reason_phrase}",
            url=url,
            method=method,
            status_code=response.status_code,
        )

    return response


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    """Like :func:`exchange`, but return the decoded JSON body.

    Raises:
        ResponseDecodeError: body is not valid JSON
    """
    response = await exchange(client, method, url, **kwargs)
    try:
        return response.json()
    except ValueError as e:
        raise ResponseDecodeError(
            f"Failed to parse JSON: {e}",
            url=url,
            method=method,
            status_code=response.status_code,
            cause=e,
        ) from e


def validate_payload(payload: Any, response_model: Type[T], url: str) -> T:
    """Validate decoded JSON against ``response_model``; ParseError on mismatch."""
    try:
        return TypeAdapter(response_model).validate_python(payload)
    except ValidationError as e:
        raise ParseError(f"Schema validation failed: {e}", url=url, cause=e) from e


class FetchClient:
    """REST client for one upstream source.

    A single request/response cycle per call; no retries and no caching.
    Retry policies are composed around calls by the caller.
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: Optional[str] = None,
        default_headers: Optional[Mapping[str, str]] = None,
        user_agent: Optional[str] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        rate_limiter: Optional[TokenBucket] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url
        self.auth_token = auth_token
        self.default_headers = dict(default_headers or {})
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self.rate_limiter = rate_limiter
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )

    async def request(
        self,
        method: HttpMethod,
        endpoint: str,
        response_model: Type[T],
        body: Optional[Any] = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> T:
        url = f"{self.base_url}{endpoint}"
        payload = await send_request(
            self.client,
            method,
            url,
            timeout_ms=timeout_ms or self.timeout_ms,
            headers=build_headers(
                user_agent=self.user_agent,
                auth_token=self.auth_token,
                default_headers=self.default_headers,
                extra_headers=headers,
            ),
            params=params,
            body=body,
            rate_limiter=self.rate_limiter,
        )
        return validate_payload(payload, response_model, url)

    async def get(self, endpoint: str, response_model: Type[T], **kwargs: Any) -> T:
        return await self.request("GET", endpoint, response_model, **kwargs)

    async def post(self, endpoint: str, body: Any, response_model: Type[T], **kwargs: Any) -> T:
        return await self.request("POST", endpoint, response_model, body, **kwargs)

    async def put(self, endpoint: str, body: Any, response_model: Type[T], **kwargs: Any) -> T:
        return await self.request("PUT", endpoint, response_model, body, **kwargs)

    async def patch(self, endpoint: str, body: Any, response_model: Type[T], **kwargs: Any) -> T:
        return await self.request("PATCH", endpoint, response_model, body, **kwargs)

    async def delete(self, endpoint: str, response_model: Type[T], **kwargs: Any) -> T:
        return await self.request("DELETE", endpoint, response_model, **kwargs)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "FetchClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

"""GraphQL client built on the REST fetch path.

Transport, HTTP and JSON failures map exactly as for REST calls. A 200
response whose envelope carries an ``errors`` array, or null ``data``,
raises :class:`GraphQLError`, which no retry policy ever retries.
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ConfigDict

from .errors import GraphQLError, ParseError
from .http import DEFAULT_TIMEOUT_MS, build_headers, send_request, validate_payload
from .rate_limit import TokenBucket

T = TypeVar("T")


class GraphQLErrorItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: str
    path: Optional[List[Union[str, int]]] = None


class GraphQLEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    data: Optional[Dict[str, Any]] = None
    errors: Optional[List[GraphQLErrorItem]] = None


class GraphQLClient:
    """POSTs ``{query, variables, operationName}`` to a single endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        auth_token: Optional[str] = None,
        default_headers: Optional[Mapping[str, str]] = None,
        user_agent: Optional[str] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        rate_limiter: Optional[TokenBucket] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self.auth_token = auth_token
        self.default_headers = dict(default_headers or {})
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self.rate_limiter = rate_limiter
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(follow_redirects=True)

    async def execute(
        self,
        query: str,
        data_model: Type[T],
        variables: Optional[Mapping[str, Any]] = None,
        operation_name: Optional[str] = None,
        *,
        timeout_ms: Optional[int] = None,
    ) -> T:
        body: Dict[str, Any] = {"query": query, "variables": dict(variables or {})}
        if operation_name:
            body["operationName"] = operation_name

        payload = await send_request(
            self.client,
            "POST",
            self.endpoint,
            timeout_ms=timeout_ms or self.timeout_ms,
            headers=build_headers(
                user_agent=self.user_agent,
                auth_token=self.auth_token,
                default_headers=self.default_headers,
            ),
            body=body,
            rate_limiter=self.rate_limiter,
        )

        if not isinstance(payload, dict):
            raise ParseError("GraphQL response is not a JSON object", url=self.endpoint)
        envelope = validate_payload(payload, GraphQLEnvelope, self.endpoint)

        if envelope.errors:
            raise GraphQLError(
                "; ".join(e.message for e in envelope.errors),
                errors=[e.model_dump(exclude_none=True) for e in envelope.errors],
                url=self.endpoint,
            )
        if envelope.data is None:
            raise GraphQLError("GraphQL response returned null data", url=self.endpoint)

        return validate_payload(envelope.data, data_model, self.endpoint)

    async def query(
        self,
        query: str,
        data_model: Type[T],
        variables: Optional[Mapping[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> T:
        return await self.execute(query, data_model, variables, operation_name)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

"""Pipeline error taxonomy and critical/recoverable classification.

Every failure a source fetch can produce is one of the concrete classes
below. ``AnyPipelineError`` is the closed union the classifier matches on.
"""

from typing import Any, List, Optional, Union

from typing_extensions import assert_never


class PipelineError(Exception):
    """Base class for all extraction pipeline failures."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.url = url

    @property
    def tag(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return self.message


class NetworkError(PipelineError):
    """Connection-level failure (DNS, refused connection, reset)."""

    def __init__(self, message: str, url: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, url)
        self.cause = cause


class RequestTimeoutError(PipelineError):
    """Request exceeded its timeout."""

    def __init__(self, message: str, url: str, timeout_ms: Optional[int] = None) -> None:
        super().__init__(message, url)
        self.timeout_ms = timeout_ms


class HttpError(PipelineError):
    """Non-2xx HTTP response other than 429."""

    def __init__(
        self,
        message: str,
        url: str,
        method: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, url)
        self.method = method
        self.status_code = status_code
        self.cause = cause


class ResponseDecodeError(HttpError):
    """Response body was not valid JSON."""


class RateLimitError(PipelineError):
    """HTTP 429; ``retry_after_ms`` comes from the Retry-After header when present."""

    def __init__(self, message: str, url: str, retry_after_ms: Optional[int] = None) -> None:
        super().__init__(message, url)
        self.retry_after_ms = retry_after_ms


class ParseError(PipelineError):
    """Upstream data that could not be interpreted: schema mismatch or an unusable season key."""

    def __init__(self, message: str, url: Optional[str] = None, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, url)
        self.cause = cause


class GraphQLError(PipelineError):
    """HTTP 200 response whose GraphQL envelope carried errors or null data."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None, url: Optional[str] = None) -> None:
        super().__init__(message, url)
        self.errors = list(errors or [])


class FileWriteError(PipelineError):
    """Output artifact or manifest could not be written to disk."""

    def __init__(self, message: str, path: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, path)
        self.path = path
        self.cause = cause


AnyPipelineError = Union[
    NetworkError,
    RequestTimeoutError,
    HttpError,
    RateLimitError,
    ParseError,
    GraphQLError,
    FileWriteError,
]

TRANSIENT_ERRORS = (NetworkError, RequestTimeoutError)


class CriticalExtractionError(Exception):
    """A critical failure that aborted extraction of a season."""

    def __init__(self, source: str, season_key: str, entity: str, error: PipelineError) -> None:
        super().__init__(
            f"{source.upper()} season {season_key} aborted at '{entity}': "
            f"[{error.tag}] {error.message}"
        )
        self.source = source
        self.season_key = season_key
        self.entity = entity
        self.error = error


def is_critical(error: AnyPipelineError) -> bool:
    """Decide whether a failure should abort the current season.

    Systemic problems (network, timeouts, server errors, exhausted rate-limit
    retries, disk writes) are critical. Isolated per-entity data defects
    (4xx, schema, GraphQL) are skipped so the batch can continue.
    """
    match error:
        case NetworkError() | RequestTimeoutError():
            return True
        case HttpError(status_code=int(status)) if status >= 500:
            return True
        case HttpError():
            return False
        case RateLimitError():
            return True
        case ParseError() | GraphQLError():
            return False
        case FileWriteError():
            return True
        case _:
            assert_never(error)

"""Manifest and extraction result models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_VERSION = 1

T = TypeVar("T")


class EntityStatus(BaseModel):
    """Extraction status of one entity within one season."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    extracted: bool = False
    count: int = 0
    timestamp: str = ""
    duration_ms: Optional[int] = Field(default=None, alias="durationMs")

    def parsed_timestamp(self) -> Optional[datetime]:
        """Completion instant, or None when empty or unparseable."""
        if not self.timestamp:
            return None
        try:
            return datetime.fromisoformat(self.timestamp.replace("Z", "+00:00"))
        except ValueError:
            return None


SeasonManifest = Dict[str, EntityStatus]


class ExtractionManifest(BaseModel):
    """Per-source ledger: season key -> entity name -> status."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source: str
    seasons: Dict[str, SeasonManifest] = Field(default_factory=dict)
    last_run: str = Field(default="", alias="lastRun")
    version: Literal[1] = MANIFEST_VERSION

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Fetched payload with its item count and wall-clock duration."""

    data: T
    count: int
    duration_ms: int

    @classmethod
    def of(cls, data: T, duration_ms: int) -> "FetchResult[T]":
        count = len(data) if isinstance(data, (list, tuple)) else 1
        return cls(data=data, count=count, duration_ms=duration_ms)

    @classmethod
    def empty(cls, data: T) -> "FetchResult[T]":
        return cls(data=data, count=0, duration_ms=0)

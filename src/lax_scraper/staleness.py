"""Incremental extraction decisions.

Pure functions over manifest state: nothing here touches the network or the
filesystem. Calendar knowledge lives in :class:`SeasonConfig`.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from enum import Enum
from typing import List, Optional

from .models import EntityStatus
from .seasons import SeasonConfig


class ExtractionMode(str, Enum):
    FULL = "full"                    # extract everything, ignoring existing data
    SKIP_EXISTING = "skip-existing"  # only what has never been extracted
    INCREMENTAL = "incremental"      # re-extract stale data, season-aware


@dataclass(frozen=True)
class ExtractOptions:
    """Caller's extraction request. ``mode`` overrides the legacy fields."""

    mode: Optional[ExtractionMode] = None
    skip_existing: bool = True
    max_age_hours: Optional[float] = None


def is_entity_stale(
    status: Optional[EntityStatus],
    max_age_hours: Optional[float],
    now: Optional[datetime] = None,
) -> bool:
    """Whether persisted data should be re-fetched under ``max_age_hours``.

    Absent or unextracted entities are always stale. With no bound
    (``None``) an extracted entity is never stale.
    """
    if status is None or not status.extracted:
        return True
    completed_at = status.parsed_timestamp()
    if completed_at is None:
        return True
    if max_age_hours is None:
        return False
    if completed_at.tzinfo is None:
        completed_at = completed_at.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    return now - completed_at > timedelta(hours=max_age_hours)


class IncrementalPolicy:
    """Decides whether an entity should be extracted now."""

    def __init__(self, season_config: SeasonConfig) -> None:
        self.season_config = season_config

    def should_extract(
        self,
        status: Optional[EntityStatus],
        season_key: str,
        options: Optional[ExtractOptions] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Evaluate, in order: full, incremental, skip-existing, explicit
        max age, skip_existing=False, then the skip-existing default."""
        options = options or ExtractOptions()

        if options.mode is ExtractionMode.FULL:
            return True

        if options.mode is ExtractionMode.INCREMENTAL:
            max_age = self.season_config.get_max_age_hours(season_key)
            return is_entity_stale(status, max_age, now)

        if options.mode is ExtractionMode.SKIP_EXISTING:
            return status is None or not status.extracted

        if options.max_age_hours is not None:
            return is_entity_stale(status, options.max_age_hours, now)

        if not options.skip_existing:
            return True

        return status is None or not status.extracted

    def season_max_age(self, season_key: str) -> Optional[float]:
        return self.season_config.get_max_age_hours(season_key)

    def is_current_season(self, season_key: str) -> bool:
        return self.season_config.is_current_season(season_key)

    def current_seasons(self) -> List[int]:
        return self.season_config.current_season_years()


def normalize_options(
    force: bool = False,
    incremental: bool = False,
    max_age_hours: Optional[float] = None,
    skip_existing: bool = True,
) -> ExtractOptions:
    """Map CLI-style flags onto ExtractOptions."""
    if force:
        return ExtractOptions(mode=ExtractionMode.FULL)
    if incremental:
        return ExtractOptions(mode=ExtractionMode.INCREMENTAL)
    if max_age_hours is not None:
        return ExtractOptions(max_age_hours=max_age_hours, skip_existing=True)
    return ExtractOptions(skip_existing=skip_existing)

"""Assembles a ready-to-run extractor for a named source."""

from typing import Any, Callable, Dict, Optional, Sequence

import httpx

from .config import AppSettings, get_settings
from .errors import ParseError
from .extractor import SourceExtractor
from .manifest import ManifestStore
from .rate_limit import TokenBucket
from .retry import RetryPolicy
from .seasons import SeasonConfig
from .sources import SourceDefinition, nll, pll
from .staleness import IncrementalPolicy

SourceBuilder = Callable[..., SourceDefinition]

SOURCE_BUILDERS: Dict[str, SourceBuilder] = {
    nll.SOURCE: nll.build_source,
    pll.SOURCE: pll.build_source,
}

SOURCE_ENTITIES = {
    nll.SOURCE: nll.ENTITIES,
    pll.SOURCE: pll.ENTITIES,
}

SEASON_CHECKS: Dict[str, Callable[[str], Any]] = {
    nll.SOURCE: nll.check_season,
    pll.SOURCE: pll.season_year,
}


def available_sources() -> list:
    return sorted(SOURCE_BUILDERS)


def validate_seasons(source: str, seasons: Sequence[str]) -> None:
    """Reject season keys ``source`` cannot serve before any request is made.

    Raises:
        ValueError: unknown source or unusable season key
    """
    if source not in SEASON_CHECKS:
        raise ValueError(f"unknown source '{source}' (available: {', '.join(available_sources())})")
    for season_key in seasons:
        try:
            SEASON_CHECKS[source](season_key)
        except ParseError as e:
            raise ValueError(e.message) from e


def build_manifest_store(source: str, settings: Optional[AppSettings] = None) -> ManifestStore:
    settings = settings or get_settings()
    if source not in SOURCE_ENTITIES:
        raise ValueError(f"unknown source '{source}' (available: {', '.join(available_sources())})")
    return ManifestStore(source, SOURCE_ENTITIES[source], settings.OUTPUT_DIR)


def build_extractor(
    source: str,
    settings: Optional[AppSettings] = None,
    *,
    include_details: bool = True,
    client: Optional[httpx.AsyncClient] = None,
    season_config: Optional[SeasonConfig] = None,
    **overrides,
) -> SourceExtractor:
    """Build a SourceExtractor for ``source`` from settings.

    ``overrides`` are passed straight to SourceExtractor (e.g. ``sleep`` or
    ``concurrency`` in tests).
    """
    settings = settings or get_settings()
    if source not in SOURCE_BUILDERS:
        raise ValueError(f"unknown source '{source}' (available: {', '.join(available_sources())})")

    definition = SOURCE_BUILDERS[source](
        settings,
        client=client,
        rate_limiter=TokenBucket(settings.REQUESTS_PER_SECOND, name=source),
    )
    if not include_details:
        definition = definition.without_details()

    season_config = season_config or SeasonConfig.from_settings(settings)
    kwargs = dict(
        retry_policy=RetryPolicy.from_settings(settings),
        concurrency=settings.EXTRACT_CONCURRENCY,
        delay_between_requests_ms=settings.EXTRACT_DELAY_MS,
        delay_between_batches_ms=settings.EXTRACT_BATCH_DELAY_MS,
        closers=definition.closers,
    )
    kwargs.update(overrides)

    return SourceExtractor(
        definition.name,
        definition.entities,
        definition.seasons,
        build_manifest_store(source, settings),
        IncrementalPolicy(season_config),
        settings.OUTPUT_DIR,
        **kwargs,
    )

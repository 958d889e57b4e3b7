"""National Lacrosse League: stats API (REST) plus player stats scraped from nll.com."""

from typing import Any, Dict, List, Optional

import httpx

from ..config import AppSettings
from ..errors import ParseError
from ..extractor import EntitySpec
from ..http import FetchClient
from ..rate_limit import TokenBucket
from ..scraper import ScrapeClient
from . import SourceDefinition
from .nll_stats import NLLStatsScraper

SOURCE = "nll"

# Provider-internal season ids, not calendar years.
NLL_SEASONS = ("225",)

ENTITIES = ("teams", "players", "standings", "schedule", "playerStats")

# Records are passed through untouched; only the list shape is validated.
NLLRecords = List[Dict[str, Any]]


def check_season(season_key: str) -> str:
    """Season ids are numeric (``225`` is 2025-26); ParseError otherwise."""
    key = str(season_key).strip()
    if not key.isdigit():
        raise ParseError(f"Invalid NLL season id {season_key!r}: expected digits like '225'")
    return key


class NLLClient:
    """Thin wrapper over the stats endpoint: ``?data_type=<entity>&season_id=<id>``."""

    def __init__(self, fetch_client: FetchClient) -> None:
        self.fetch_client = fetch_client

    async def _get(self, data_type: str, season_id: str) -> NLLRecords:
        return await self.fetch_client.get(
            "",
            NLLRecords,
            params={"data_type": data_type, "season_id": check_season(season_id)},
        )

    async def get_teams(self, season_id: str) -> NLLRecords:
        return await self._get("teams", season_id)

    async def get_players(self, season_id: str) -> NLLRecords:
        return await self._get("players", season_id)

    async def get_standings(self, season_id: str) -> NLLRecords:
        return await self._get("standings", season_id)

    async def get_schedule(self, season_id: str) -> NLLRecords:
        return await self._get("schedule", season_id)

    async def aclose(self) -> None:
        await self.fetch_client.aclose()


def build_source(
    settings: AppSettings,
    *,
    client: Optional[httpx.AsyncClient] = None,
    rate_limiter: Optional[TokenBucket] = None,
) -> SourceDefinition:
    nll = NLLClient(
        FetchClient(
            settings.NLL_BASE_URL,
            user_agent=settings.USER_AGENT,
            timeout_ms=settings.TIMEOUT_MS,
            rate_limiter=rate_limiter,
            client=client,
        )
    )
    stats = NLLStatsScraper(
        ScrapeClient(
            default_headers=settings.NLL_STATS_HEADERS,
            user_agent=settings.USER_AGENT,
            timeout_ms=settings.TIMEOUT_MS,
            rate_limiter=rate_limiter,
            client=client,
        ),
        settings.NLL_STATS_URL,
        page_delay_ms=settings.NLL_STATS_PAGE_DELAY_MS,
    )
    return SourceDefinition(
        name=SOURCE,
        seasons=NLL_SEASONS,
        entities=(
            EntitySpec("teams", nll.get_teams),
            EntitySpec("players", nll.get_players),
            EntitySpec("standings", nll.get_standings),
            EntitySpec("schedule", nll.get_schedule),
            EntitySpec("playerStats", stats.get_player_stats, output_name="player-stats"),
        ),
        closers=(nll.aclose, stats.aclose),
    )

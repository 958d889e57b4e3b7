"""NLL player statistics scraped from the rendered nll.com stats pages.

The stats API behind nll.com requires auth, so the all-player-stats table is
parsed from HTML instead, one page at a time.
"""

import asyncio
import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup
from pydantic import BaseModel

from ..errors import ParseError
from ..lax_logging import get_logger
from ..retry import Sleep
from ..scraper import ScrapeClient

logger = get_logger(__name__)

MIN_CELLS = 10
FULL_PAGE_ROWS = 20
MAX_PAGES = 100

PLAYER_ID_RE = re.compile(r"/players/(\d+)/")
TEAM_SITE_RE = re.compile(r"(?:https?://)?(?:www\.)?([^.]+)\.(?:com|ca)")

# Team website subdomains
TEAM_SITE_CODES = {
    "bandits": "BUF",
    "calgaryroughnecks": "CGY",
    "coloradomammoth": "COL",
    "georgiaswarm": "GA",
    "halifaxthunderbirds": "HFX",
    "lasvegasdesertdogs": "LV",
    "oshawafirewolves": "OSH",
    "ottawablackbears": "OTT",
    "wingsla": "PHI",
    "rochesterknighthawks": "ROC",
    "sandiegoseals": "SD",
    "saskrush": "SAS",
    "torontorock": "TOR",
    "vancouverwarriors": "VAN",
}

# Checked in order as substrings of the lower-cased team name
TEAM_NAME_CODES = {
    "bandits": "BUF",
    "roughnecks": "CGY",
    "mammoth": "COL",
    "swarm": "GA",
    "thunderbirds": "HFX",
    "desert dogs": "LV",
    "firewolves": "OSH",
    "black bears": "OTT",
    "wings": "PHI",
    "knighthawks": "ROC",
    "seals": "SD",
    "rush": "SAS",
    "rock": "TOR",
    "warriors": "VAN",
}


class NLLPlayerStatsRow(BaseModel):
    personId: str
    fullname: str
    team_code: Optional[str] = None
    team_name: Optional[str] = None
    position: Optional[str] = None
    games_played: int = 0
    goals: int = 0
    assists: int = 0
    points: int = 0
    penalty_minutes: int = 0
    ppg: int = 0
    ppa: int = 0
    shg: int = 0
    looseballs: int = 0
    turnovers: int = 0
    caused_turnovers: int = 0
    blocked_shots: int = 0
    shots_on_goal: int = 0


def season_name(season_id: str) -> str:
    """Map a provider season id to the site's season name: ``225`` -> ``2025-26``."""
    try:
        start_year = 2000 + (int(season_id) - 200)
    except ValueError as e:
        raise ParseError(f"Invalid NLL season id {season_id!r}", cause=e) from e
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def parse_number(text: str) -> int:
    """Integer cell value; blanks and dashes count as zero."""
    try:
        return int(text.strip().replace(",", ""))
    except ValueError:
        return 0


def extract_team_code(team_link: Optional[str], team_name: Optional[str]) -> Optional[str]:
    if team_link:
        match = TEAM_SITE_RE.search(team_link)
        if match:
            return TEAM_SITE_CODES.get(match.group(1).lower())

    if team_name:
        lower_name = team_name.lower()
        for key, code in TEAM_NAME_CODES.items():
            if key in lower_name:
                return code

    return None


def parse_stats_page(html: str) -> Tuple[List[NLLPlayerStatsRow], bool]:
    """Parse one stats page into rows, plus whether an enabled next-page button exists.

    Rows with too few cells, no player link, or no name are skipped.
    """
    soup = BeautifulSoup(html, "lxml")
    rows: List[NLLPlayerStatsRow] = []

    for tr in soup.select("table tbody tr"):
        cells = tr.find_all("td")
        if len(cells) < MIN_CELLS:
            continue

        link = tr.select_one('a[href*="/players/"]')
        match = PLAYER_ID_RE.search(link.get("href", "")) if link else None
        if not match:
            continue

        fullname = cells[1].get_text().strip()
        if not fullname:
            continue

        def text(index: int) -> str:
            return cells[index].get_text() if index < len(cells) else ""

        team_name = " ".join(cells[2].get_text().split()) or None
        team_anchor = cells[2].find("a")
        team_link = team_anchor.get("href") if team_anchor else None

        rows.append(NLLPlayerStatsRow(
            personId=match.group(1),
            fullname=fullname,
            team_code=extract_team_code(team_link, team_name),
            team_name=team_name,
            position=text(3).strip() or None,
            games_played=parse_number(text(4)),
            goals=parse_number(text(5)),
            assists=parse_number(text(6)),
            points=parse_number(text(7)),
            penalty_minutes=parse_number(text(8)),
            ppg=parse_number(text(9)),
            ppa=parse_number(text(10)),
            shg=parse_number(text(11)),
            looseballs=parse_number(text(12)),
            turnovers=parse_number(text(13)),
            caused_turnovers=parse_number(text(14)),
            blocked_shots=parse_number(text(15)),
            shots_on_goal=parse_number(text(16)),
        ))

    has_next = bool(soup.select(".paginate_button.next:not(.disabled)"))
    return rows, has_next


class NLLStatsScraper:
    """Walks the paginated all-player-stats table for one season and phase."""

    def __init__(
        self,
        scrape_client: ScrapeClient,
        stats_url: str,
        *,
        phase: str = "REG",
        page_delay_ms: int = 500,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.scrape_client = scrape_client
        self.stats_url = stats_url
        self.phase = phase
        self.page_delay_ms = page_delay_ms
        self._sleep = sleep

    async def get_player_stats(self, season_id: str) -> List[NLLPlayerStatsRow]:
        params = {"season_name": season_name(season_id), "stage": self.phase}
        stats: List[NLLPlayerStatsRow] = []

        for page in range(1, MAX_PAGES + 1):
            page_params = dict(params)
            if page > 1:
                page_params["all_player_stats_page"] = page

            logger.info("Scraping stats page", season=season_id, page=page)
            html = await self.scrape_client.get_text(self.stats_url, params=page_params)
            rows, has_next = parse_stats_page(html)
            if not rows:
                break

            stats.extend(rows)
            # Short pages are the last page even when the button is left enabled
            if not has_next or len(rows) < FULL_PAGE_ROWS:
                break
            if self.page_delay_ms:
                await self._sleep(self.page_delay_ms / 1000)
        else:
            logger.warning("Stopped at page limit", season=season_id, max_pages=MAX_PAGES)

        logger.info("Scraped player stats", season=season_id, count=len(stats))
        return stats

    async def aclose(self) -> None:
        await self.scrape_client.aclose()

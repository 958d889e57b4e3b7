"""Unit tests for the nll.com player stats page parser and paginator."""

from typing import List, Optional

import httpx
import pytest

from lax_scraper.config import AppSettings
from lax_scraper.errors import ParseError
from lax_scraper.scraper import ScrapeClient
from lax_scraper.sources import nll
from lax_scraper.sources.nll_stats import (
    NLLStatsScraper,
    extract_team_code,
    parse_number,
    parse_stats_page,
    season_name,
)

STATS_URL = "https://www.nll.example.test/stats/all-player-stats/"


def player_row(person_id: int, name: str, team_html: str, stats: List[str]) -> str:
    cells = [
        "<td>1</td>",
        f'<td><a href="/players/{person_id}/{name.lower().replace(" ", "-")}/">{name}</a></td>',
        f"<td>{team_html}</td>",
        *(f"<td>{value}</td>" for value in stats),
    ]
    return f"<tr>{''.join(cells)}</tr>"


def stats_page(rows: List[str], next_enabled: Optional[bool] = None) -> str:
    pager = ""
    if next_enabled is not None:
        disabled = "" if next_enabled else " disabled"
        pager = f'<div class="pager"><a class="paginate_button next{disabled}">Next</a></div>'
    return (
        "<html><body><table><thead><tr><th>#</th><th>Player</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>{pager}</body></html>"
    )


DANE = player_row(
    5311,
    "Dane Dobbie",
    '<a href="https://www.calgaryroughnecks.com/">Calgary\n   Roughnecks</a>',
    ["F", "18", "41", "62", "103", "4", "12", "20", "0", "55", "14", "6", "1", "160"],
)

FULL_STAT_LINE = ["F", "10", "5", "5", "10", "2", "1", "1", "0", "20", "3", "2", "1", "40"]


def numbered_rows(count: int, start: int = 1) -> List[str]:
    return [
        player_row(1000 + i, f"Player {i}", "Toronto Rock", FULL_STAT_LINE)
        for i in range(start, start + count)
    ]


class TestHelpers:

    @pytest.mark.parametrize("season_id, expected", [
        ("225", "2025-26"),
        ("224", "2024-25"),
        ("209", "2009-10"),
        ("299", "2099-00"),
    ])
    def test_season_name(self, season_id, expected):
        assert season_name(season_id) == expected

    def test_season_name_rejects_non_numeric(self):
        with pytest.raises(ParseError):
            season_name("2025-26")

    @pytest.mark.parametrize("text, expected", [
        (" 12 ", 12),
        ("1,024", 1024),
        ("-", 0),
        ("", 0),
    ])
    def test_parse_number(self, text, expected):
        assert parse_number(text) == expected

    def test_team_code_from_site_link(self):
        assert extract_team_code("https://www.saskrush.com/", "Saskatchewan Rush") == "SAS"

    def test_unknown_site_link_does_not_fall_back_to_name(self):
        assert extract_team_code("https://www.example.com/", "Toronto Rock") is None

    def test_team_code_from_name(self):
        assert extract_team_code(None, "Ottawa Black Bears") == "OTT"
        assert extract_team_code(None, "Las Vegas Desert Dogs") == "LV"
        assert extract_team_code(None, "Unknown Club") is None


class TestParseStatsPage:

    def test_parses_player_row(self):
        rows, has_next = parse_stats_page(stats_page([DANE]))

        assert has_next is False
        (row,) = rows
        assert row.personId == "5311"
        assert row.fullname == "Dane Dobbie"
        assert row.team_name == "Calgary Roughnecks"
        assert row.team_code == "CGY"
        assert row.position == "F"
        assert row.games_played == 18
        assert row.goals == 41
        assert row.assists == 62
        assert row.points == 103
        assert row.shots_on_goal == 160

    def test_skips_incomplete_and_unlinked_rows(self):
        short = "<tr><td>1</td><td>Short Row</td><td>Rock</td></tr>"
        unlinked = "<tr>" + "".join(f"<td>{i}</td>" for i in range(12)) + "</tr>"

        rows, _ = parse_stats_page(stats_page([short, unlinked, DANE]))

        assert [r.personId for r in rows] == ["5311"]

    def test_missing_trailing_columns_count_as_zero(self):
        row_html = player_row(77, "Ten Cells", "Georgia Swarm", ["D", "3", "1", "2", "3", "0", "0"])

        (row,), _ = parse_stats_page(stats_page([row_html]))

        assert row.team_code == "GA"
        assert row.ppg == 0
        assert row.shots_on_goal == 0

    def test_next_button_detection(self):
        _, enabled = parse_stats_page(stats_page([DANE], next_enabled=True))
        _, disabled = parse_stats_page(stats_page([DANE], next_enabled=False))

        assert enabled is True
        assert disabled is False


class TestNLLStatsScraper:

    def build(self, pages, sleep):
        requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text=pages[len(requests) - 1])

        client = ScrapeClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        return NLLStatsScraper(client, STATS_URL, page_delay_ms=500, sleep=sleep), requests

    async def test_follows_pagination_until_short_page(self, sleep):
        pages = [
            stats_page(numbered_rows(20), next_enabled=True),
            stats_page(numbered_rows(3, start=21), next_enabled=True),
        ]
        scraper, requests = self.build(pages, sleep)

        stats = await scraper.get_player_stats("225")

        assert len(stats) == 23
        assert [dict(r.url.params) for r in requests] == [
            {"season_name": "2025-26", "stage": "REG"},
            {"season_name": "2025-26", "stage": "REG", "all_player_stats_page": "2"},
        ]
        assert sleep.calls == [0.5]

    async def test_stops_when_next_button_disabled(self, sleep):
        scraper, requests = self.build([stats_page(numbered_rows(20), next_enabled=False)], sleep)

        stats = await scraper.get_player_stats("224")

        assert len(stats) == 20
        assert len(requests) == 1
        assert sleep.calls == []

    async def test_empty_table_yields_no_rows(self, sleep):
        scraper, _ = self.build([stats_page([])], sleep)

        assert await scraper.get_player_stats("225") == []


async def test_player_stats_entity_sends_site_headers(tmp_path):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        seen["origin"] = request.headers.get("origin")
        seen["referer"] = request.headers.get("referer")
        return httpx.Response(200, text=stats_page([DANE]))

    settings = AppSettings(OUTPUT_DIR=tmp_path, NLL_STATS_URL=STATS_URL)
    source = nll.build_source(settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    spec = {s.name: s for s in source.entities}["playerStats"]

    stats = await spec.fetch("225")

    assert [row.fullname for row in stats] == ["Dane Dobbie"]
    assert spec.output == "player-stats"
    assert seen == {
        "url": STATS_URL,
        "origin": "https://www.nll.com",
        "referer": "https://www.nll.com/stats/",
    }

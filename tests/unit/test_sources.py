"""Unit tests for the NLL and PLL source clients over a mocked transport."""

import json

import httpx
import pytest

from lax_scraper.config import AppSettings
from lax_scraper.errors import GraphQLError, ParseError
from lax_scraper.sources import nll, pll


@pytest.fixture
def settings(tmp_path):
    return AppSettings(
        OUTPUT_DIR=tmp_path,
        NLL_BASE_URL="https://nll.example.test/stats",
        PLL_REST_BASE_URL="https://pll.example.test/api/v4",
        PLL_GRAPHQL_URL="https://pll.example.test/graphql",
        PLL_REST_TOKEN="rest-token",
        PLL_GRAPHQL_TOKEN="graphql-token",
    )


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_nll_entities_use_data_type_query(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        return httpx.Response(200, json=[{"id": 1}, {"id": 2}])

    source = nll.build_source(settings, client=mock_client(handler))
    fetch = {spec.name: spec.fetch for spec in source.entities}

    teams = await fetch["teams"]("225")
    await fetch["schedule"]("225")

    assert teams == [{"id": 1}, {"id": 2}]
    assert seen == [
        {"data_type": "teams", "season_id": "225"},
        {"data_type": "schedule", "season_id": "225"},
    ]
    assert source.entity_names == nll.ENTITIES


async def test_pll_teams_via_graphql(settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["variables"] = json.loads(request.content)["variables"]
        return httpx.Response(200, json={"data": {"allTeams": [
            {"officialId": "ARC", "fullName": "Archers", "teamWins": 7},
        ]}})

    source = pll.build_source(settings, client=mock_client(handler))
    teams = await source.entities[0].fetch("2024")

    assert seen["url"] == "https://pll.example.test/graphql"
    assert seen["auth"] == "Bearer graphql-token"
    assert seen["variables"] == {"year": 2024, "includeChampSeries": True}
    assert teams[0].officialId == "ARC"
    assert teams[0].model_dump()["teamWins"] == 7


async def test_pll_standings_via_rest(settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"data": {"items": [{"seed": 1}, {"seed": 2}]}})

    client = pll.PLLClient(
        pll.FetchClient(settings.PLL_REST_BASE_URL, auth_token="rest-token", client=mock_client(handler)),
        pll.GraphQLClient(settings.PLL_GRAPHQL_URL, client=mock_client(handler)),
    )

    standings = await client.get_standings("2024")

    assert standings == [{"seed": 1}, {"seed": 2}]
    assert seen["path"] == "/api/v4/standings"
    assert seen["params"] == {"year": "2024", "champSeries": "false"}
    assert seen["auth"] == "Bearer rest-token"


async def test_pll_graphql_errors_surface(settings):
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "Unknown year"}]})

    source = pll.build_source(settings, client=mock_client(handler))

    with pytest.raises(GraphQLError):
        await source.entities[0].fetch("2019")


def test_pll_fan_out_filters():
    assert pll._has_slug(pll.PLLPlayer(officialId="1", slug="jane-doe"))
    assert not pll._has_slug(pll.PLLPlayer(officialId="2", slug=None))
    assert pll._is_completed(pll.PLLEvent(slugname="arc-vs-wat", eventStatus=3))
    assert not pll._is_completed(pll.PLLEvent(slugname="arc-vs-wat", eventStatus=1))


def test_pll_fan_outs_follow_producers():
    from lax_scraper.extractor import FanOutSpec

    source = pll.build_source(AppSettings())
    names = list(source.entity_names)
    for spec in source.entities:
        if isinstance(spec, FanOutSpec):
            assert names.index(spec.source_entity) < names.index(spec.name)
    assert [s.name for s in source.without_details().entities] == [
        "teams", "players", "advancedPlayers", "events", "standings", "standingsCS",
    ]


async def test_pll_default_headers_reach_both_endpoints(settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen[request.url.path] = request.headers
        if request.url.path == "/graphql":
            return httpx.Response(200, json={"data": {"allEvents": []}})
        return httpx.Response(200, json={"data": {"items": []}})

    source = pll.build_source(settings, client=mock_client(handler))
    fetch = {spec.name: spec.fetch for spec in source.entities}

    await fetch["events"]("2024")
    await fetch["standings"]("2024")

    rest = seen["/api/v4/standings"]
    assert rest["authsource"] == "web"
    assert rest["origin"] == "https://premierlacrosseleague.com"
    assert rest["referer"] == "https://premierlacrosseleague.com/"
    graphql = seen["/graphql"]
    assert graphql["origin"] == "https://stats.premierlacrosseleague.com"
    assert graphql["referer"] == "https://stats.premierlacrosseleague.com/"
    assert "authsource" not in graphql


@pytest.mark.parametrize("season_key", ["2024-25", "24", "2018", "2031", "latest"])
async def test_pll_rejects_non_year_season_before_request(settings, season_key):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"data": {"allTeams": []}})

    source = pll.build_source(settings, client=mock_client(handler))

    with pytest.raises(ParseError):
        await source.entities[0].fetch(season_key)

    assert requests == []


def test_pll_season_year_bounds():
    assert pll.season_year("2019") == 2019
    assert pll.season_year(" 2030 ") == 2030


def test_nll_season_ids_must_be_numeric():
    assert nll.check_season("225") == "225"
    with pytest.raises(ParseError):
        nll.check_season("2025-26")

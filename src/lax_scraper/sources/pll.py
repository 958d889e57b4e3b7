"""Premier Lacrosse League stats API.

Most entities come from the GraphQL endpoint; standings come from REST. Team,
player and event details fan out over the persisted teams, players and events
lists respectively.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from ..config import AppSettings
from ..errors import ParseError
from ..extractor import EntitySpec, FanOutSpec
from ..graphql import GraphQLClient
from ..http import FetchClient
from ..rate_limit import TokenBucket
from . import SourceDefinition

SOURCE = "pll"

PLL_SEASONS = tuple(str(year) for year in range(2019, 2026))

ENTITIES = (
    "teams",
    "teamDetails",
    "players",
    "advancedPlayers",
    "playerDetails",
    "events",
    "eventDetails",
    "standings",
    "standingsCS",
)

# Season years accepted anywhere a PLL season key is taken
MIN_SEASON_YEAR = 2019
MAX_SEASON_YEAR = 2030


def season_year(season_key: str) -> int:
    """Calendar year for a PLL season key.

    Raises:
        ParseError: key is not a year between MIN_SEASON_YEAR and MAX_SEASON_YEAR
    """
    key = str(season_key).strip()
    if not key.isdigit() or not MIN_SEASON_YEAR <= int(key) <= MAX_SEASON_YEAR:
        raise ParseError(
            f"Invalid PLL season {season_key!r}: expected a year "
            f"{MIN_SEASON_YEAR}-{MAX_SEASON_YEAR}"
        )
    return int(key)


# eventStatus for a finished game; only those have play-by-play detail.
EVENT_STATUS_COMPLETED = 3

TEAMS_QUERY = """
query($year: Int!, $includeChampSeries: Boolean!) {
  allTeams(year: $year) {
    officialId
    locationCode
    location
    fullName
    urlLogo
    league
    teamWins
    teamLosses
    teamTies
    champSeries(year: $year) @include(if: $includeChampSeries) {
      teamWins
      teamLosses
      teamTies
    }
  }
}
"""

TEAM_DETAIL_QUERY = """
query($id: ID!, $year: Int, $statsYear: Int, $eventsYear: Int) {
  team(id: $id, forYear: $year) {
    officialId
    fullName
    locationCode
    allYears
    coaches {
      officialId
      coachType
      firstName
      lastName
    }
    events(year: $eventsYear) {
      id
      slugname
      startTime
      eventStatus
    }
    stats(year: $statsYear, segment: regular) {
      scores
      scoresAgainst
      shots
      gamesPlayed
    }
  }
}
"""

PLAYERS_QUERY = """
query($season: Int, $includeZPP: Boolean!, $includeReg: Boolean!, $includePost: Boolean!, $limit: Int) {
  allPlayers(season: $season, includeZPP: $includeZPP, limit: $limit) {
    officialId
    firstName
    lastName
    slug
    position
    allTeams {
      officialId
      fullName
      jerseyNum
      year
    }
    stats(year: $season, segment: regular) @include(if: $includeReg) {
      gamesPlayed
      goals
      assists
      points
    }
    postStats: stats(year: $season, segment: post) @include(if: $includePost) {
      gamesPlayed
      goals
      assists
      points
    }
  }
}
"""

ADVANCED_PLAYERS_QUERY = """
query($year: Int, $limit: Int) {
  allPlayers(season: $year, limit: $limit, includeZPP: false) {
    officialId
    slug
    advancedSeasonStats {
      unassistedGoals
      assistedGoals
      settledGoals
      fastbreakGoals
      powerPlayGoals
    }
  }
}
"""

PLAYER_DETAIL_QUERY = """
query($slug: ID!, $year: Int, $statsYear: Int) {
  player(slug: $slug, forYear: $year) {
    officialId
    slug
    stats(year: $statsYear, segment: regular) {
      gamesPlayed
      goals
      assists
      points
    }
    allSeasonStats {
      year
      seasonSegment
      teamId
      gamesPlayed
      goals
      assists
      points
    }
    accolades {
      awardName
      years
    }
  }
}
"""

EVENTS_QUERY = """
query($year: Int!) {
  allEvents(year: $year) {
    id
    slugname
    externalId
    startTime
    week
    venue
    eventStatus
    homeScore
    visitorScore
  }
}
"""

EVENT_DETAIL_QUERY = """
query($slug: ID!) {
  event(slug: $slug) {
    id
    slugname
    homeTeam {
      officialId
    }
    awayTeam {
      officialId
    }
    homeScore
    visitorScore
    eventStatus
    period
    playLogs {
      id
      period
      minutes
      seconds
      teamId
      description
    }
  }
}
"""

STANDINGS_QUERY = """
query($year: Int!, $champSeries: Boolean!) {
  standings(season: $year, champSeries: $champSeries) {
    team {
      officialId
      fullName
    }
    seed
    csWins
    csLosses
    csTies
  }
}
"""


class PLLRecord(BaseModel):
    model_config = ConfigDict(extra="allow")


class PLLTeam(PLLRecord):
    officialId: str


class PLLPlayer(PLLRecord):
    officialId: str
    slug: Optional[str] = None


class PLLEvent(PLLRecord):
    slugname: Optional[str] = None
    eventStatus: Optional[int] = None


class TeamsData(BaseModel):
    allTeams: List[PLLTeam]


class TeamDetailData(BaseModel):
    team: Optional[Dict[str, Any]] = None


class PlayersData(BaseModel):
    allPlayers: List[PLLPlayer]


class AdvancedPlayersData(BaseModel):
    allPlayers: List[Dict[str, Any]]


class PlayerDetailData(BaseModel):
    player: Optional[Dict[str, Any]] = None


class EventsData(BaseModel):
    allEvents: List[PLLEvent]


class EventDetailData(BaseModel):
    event: Optional[Dict[str, Any]] = None


class StandingsData(BaseModel):
    standings: List[Dict[str, Any]]


class RestStandingsItems(BaseModel):
    items: List[Dict[str, Any]]


class RestStandingsResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    data: RestStandingsItems


class PLLClient:
    """Season-keyed PLL calls; season keys are calendar years."""

    def __init__(self, rest: FetchClient, graphql: GraphQLClient) -> None:
        self.rest = rest
        self.graphql = graphql

    async def get_teams(self, season_key: str) -> List[PLLTeam]:
        data = await self.graphql.query(
            TEAMS_QUERY, TeamsData, {"year": season_year(season_key), "includeChampSeries": True}
        )
        return data.allTeams

    async def get_team_detail(self, season_key: str, team: PLLTeam) -> Optional[Dict[str, Any]]:
        year = season_year(season_key)
        data = await self.graphql.query(
            TEAM_DETAIL_QUERY,
            TeamDetailData,
            {"id": team.officialId, "year": year, "statsYear": year, "eventsYear": year},
        )
        return data.team

    async def get_players(self, season_key: str) -> List[PLLPlayer]:
        data = await self.graphql.query(
            PLAYERS_QUERY,
            PlayersData,
            {
                "season": season_year(season_key),
                "includeZPP": False,
                "includeReg": True,
                "includePost": True,
                "limit": 1000,
            },
        )
        return data.allPlayers

    async def get_advanced_players(self, season_key: str) -> List[Dict[str, Any]]:
        data = await self.graphql.query(
            ADVANCED_PLAYERS_QUERY, AdvancedPlayersData, {"year": season_year(season_key), "limit": 1000}
        )
        return data.allPlayers

    async def get_player_detail(self, season_key: str, player: PLLPlayer) -> Optional[Dict[str, Any]]:
        year = season_year(season_key)
        data = await self.graphql.query(
            PLAYER_DETAIL_QUERY,
            PlayerDetailData,
            {"slug": player.slug, "year": year, "statsYear": year},
        )
        return data.player

    async def get_events(self, season_key: str) -> List[PLLEvent]:
        data = await self.graphql.query(EVENTS_QUERY, EventsData, {"year": season_year(season_key)})
        return data.allEvents

    async def get_event_detail(self, season_key: str, event: PLLEvent) -> Optional[Dict[str, Any]]:
        data = await self.graphql.query(EVENT_DETAIL_QUERY, EventDetailData, {"slug": event.slugname})
        return data.event

    async def get_standings(self, season_key: str) -> List[Dict[str, Any]]:
        response = await self.rest.get(
            "/standings",
            RestStandingsResponse,
            params={"year": season_year(season_key), "champSeries": "false"},
        )
        return response.data.items

    async def get_standings_champ_series(self, season_key: str) -> List[Dict[str, Any]]:
        data = await self.graphql.query(
            STANDINGS_QUERY, StandingsData, {"year": season_year(season_key), "champSeries": True}
        )
        return data.standings

    async def aclose(self) -> None:
        await self.rest.aclose()
        await self.graphql.aclose()


def _has_slug(player: PLLPlayer) -> bool:
    return bool(player.slug)


def _is_completed(event: PLLEvent) -> bool:
    return event.eventStatus == EVENT_STATUS_COMPLETED and bool(event.slugname)


def build_source(
    settings: AppSettings,
    *,
    client: Optional[httpx.AsyncClient] = None,
    rate_limiter: Optional[TokenBucket] = None,
) -> SourceDefinition:
    rest_token = settings.PLL_REST_TOKEN.get_secret_value() if settings.PLL_REST_TOKEN else None
    graphql_token = (
        settings.PLL_GRAPHQL_TOKEN.get_secret_value() if settings.PLL_GRAPHQL_TOKEN else None
    )
    pll = PLLClient(
        FetchClient(
            settings.PLL_REST_BASE_URL,
            auth_token=rest_token,
            default_headers=settings.PLL_REST_HEADERS,
            user_agent=settings.USER_AGENT,
            timeout_ms=settings.TIMEOUT_MS,
            rate_limiter=rate_limiter,
            client=client,
        ),
        GraphQLClient(
            settings.PLL_GRAPHQL_URL,
            auth_token=graphql_token,
            default_headers=settings.PLL_GRAPHQL_HEADERS,
            user_agent=settings.USER_AGENT,
            timeout_ms=settings.TIMEOUT_MS,
            rate_limiter=rate_limiter,
            client=client,
        ),
    )
    return SourceDefinition(
        name=SOURCE,
        seasons=PLL_SEASONS,
        entities=(
            EntitySpec("teams", pll.get_teams),
            FanOutSpec(
                "teamDetails", "teams", pll.get_team_detail,
                item_model=PLLTeam, output_name="team-details",
            ),
            EntitySpec("players", pll.get_players),
            EntitySpec("advancedPlayers", pll.get_advanced_players, output_name="advanced-players"),
            FanOutSpec(
                "playerDetails", "players", pll.get_player_detail,
                item_model=PLLPlayer, output_name="player-details", select=_has_slug,
            ),
            EntitySpec("events", pll.get_events),
            FanOutSpec(
                "eventDetails", "events", pll.get_event_detail,
                item_model=PLLEvent, output_name="event-details", select=_is_completed,
            ),
            EntitySpec("standings", pll.get_standings),
            EntitySpec("standingsCS", pll.get_standings_champ_series, output_name="standings-cs"),
        ),
        closers=(pll.aclose,),
    )

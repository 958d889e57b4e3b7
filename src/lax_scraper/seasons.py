"""Season calendars: current vs historical seasons and league in-season windows."""

from dataclasses import dataclass
from datetime import date, datetime, UTC
from typing import Callable, Dict, List, Optional

from .config import AppSettings

# Season keys inside this range are calendar years; anything else is a
# provider-internal id (e.g. NLL's 225).
MIN_YEAR_KEY = 2000
MAX_YEAR_KEY = 2100


def _today() -> date:
    return datetime.now(UTC).date()


class SeasonConfig:
    """Owns which seasons are "current" (actively updating) and their max age."""

    def __init__(
        self,
        lookahead_years: int = 1,
        current_season_max_age_hours: float = 24.0,
        historical_season_max_age_hours: Optional[float] = None,
        today: Callable[[], date] = _today,
    ) -> None:
        self.lookahead_years = lookahead_years
        self.current_season_max_age_hours = current_season_max_age_hours
        self.historical_season_max_age_hours = historical_season_max_age_hours
        self._today = today

    @classmethod
    def from_settings(cls, settings: AppSettings, **kwargs) -> "SeasonConfig":
        return cls(
            lookahead_years=settings.SEASON_LOOKAHEAD_YEARS,
            current_season_max_age_hours=settings.CURRENT_SEASON_MAX_AGE_HOURS,
            **kwargs,
        )

    @property
    def current_year(self) -> int:
        return self._today().year

    def is_current_season(self, season_key: str) -> bool:
        """Year keys are current from this year through the lookahead window.

        Non-year keys are always treated as current since their mapping to
        calendar years is unknown.
        """
        try:
            year = int(str(season_key).strip())
        except ValueError:
            return True
        if MIN_YEAR_KEY <= year <= MAX_YEAR_KEY:
            return self.current_year <= year <= self.current_year + self.lookahead_years
        return True

    def current_season_years(self) -> List[int]:
        return [self.current_year + i for i in range(self.lookahead_years + 1)]

    def get_max_age_hours(self, season_key: str) -> Optional[float]:
        """Max age before re-extraction; None means never stale once extracted."""
        if self.is_current_season(season_key):
            return self.current_season_max_age_hours
        return self.historical_season_max_age_hours


@dataclass(frozen=True)
class MonthDay:
    month: int
    day: int


@dataclass(frozen=True)
class LeagueSeason:
    start: MonthDay
    end: MonthDay
    historical: bool = False


LEAGUE_SEASONS: Dict[str, LeagueSeason] = {
    "PLL": LeagueSeason(MonthDay(6, 1), MonthDay(9, 15)),
    "NLL": LeagueSeason(MonthDay(12, 1), MonthDay(5, 15)),
    "MLL": LeagueSeason(MonthDay(5, 1), MonthDay(8, 30), historical=True),
    "MSL": LeagueSeason(MonthDay(5, 1), MonthDay(9, 30)),
    "WLA": LeagueSeason(MonthDay(5, 1), MonthDay(9, 30)),
}


def is_in_season(day: date, season: LeagueSeason) -> bool:
    """Check whether ``day`` falls inside a league's season window.

    Windows whose start month is after their end month (NLL, Dec-May) wrap
    around the new year.
    """
    current = (day.month, day.day)
    start = (season.start.month, season.start.day)
    end = (season.end.month, season.end.day)
    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def get_active_leagues(day: Optional[date] = None) -> List[str]:
    """Non-historical leagues currently in season."""
    day = day or _today()
    return [
        league for league, season in LEAGUE_SEASONS.items()
        if not season.historical and is_in_season(day, season)
    ]


def get_all_active_leagues() -> List[str]:
    return [league for league, season in LEAGUE_SEASONS.items() if not season.historical]

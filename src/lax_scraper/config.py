"""Configuration management for the lacrosse scraper with safe test defaults."""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment types."""
    TEST = "TEST"
    DEV = "DEV"
    PROD = "PROD"


class LogFormat(str, Enum):
    """Supported log renderers."""
    JSON = "json"
    TEXT = "text"


class AppSettings(BaseSettings):
    """Application settings with safe defaults and dotenv support.

    Environment variables can be set directly or via .env file.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # ===================
    # Environment
    # ===================
    ENV: Environment = Field(
        default=Environment.TEST,
        description='Application environment: TEST, DEV, or PROD'
    )

    # ===================
    # Storage
    # ===================
    OUTPUT_DIR: Path = Field(
        default=Path('output'),
        description='Root directory for manifests and per-entity JSON output'
    )

    # ===================
    # HTTP Client
    # ===================
    TIMEOUT_MS: int = Field(default=30000, description='Per-request timeout in milliseconds')
    USER_AGENT: str = Field(
        default='Mozilla/5.0 (compatible; LaxScraper/1.0)',
        description='User agent for HTTP requests'
    )
    REQUESTS_PER_SECOND: float = Field(
        default=5.0,
        description='Client-side request pacing per source'
    )

    # ===================
    # Retry & Backoff
    # ===================
    RETRY_MAX: int = Field(default=3, description='Transient-error retries after the first attempt')
    RETRY_BASE_DELAY_MS: int = Field(default=1000, description='Base delay for exponential backoff')
    RATE_LIMIT_MAX_RETRIES: int = Field(default=3, description='Retries after HTTP 429 responses')
    RATE_LIMIT_DEFAULT_WAIT_MS: int = Field(
        default=1000,
        description='Wait used when a 429 response carries no Retry-After header'
    )
    RATE_LIMIT_MAX_WAIT_MS: int = Field(
        default=60000,
        description='Upper bound on any single rate-limit wait, regardless of server hints'
    )

    # ===================
    # Extraction
    # ===================
    EXTRACT_CONCURRENCY: int = Field(default=5, description='Concurrent fan-out sub-requests')
    EXTRACT_DELAY_MS: int = Field(default=100, description='Delay between entity requests')
    EXTRACT_BATCH_DELAY_MS: int = Field(default=500, description='Delay between seasons')
    CURRENT_SEASON_MAX_AGE_HOURS: float = Field(
        default=24.0,
        description='Age after which current-season data is re-extracted in incremental mode'
    )
    SEASON_LOOKAHEAD_YEARS: int = Field(
        default=1,
        description='Years after the current one still treated as current seasons'
    )

    # ===================
    # Sources
    # ===================
    NLL_BASE_URL: str = Field(
        default='https://nllstatsapp.aordev.com/api/v1/stats',
        description='NLL stats API base URL'
    )
    PLL_REST_BASE_URL: str = Field(
        default='https://api.stats.premierlacrosseleague.com/api/v4',
        description='PLL REST API base URL'
    )
    PLL_GRAPHQL_URL: str = Field(
        default='https://api.stats.premierlacrosseleague.com/graphql',
        description='PLL GraphQL endpoint'
    )
    PLL_REST_TOKEN: Optional[SecretStr] = Field(default=None, description='PLL REST bearer token')
    PLL_GRAPHQL_TOKEN: Optional[SecretStr] = Field(default=None, description='PLL GraphQL bearer token')
    PLL_REST_HEADERS: Dict[str, str] = Field(
        default={
            'authsource': 'web',
            'origin': 'https://premierlacrosseleague.com',
            'referer': 'https://premierlacrosseleague.com/',
        },
        description='Headers sent with every PLL REST request'
    )
    PLL_GRAPHQL_HEADERS: Dict[str, str] = Field(
        default={
            'origin': 'https://stats.premierlacrosseleague.com',
            'referer': 'https://stats.premierlacrosseleague.com/',
        },
        description='Headers sent with every PLL GraphQL request'
    )
    NLL_STATS_URL: str = Field(
        default='https://www.nll.com/stats/all-player-stats/',
        description='nll.com player stats page, scraped as HTML'
    )
    NLL_STATS_HEADERS: Dict[str, str] = Field(
        default={
            'origin': 'https://www.nll.com',
            'referer': 'https://www.nll.com/stats/',
        },
        description='Headers sent with every nll.com page request'
    )
    NLL_STATS_PAGE_DELAY_MS: int = Field(default=500, description='Delay between stats pages')

    # ===================
    # Logging
    # ===================
    LOG_LEVEL: str = Field(default='INFO', description='Logging level')
    LOG_FORMAT: LogFormat = Field(default=LogFormat.TEXT, description='Log format: json or text (PROD always logs json)')

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator('ENV', mode='before')
    @classmethod
    def validate_env(cls, v) -> Environment:
        """Validate and normalize environment value."""
        if isinstance(v, Environment):
            return v
        if isinstance(v, str):
            v_upper = v.upper()
            if v_upper in ('TEST', 'TESTING'):
                return Environment.TEST
            elif v_upper in ('DEV', 'DEVELOPMENT', 'LOCAL'):
                return Environment.DEV
            elif v_upper in ('PROD', 'PRODUCTION'):
                return Environment.PROD
        raise ValueError(f"ENV must be TEST, DEV, or PROD (got: {v})")

    def is_prod(self) -> bool:
        """Check if running in production environment."""
        return self.ENV == Environment.PROD


@lru_cache()
def get_settings() -> AppSettings:
    """Get cached application settings.

    Loads settings from:
    1. Environment variables
    2. .env file (if exists)
    3. Default values

    Returns:
        AppSettings: Cached settings instance
    """
    return AppSettings()

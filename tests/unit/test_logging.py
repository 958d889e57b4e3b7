"""Unit tests for structured logging setup."""

import pytest
import structlog

from lax_scraper.config import AppSettings
from lax_scraper.lax_logging import add_run_id, configure_logging, get_run_id


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def renderer():
    return structlog.get_config()["processors"][-1]


def test_text_format_uses_console_renderer():
    configure_logging(AppSettings(ENV="DEV", LOG_FORMAT="text"))
    assert isinstance(renderer(), structlog.dev.ConsoleRenderer)


def test_json_format_uses_json_renderer():
    configure_logging(AppSettings(ENV="DEV", LOG_FORMAT="json"))
    assert isinstance(renderer(), structlog.processors.JSONRenderer)


def test_production_always_logs_json():
    configure_logging(AppSettings(ENV="production", LOG_FORMAT="text"))
    assert isinstance(renderer(), structlog.processors.JSONRenderer)


def test_run_id_is_stable_within_context():
    event = add_run_id(None, "info", {"event": "Extracting entity"})
    assert event["run_id"] == get_run_id()
    assert len(event["run_id"]) == 8

"""Test configuration and fixtures for the lacrosse scraper test suite."""

import os
import sys
import pathlib

# Force test-safe defaults before any other imports
os.environ.setdefault('ENV', 'TEST')

# Ensure tests can import from src/
ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from datetime import date
from typing import List

import pytest

from lax_scraper.seasons import SeasonConfig


class RecordingSleep:
    """Async sleep stand-in that records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep():
    """Recording sleep so retry and pacing delays never block a test."""
    return RecordingSleep()


@pytest.fixture
def season_config():
    """Season calendar pinned to mid-2024, making 2024 and 2025 current."""
    return SeasonConfig(today=lambda: date(2024, 7, 1))


@pytest.fixture
def output_dir(tmp_path):
    """Isolated output root for manifests and entity files."""
    return tmp_path / "output"

"""Smoke tests for import stability and side-effect free modules."""

import importlib

import pytest

MODULES = [
    "lax_scraper",
    "lax_scraper.config",
    "lax_scraper.lax_logging",
    "lax_scraper.errors",
    "lax_scraper.http",
    "lax_scraper.graphql",
    "lax_scraper.scraper",
    "lax_scraper.retry",
    "lax_scraper.rate_limit",
    "lax_scraper.seasons",
    "lax_scraper.staleness",
    "lax_scraper.models",
    "lax_scraper.persist",
    "lax_scraper.manifest",
    "lax_scraper.extractor",
    "lax_scraper.sources",
    "lax_scraper.sources.nll",
    "lax_scraper.sources.nll_stats",
    "lax_scraper.sources.pll",
    "lax_scraper.factory",
    "lax_scraper.cli",
]


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name):
    assert importlib.import_module(name) is not None


def test_factory_builds_every_source(tmp_path):
    """Sources assemble without touching the network."""
    from lax_scraper.config import get_settings
    from lax_scraper.factory import available_sources, build_extractor
    from lax_scraper.sources import nll, pll

    settings = get_settings().model_copy(update={"OUTPUT_DIR": tmp_path})

    assert available_sources() == ["nll", "pll"]

    nll_extractor = build_extractor("nll", settings)
    assert nll_extractor.seasons == ("225",)
    assert [s.name for s in nll_extractor.entities] == list(nll.ENTITIES)

    pll_extractor = build_extractor("pll", settings, include_details=False)
    assert pll_extractor.seasons[0] == "2019"
    assert "teamDetails" not in [s.name for s in pll_extractor.entities]
    assert pll_extractor.manifest_store.entities == pll.ENTITIES
    assert pll_extractor.manifest_store.path == tmp_path / "pll" / "manifest.json"


def test_unknown_source_rejected():
    from lax_scraper.factory import build_extractor

    with pytest.raises(ValueError):
        build_extractor("mll")


def test_validate_seasons_per_source():
    from lax_scraper.factory import validate_seasons

    validate_seasons("pll", ["2019", "2025"])
    validate_seasons("nll", ["225"])

    with pytest.raises(ValueError, match="2024-25"):
        validate_seasons("pll", ["2024-25"])
    with pytest.raises(ValueError):
        validate_seasons("nll", ["2025-26"])
    with pytest.raises(ValueError):
        validate_seasons("wla", ["2024"])

"""Shared test fixtures."""

from __future__ import annotations

from datetime import timedelta

import pytest

from gentrack.config import load_config
from gentrack.db import get_connection, init_db
from gentrack.models import NewsArticle

from factories import NOW, make_plant


@pytest.fixture
def sample_config(tmp_path):
    """Minimal config for testing (no real API keys)."""
    config_text = """
classifier:
  benchmark: "subregion"

sources:
  snapshot:
    enabled: true
    path: "SNAPSHOT_PLACEHOLDER"
  eia:
    enabled: false
    api_key: "fake"
  newsapi:
    enabled: false
    api_key: "fake"

news:
  top_articles: 5
  cache_ttl_seconds: 900
  embeddings:
    enabled: false
    model: "minishlab/potion-base-8M"
    min_text_length: 50

pipeline:
  write_batch_size: 2

database:
  path: "DB_PATH_PLACEHOLDER"
"""
    db_path = str(tmp_path / "test.db")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(
        config_text.replace("DB_PATH_PLACEHOLDER", db_path)
        .replace("SNAPSHOT_PLACEHOLDER", str(tmp_path / "plants.json"))
    )
    return load_config(str(cfg_path))


@pytest.fixture
def db_conn(sample_config):
    """Initialized test database connection."""
    db_path = sample_config["database"]["path"]
    init_db(db_path)
    conn = get_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def sample_plants():
    """A small West Texas wind population plus one solar and one nuclear plant."""
    return [
        make_plant("1001", [0.40] * 12, name="Horse Hollow Wind Energy Center"),
        make_plant("1002", [0.30] * 12, name="Capricorn Ridge Wind Farm"),
        make_plant("1003", [0.0] * 9 + [None] * 3, name="Sweetwater Wind 4"),
        make_plant(
            "2001", [0.25] * 12, fuel="Solar", name="Topaz Solar Farm",
            owner="BHE Renewables", region="CAISO", subregion="SP15", state="CA",
        ),
        make_plant(
            "3001", [0.93] * 12, fuel="Nuclear", nameplate_mw=2400.0,
            name="Palo Verde Generating Station", owner="Arizona Public Service",
            region="Southwest", subregion="Arizona/Nevada", state="AZ",
        ),
    ]


@pytest.fixture
def sample_articles():
    """Classified articles at various ages relative to NOW."""
    return [
        NewsArticle(
            url="https://example.com/outage-1",
            title="Forced outage at Horse Hollow after turbine fire",
            published_at=NOW - timedelta(days=5),
            plant_codes={"1001"},
            topics={"outage"},
            sentiment="negative",
        ),
        NewsArticle(
            url="https://example.com/earnings",
            title="NextEra Energy earnings beat expectations",
            published_at=NOW - timedelta(days=45),
            plant_codes={"1001", "1002"},
            topics={"financial"},
            sentiment="positive",
        ),
        NewsArticle(
            url="https://example.com/lawsuit",
            title="Lawsuit filed over Capricorn Ridge expansion delay",
            published_at=NOW - timedelta(days=200),
            plant_codes={"1002"},
            topics={"other"},
            sentiment="negative",
        ),
        NewsArticle(
            url="https://example.com/unmatched",
            title="Grid operators prepare for summer demand",
            published_at=NOW - timedelta(days=3),
            topics={"other"},
        ),
    ]

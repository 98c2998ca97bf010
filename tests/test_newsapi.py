"""Tests for the NewsAPI source and its query builder."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from gentrack.ingest.newsapi import NewsAPISource, NewsQuery, build_queries

from factories import make_plant


def population():
    return [
        make_plant("1", [], name="Horse Hollow Wind Energy Center", nameplate_mw=735),
        make_plant("2", [], name="Capricorn Ridge", nameplate_mw=662),
        make_plant("3", [], name="Solar", nameplate_mw=900),
        make_plant("99999", [], name="State-Fuel Level Increment", nameplate_mw=5000),
        make_plant("4", [], name="Topaz Solar Farm", owner="BHE Renewables",
                   fuel="Solar", state="CA", nameplate_mw=550),
    ]


def test_plant_queries_come_first_and_carry_hint():
    queries = build_queries(population(), max_plant_queries=2)

    assert queries[0].plant_code == "1"
    assert queries[0].query == '"Horse Hollow Wind Energy Center" wind plant'
    assert queries[1].plant_code == "2"
    assert all(q.plant_code is None for q in queries[2:])


def test_generic_and_aggregate_names_are_skipped():
    hinted = {q.plant_code for q in build_queries(population()) if q.plant_code}
    assert hinted == {"1", "2", "4"}


def test_owner_queries_by_plant_count():
    queries = build_queries(population(), max_owner_queries=1, max_plant_queries=0)
    owner_queries = [q for q in queries if q.query.endswith("power plant") and q.tag != "generic"]
    assert owner_queries[0].query == '"NextEra Energy" power plant'
    assert owner_queries[0].tag == "NextEra Energy"


def test_state_fuel_and_generic_queries():
    queries = build_queries(population(), max_owner_queries=0, max_plant_queries=0)
    texts = [q.query for q in queries]
    assert "wind farm TX" in texts
    assert "solar farm CA" in texts
    assert sum(1 for q in queries if q.tag == "generic") == 5


def test_to_articles_drops_removed_and_undated():
    items = [
        {"url": "https://example.com/1", "title": "Fire at wind farm",
         "publishedAt": "2025-06-01T10:00:00Z", "source": {"name": "Wire"}},
        {"url": "https://example.com/2", "title": "[Removed]",
         "publishedAt": "2025-06-01T10:00:00Z"},
        {"url": "https://example.com/3", "title": "No date"},
        {"url": None, "title": "No url", "publishedAt": "2025-06-01T10:00:00Z"},
    ]
    articles = NewsAPISource._to_articles(items, NewsQuery("q", "plant:1", "1"))

    assert len(articles) == 1
    assert articles[0].source_name == "Wire"
    assert articles[0].plant_hint == "1"
    assert articles[0].query_tag == "plant:1"
    assert articles[0].published_at.tzinfo is not None


@pytest.mark.asyncio
async def test_fetch_articles_disabled(sample_config):
    assert await NewsAPISource(sample_config).fetch_articles(population()) == []


@pytest.mark.asyncio
async def test_failed_query_is_skipped(sample_config):
    sample_config["sources"]["newsapi"].update({"enabled": True, "query_delay": 0})
    source = NewsAPISource(sample_config)
    item = {"url": "https://example.com/a", "title": "Outage",
            "publishedAt": "2025-06-01T10:00:00Z"}
    search = AsyncMock(side_effect=[ValueError("bad query")] + [[item]] * 100)

    with patch.object(source, "_search", new=search):
        articles = await source.fetch_articles(population())

    assert search.await_count == len(build_queries(population()))
    assert len(articles) == search.await_count - 1

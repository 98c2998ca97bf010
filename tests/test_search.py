"""Tests for cached plant news listings and semantic search."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import numpy as np
import pytest

from gentrack.cache import TTLCache
from gentrack.db import insert_article, set_article_embedding
from gentrack.news.embeddings import article_text, cosine_similarity
from gentrack.news.search import (
    PlantNewsService,
    search_plant_news,
    search_plant_news_text,
)

from factories import NOW


@pytest.fixture
def stored_articles(db_conn, sample_articles):
    for a in sample_articles:
        insert_article(db_conn, a)
    return sample_articles


def test_cosine_similarity():
    assert cosine_similarity(np.array([1.0, 0.0]), np.array([1.0, 0.0])) == pytest.approx(1.0)
    assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == pytest.approx(0.0)
    assert cosine_similarity(np.array([0.0, 0.0]), np.array([1.0, 0.0])) == 0.0


def test_article_text():
    assert article_text("Title", None) == "Title"
    assert article_text("Title", "desc") == "Title desc"


def test_search_ranks_by_similarity(db_conn, stored_articles):
    outage, earnings = stored_articles[0], stored_articles[1]
    set_article_embedding(db_conn, outage.id, [1.0, 0.0])
    set_article_embedding(db_conn, earnings.id, [0.6, 0.8])

    results = search_plant_news(db_conn, "1001", [0.0, 1.0], now=NOW)

    assert [a.id for a, _ in results] == [earnings.id, outage.id]
    assert results[0][1] == pytest.approx(0.8)


def test_search_ignores_unembedded_and_out_of_window(db_conn, stored_articles):
    outage, earnings = stored_articles[0], stored_articles[1]
    set_article_embedding(db_conn, earnings.id, [1.0, 0.0])

    assert search_plant_news(db_conn, "1001", [1.0, 0.0], days_back=30, now=NOW) == []
    assert len(search_plant_news(db_conn, "1001", [1.0, 0.0], now=NOW)) == 1


def test_search_respects_max_results(db_conn, stored_articles):
    for a in stored_articles[:2]:
        set_article_embedding(db_conn, a.id, [1.0, 1.0])
    assert len(search_plant_news(db_conn, "1001", [1.0, 1.0], max_results=1, now=NOW)) == 1


def test_text_search_embeds_query(db_conn, stored_articles):
    set_article_embedding(db_conn, stored_articles[0].id, [1.0, 0.0])

    with patch(
        "gentrack.news.search.embed_texts", return_value=np.array([[1.0, 0.0]]),
    ) as embed:
        results = search_plant_news_text(db_conn, "1001", "turbine fire", now=NOW)

    embed.assert_called_once_with(["turbine fire"], "minishlab/potion-base-8M")
    assert results[0][0].id == stored_articles[0].id


def test_list_articles_filters_by_window_and_topic(db_conn, stored_articles):
    service = PlantNewsService(db_conn, TTLCache(ttl=900))

    recent = service.list_articles("1001", days_back=30, now=NOW)
    assert [a.id for a in recent] == [stored_articles[0].id]

    financial = service.list_articles("1001", topic="financial", now=NOW)
    assert [a.id for a in financial] == [stored_articles[1].id]

    assert len(service.list_articles("1001", limit=1, now=NOW)) == 1


def test_list_articles_served_from_cache(db_conn, stored_articles):
    cache = TTLCache(ttl=900)
    service = PlantNewsService(db_conn, cache)

    first = service.list_articles("1002", days_back=365, now=NOW)
    db_conn.execute("DELETE FROM news_articles")
    db_conn.commit()
    second = service.list_articles("1002", days_back=365, now=NOW)

    assert [a.id for a in second] == [a.id for a in first]
    cache.invalidate("1002")
    assert service.list_articles("1002", days_back=365, now=NOW) == []


def test_list_articles_for_unknown_plant(db_conn, stored_articles):
    service = PlantNewsService(db_conn, TTLCache(ttl=900))
    assert service.list_articles("9999", now=NOW - timedelta(days=1)) == []

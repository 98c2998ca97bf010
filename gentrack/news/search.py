"""Read-side lookups: cached plant news listings and semantic search."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone

import numpy as np

from gentrack.cache import TTLCache
from gentrack.db import get_plant_articles
from gentrack.models import NewsArticle
from gentrack.news.embeddings import DEFAULT_MODEL, cosine_similarity, embed_texts

logger = logging.getLogger(__name__)

# Listings are cached as the plant's full trailing-year article list
CACHE_WINDOW_DAYS = 365


def search_plant_news(
    conn: sqlite3.Connection,
    plant_code: str,
    query_embedding,
    days_back: int = 365,
    max_results: int = 10,
    now: datetime | None = None,
) -> list[tuple[NewsArticle, float]]:
    """Rank a plant's embedded articles by cosine similarity to a query vector."""
    now = now or datetime.now(timezone.utc)
    articles = get_plant_articles(
        conn, plant_code, now - timedelta(days=days_back), embedded_only=True,
    )
    query = np.asarray(query_embedding, dtype=np.float32)
    scored = [(a, cosine_similarity(query, a.embedding)) for a in articles]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:max_results]


def search_plant_news_text(
    conn: sqlite3.Connection,
    plant_code: str,
    query_text: str,
    model_name: str = DEFAULT_MODEL,
    **kwargs,
) -> list[tuple[NewsArticle, float]]:
    """Embed free text with the article model, then search."""
    query_embedding = embed_texts([query_text], model_name)[0]
    return search_plant_news(conn, plant_code, query_embedding, **kwargs)


class PlantNewsService:
    """Plant news listings served through an injected per-plant cache."""

    def __init__(self, conn: sqlite3.Connection, cache: TTLCache):
        self.conn = conn
        self.cache = cache

    def _plant_articles(self, plant_code: str, now: datetime) -> list[NewsArticle]:
        articles = self.cache.get(plant_code)
        if articles is None:
            articles = get_plant_articles(
                self.conn, plant_code, now - timedelta(days=CACHE_WINDOW_DAYS),
            )
            self.cache.set(plant_code, articles)
            logger.debug("Cached %d articles for plant %s", len(articles), plant_code)
        return articles

    def list_articles(
        self,
        plant_code: str,
        days_back: int = 90,
        topic: str | None = None,
        limit: int = 20,
        now: datetime | None = None,
    ) -> list[NewsArticle]:
        """Stored articles for a plant, newest first, optionally filtered by topic."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days_back)
        results = [
            a for a in self._plant_articles(plant_code, now)
            if a.published_at >= cutoff and (topic is None or topic in a.topics)
        ]
        return results[:limit]

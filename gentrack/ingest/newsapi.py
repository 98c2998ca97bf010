"""NewsAPI.org source: coarse owner/state/plant queries over the plant population."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from gentrack.ingest import register_source
from gentrack.ingest.base import BaseNewsSource
from gentrack.models import FUEL_NUCLEAR, FUEL_SOLAR, FUEL_WIND, NewsArticle, Plant
from gentrack.retry import retry_async

logger = logging.getLogger(__name__)

NEWSAPI_URL = "https://newsapi.org/v2/everything"

GENERIC_QUERIES = [
    "US power plant outage",
    "wind farm fire damage United States",
    "solar farm FERC interconnection",
    "nuclear power plant shutdown NRC",
    "power plant acquisition merger United States",
]

FUEL_PHRASES = {
    FUEL_SOLAR: "solar farm",
    FUEL_WIND: "wind farm",
    FUEL_NUCLEAR: "nuclear plant",
}

SKIP_GENERIC_NAMES = {"energy", "power", "solar", "wind", "unit", "plant", "station", "farm", "gen"}
SKIP_NAME_FRAGMENTS = ("increment", "state-fuel", "level", "aggregate")
PLACEHOLDER_PLANT_CODE = "99999"
MIN_QUERY_NAME_LENGTH = 6
TOP_STATES = 6


@dataclass
class NewsQuery:
    query: str
    tag: str
    plant_code: str | None = None


def _queryable_name(plant: Plant) -> bool:
    name = plant.name.lower()
    return (
        len(plant.name) >= MIN_QUERY_NAME_LENGTH
        and name not in SKIP_GENERIC_NAMES
        and not any(fragment in name for fragment in SKIP_NAME_FRAGMENTS)
        and plant.code != PLACEHOLDER_PLANT_CODE
    )


def build_queries(
    plants: list[Plant], max_owner_queries: int = 25, max_plant_queries: int = 20,
) -> list[NewsQuery]:
    """Plant-name queries first, then owner, state/fuel and generic queries.

    Plant-specific queries run first so their articles keep the plant hint
    before a later coarse query returns the same URL.
    """
    top_plants = sorted(
        (p for p in plants if _queryable_name(p)),
        key=lambda p: p.nameplate_mw,
        reverse=True,
    )[:max_plant_queries]
    queries = [
        NewsQuery(
            query=f'"{p.name}" {p.fuel.lower()} plant',
            tag=f"plant:{p.code}",
            plant_code=p.code,
        )
        for p in top_plants
    ]

    owner_counts = Counter(p.owner for p in plants if p.owner)
    for owner, _ in owner_counts.most_common(max_owner_queries):
        queries.append(NewsQuery(query=f'"{owner}" power plant', tag=owner))

    fuels_by_state: dict[str, set[str]] = {}
    for p in plants:
        if p.state:
            fuels_by_state.setdefault(p.state, set()).add(p.fuel)
    top_states = sorted(fuels_by_state.items(), key=lambda kv: len(kv[1]), reverse=True)
    for state, fuels in top_states[:TOP_STATES]:
        for fuel in sorted(fuels):
            phrase = FUEL_PHRASES.get(fuel, "power plant")
            queries.append(NewsQuery(query=f"{phrase} {state}", tag=f"{fuel}:{state}"))

    queries.extend(NewsQuery(query=q, tag="generic") for q in GENERIC_QUERIES)
    return queries


def _parse_published(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@register_source("newsapi")
class NewsAPISource(BaseNewsSource):
    """Fetch recent articles from the NewsAPI.org "everything" endpoint."""

    @property
    def name(self) -> str:
        return "newsapi"

    async def fetch_articles(self, plants: list[Plant]) -> list[NewsArticle]:
        cfg = self.config.get("sources", {}).get("newsapi", {})
        if not cfg.get("enabled", False):
            return []

        api_key = cfg.get("api_key", "")
        if not api_key:
            logger.warning("NewsAPI key not configured")
            return []

        lookback = cfg.get("lookback_days", 7)
        from_date = (datetime.now(timezone.utc) - timedelta(days=lookback)).date().isoformat()
        queries = build_queries(
            plants,
            max_owner_queries=cfg.get("max_owner_queries", 25),
            max_plant_queries=cfg.get("max_plant_queries", 20),
        )
        logger.info("Built %d news queries", len(queries))

        articles = []
        async with httpx.AsyncClient(timeout=cfg.get("timeout", 30)) as client:
            for q in queries:
                try:
                    items = await retry_async(
                        self._search, client, api_key, q.query, from_date,
                        cfg.get("page_size", 30),
                    )
                except Exception:
                    logger.exception("NewsAPI query failed: %s", q.query)
                    continue
                articles.extend(self._to_articles(items, q))
                await asyncio.sleep(cfg.get("query_delay", 0.3))

        logger.info("NewsAPI fetched %d articles", len(articles))
        return articles

    async def _search(
        self, client: httpx.AsyncClient, api_key: str, query: str,
        from_date: str, page_size: int,
    ) -> list[dict]:
        resp = await client.get(
            NEWSAPI_URL,
            params={
                "q": query,
                "language": "en",
                "sortBy": "publishedAt",
                "from": from_date,
                "pageSize": str(page_size),
                "apiKey": api_key,
            },
        )
        resp.raise_for_status()
        return resp.json().get("articles", [])

    @staticmethod
    def _to_articles(items: list[dict], query: NewsQuery) -> list[NewsArticle]:
        articles = []
        for item in items:
            url = item.get("url")
            title = item.get("title")
            if not url or not title or title == "[Removed]":
                continue
            published_at = _parse_published(item.get("publishedAt"))
            if published_at is None:
                continue
            articles.append(
                NewsArticle(
                    url=url,
                    title=title,
                    description=item.get("description"),
                    content=item.get("content"),
                    source_name=(item.get("source") or {}).get("name"),
                    published_at=published_at,
                    query_tag=query.tag,
                    plant_hint=query.plant_code,
                )
            )
        return articles

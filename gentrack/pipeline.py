"""Pipeline orchestrator: generation classification cycle and news cycle."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable

from gentrack.config import (
    get_active_sources,
    get_classifier_config,
    get_db_path,
    get_news_config,
    get_write_batch_size,
)
from gentrack.db import (
    clear_ratings,
    clear_statuses,
    finish_run,
    get_articles_since,
    get_connection,
    get_known_article_ids,
    get_plants,
    get_unembedded_articles,
    insert_article,
    insert_ratings,
    insert_run,
    insert_statuses,
    set_article_embedding,
    upsert_plants,
)
from gentrack.generation.classifier import TrendClassifier
from gentrack.generation.regional import build_peer_tables
from gentrack.ingest import SOURCES
from gentrack.models import NewsArticle, PipelineRun, Plant
from gentrack.news.classify import tag_article
from gentrack.news.embeddings import article_text, embed_texts
from gentrack.news.matcher import PlantIndex
from gentrack.news.ratings import compute_ratings

logger = logging.getLogger(__name__)

RATING_LOOKBACK_DAYS = 365
EMBED_BATCH_SIZE = 100
EMBED_FETCH_LIMIT = 500


def _sources_of_kind(config: dict, kind: str) -> list:
    sources = []
    for name in get_active_sources(config):
        cls = SOURCES.get(name)
        if cls is None:
            logger.warning("Source '%s' enabled but not registered", name)
            continue
        if cls.kind == kind:
            sources.append(cls(config))
    return sources


async def fetch_plants(config: dict) -> list[Plant]:
    """Collect plants from every enabled plant source; later sources win per code."""

    async def _fetch(source) -> list[Plant]:
        try:
            return await source.fetch_plants()
        except Exception:
            logger.exception("Plant source '%s' failed", source.name)
            return []

    results = await asyncio.gather(*[_fetch(s) for s in _sources_of_kind(config, "plants")])
    merged: dict[str, Plant] = {}
    for batch in results:
        for plant in batch:
            merged[plant.code] = plant
    return list(merged.values())


async def fetch_articles(config: dict, plants: list[Plant]) -> list[NewsArticle]:
    async def _fetch(source) -> list[NewsArticle]:
        try:
            return await source.fetch_articles(plants)
        except Exception:
            logger.exception("News source '%s' failed", source.name)
            return []

    results = await asyncio.gather(*[_fetch(s) for s in _sources_of_kind(config, "news")])
    return [a for batch in results for a in batch]


def publish_in_batches(
    conn: sqlite3.Connection,
    items: list,
    clear: Callable[[sqlite3.Connection], None],
    insert: Callable[[sqlite3.Connection, list], None],
    batch_size: int = 200,
    label: str = "rows",
) -> tuple[int, int]:
    """Replace a table's contents in one transaction, batch by batch.

    Each batch runs inside its own savepoint. A failing batch is rolled back
    to that savepoint and counted; the remaining batches still run. Readers
    see either the previous contents or the complete new set, never a mix.
    If every batch fails the previous contents are kept. Returns
    (written, errors).
    """
    written = 0
    errors = 0
    conn.execute("BEGIN")
    try:
        clear(conn)
        for start in range(0, len(items), batch_size):
            batch = items[start:start + batch_size]
            conn.execute("SAVEPOINT publish_batch")
            try:
                insert(conn, batch)
            except sqlite3.Error:
                logger.exception("Failed to write %s batch at offset %d", label, start)
                conn.execute("ROLLBACK TO SAVEPOINT publish_batch")
                errors += 1
            else:
                written += len(batch)
            conn.execute("RELEASE SAVEPOINT publish_batch")

        if items and not written:
            logger.warning("Every %s batch failed, keeping previous contents", label)
            conn.rollback()
        else:
            conn.commit()
    except Exception:
        conn.rollback()
        raise

    logger.info("Wrote %d %s (%d failed batches)", written, label, errors)
    return written, errors


def _finish(conn: sqlite3.Connection, run: PipelineRun, status: str) -> None:
    run.status = status
    run.finished_at = datetime.now(timezone.utc)
    finish_run(conn, run.id, run)


async def run_generation_cycle(config: dict, plants: list[Plant] | None = None) -> PipelineRun:
    """Refresh plants, rebuild peer tables, classify every plant and publish statuses."""
    conn = get_connection(get_db_path(config))
    run = PipelineRun(kind="generation")
    run.id = insert_run(conn, run)
    logger.info("Generation run #%d started", run.id)

    try:
        if plants is None:
            plants = await fetch_plants(config)
        if plants:
            upsert_plants(conn, plants)
        plants = get_plants(conn)
        run.items_in = len(plants)

        if not plants:
            logger.warning("No plants available, nothing to classify")
            _finish(conn, run, "completed")
            return run

        # Peer tables cover the whole population before any plant is classified
        tables = build_peer_tables(plants)
        classifier = TrendClassifier(get_classifier_config(config), tables)
        statuses = classifier.classify_all(plants)

        run.items_written, run.write_errors = publish_in_batches(
            conn,
            statuses,
            clear_statuses,
            lambda c, batch: insert_statuses(c, batch, run.id),
            batch_size=get_write_batch_size(config),
            label="plant statuses",
        )
        _finish(conn, run, "completed")
        logger.info(
            "Generation run #%d completed: %d plants, %d written, %d batch errors",
            run.id, run.items_in, run.items_written, run.write_errors,
        )
        return run
    except Exception:
        logger.exception("Generation run #%d failed", run.id)
        _finish(conn, run, "failed")
        raise
    finally:
        conn.close()


def ingest_articles(
    conn: sqlite3.Connection,
    articles: list[NewsArticle],
    plants: list[Plant],
    lookback_days: int = 7,
) -> int:
    """Classify new articles and store them. Returns the number stored."""
    index = PlantIndex.build(plants)
    since = datetime.now(timezone.utc) - timedelta(days=lookback_days)
    known = get_known_article_ids(conn, since)
    stored = 0
    for article in articles:
        if article.id in known:
            continue
        known.add(article.id)
        tag_article(article, index, article.plant_hint)
        if insert_article(conn, article):
            stored += 1
    logger.info("Stored %d new articles (%d fetched)", stored, len(articles))
    return stored


def embed_pending(conn: sqlite3.Connection, config: dict) -> int:
    """Embed stored articles that have no embedding yet. Returns the count embedded."""
    cfg = get_news_config(config)["embeddings"]
    if not cfg.get("enabled", True):
        return 0

    pending = [
        a for a in get_unembedded_articles(conn, limit=EMBED_FETCH_LIMIT)
        if len(article_text(a.title, a.description)) >= cfg["min_text_length"]
    ]
    embedded = 0
    for start in range(0, len(pending), EMBED_BATCH_SIZE):
        batch = pending[start:start + EMBED_BATCH_SIZE]
        vectors = embed_texts(
            [article_text(a.title, a.description) for a in batch], cfg["model"],
        )
        for article, vector in zip(batch, vectors):
            set_article_embedding(conn, article.id, vector.tolist())
            embedded += 1
    logger.info("Embedded %d articles", embedded)
    return embedded


def publish_ratings(
    conn: sqlite3.Connection, config: dict, now: datetime | None = None,
) -> tuple[int, int]:
    """Recompute every plant's news rating from the trailing year and publish."""
    now = now or datetime.now(timezone.utc)
    articles = get_articles_since(conn, now - timedelta(days=RATING_LOOKBACK_DAYS))
    ratings = compute_ratings(
        articles, now=now, top_n=get_news_config(config)["top_articles"],
    )
    return publish_in_batches(
        conn,
        list(ratings.values()),
        clear_ratings,
        insert_ratings,
        batch_size=get_write_batch_size(config),
        label="plant ratings",
    )


async def run_news_cycle(config: dict, now: datetime | None = None) -> PipelineRun:
    """Fetch, classify and store news, embed it, then recompute plant ratings."""
    conn = get_connection(get_db_path(config))
    run = PipelineRun(kind="news")
    run.id = insert_run(conn, run)
    logger.info("News run #%d started", run.id)

    try:
        plants = get_plants(conn)
        articles = await fetch_articles(config, plants)
        run.items_in = len(articles)
        lookback = config.get("sources", {}).get("newsapi", {}).get("lookback_days", 7)
        ingest_articles(conn, articles, plants, lookback_days=lookback)

        try:
            embed_pending(conn, config)
        except Exception:
            logger.exception("Embedding step failed, continuing without embeddings")

        run.items_written, run.write_errors = publish_ratings(conn, config, now=now)
        _finish(conn, run, "completed")
        logger.info(
            "News run #%d completed: %d articles, %d ratings, %d batch errors",
            run.id, run.items_in, run.items_written, run.write_errors,
        )
        return run
    except Exception:
        logger.exception("News run #%d failed", run.id)
        _finish(conn, run, "failed")
        raise
    finally:
        conn.close()


async def run_pipeline(config: dict) -> list[PipelineRun]:
    """Run the generation cycle, then the news cycle."""
    generation = await run_generation_cycle(config)
    news = await run_news_cycle(config)
    return [generation, news]

"""SQLite database schema and query helpers."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import numpy as np

from gentrack.models import (
    GenerationSample,
    NewsArticle,
    PipelineRun,
    Plant,
    PlantRiskRating,
    PlantStatus,
    WindowCounts,
)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS plants (
    code TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    owner TEXT NOT NULL DEFAULT '',
    region TEXT NOT NULL,
    subregion TEXT NOT NULL DEFAULT '',
    fuel TEXT NOT NULL,
    nameplate_mw REAL NOT NULL,
    state TEXT NOT NULL DEFAULT '',
    county TEXT,
    cod TEXT,
    lat REAL,
    lng REAL
);

CREATE TABLE IF NOT EXISTS monthly_generation (
    plant_code TEXT NOT NULL,
    month TEXT NOT NULL,
    mwh REAL,
    PRIMARY KEY (plant_code, month),
    FOREIGN KEY (plant_code) REFERENCES plants(code) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS plant_status (
    plant_code TEXT PRIMARY KEY,
    display_state TEXT NOT NULL,
    ttm_average REAL NOT NULL DEFAULT 0,
    is_likely_curtailed INTEGER NOT NULL DEFAULT 0,
    curtailment_score INTEGER NOT NULL DEFAULT 0,
    has_no_recent_data INTEGER NOT NULL DEFAULT 0,
    is_maintenance_offline INTEGER NOT NULL DEFAULT 0,
    trailing_zero_months INTEGER NOT NULL DEFAULT 0,
    regional_reference REAL,
    active_months INTEGER NOT NULL DEFAULT 0,
    run_id INTEGER
);

CREATE TABLE IF NOT EXISTS news_articles (
    id TEXT PRIMARY KEY,
    url TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    content TEXT,
    source_name TEXT,
    query_tag TEXT,
    published_at TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    plant_codes TEXT NOT NULL DEFAULT '[]',
    owner_names TEXT NOT NULL DEFAULT '[]',
    states TEXT NOT NULL DEFAULT '[]',
    fuel_types TEXT NOT NULL DEFAULT '[]',
    topics TEXT NOT NULL DEFAULT '[]',
    sentiment TEXT NOT NULL DEFAULT 'neutral',
    embedding BLOB,
    embedded_at TEXT
);

CREATE TABLE IF NOT EXISTS plant_news_ratings (
    plant_code TEXT PRIMARY KEY,
    articles_30d INTEGER NOT NULL DEFAULT 0,
    negative_30d INTEGER NOT NULL DEFAULT 0,
    outage_30d INTEGER NOT NULL DEFAULT 0,
    articles_90d INTEGER NOT NULL DEFAULT 0,
    negative_90d INTEGER NOT NULL DEFAULT 0,
    outage_90d INTEGER NOT NULL DEFAULT 0,
    articles_365d INTEGER NOT NULL DEFAULT 0,
    negative_365d INTEGER NOT NULL DEFAULT 0,
    outage_365d INTEGER NOT NULL DEFAULT 0,
    risk_score REAL NOT NULL DEFAULT 0,
    top_article_ids TEXT NOT NULL DEFAULT '[]',
    computed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS pipeline_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL DEFAULT 'running',
    items_in INTEGER NOT NULL DEFAULT 0,
    items_written INTEGER NOT NULL DEFAULT 0,
    write_errors INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_news_articles_published_at ON news_articles(published_at);
CREATE INDEX IF NOT EXISTS idx_plants_region_fuel ON plants(region, fuel);
"""


def get_connection(db_path: str) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode enabled."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    """Create all tables and set schema version."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
    finally:
        conn.close()


def _dt_str(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def _parse_dt(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s)


def _json_set(values) -> str:
    return json.dumps(sorted(values))


# --- Plant helpers ---


def upsert_plants(conn: sqlite3.Connection, plants: list[Plant]) -> None:
    """Insert or replace plants together with their full generation history."""
    with conn:
        for plant in plants:
            conn.execute(
                """INSERT OR REPLACE INTO plants
                   (code, name, owner, region, subregion, fuel, nameplate_mw,
                    state, county, cod, lat, lng)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    plant.code, plant.name, plant.owner, plant.region,
                    plant.subregion, plant.fuel, plant.nameplate_mw,
                    plant.state, plant.county, plant.cod, plant.lat, plant.lng,
                ),
            )
            conn.execute(
                "DELETE FROM monthly_generation WHERE plant_code = ?", (plant.code,),
            )
            conn.executemany(
                "INSERT INTO monthly_generation (plant_code, month, mwh) VALUES (?, ?, ?)",
                [(plant.code, s.month, s.mwh) for s in plant.history],
            )


def get_plants(conn: sqlite3.Connection) -> list[Plant]:
    """Load every plant with its generation history in month order."""
    history: dict[str, list[GenerationSample]] = {}
    for row in conn.execute(
        "SELECT plant_code, month, mwh FROM monthly_generation ORDER BY plant_code, month"
    ):
        history.setdefault(row["plant_code"], []).append(
            GenerationSample(month=row["month"], mwh=row["mwh"])
        )

    rows = conn.execute("SELECT * FROM plants ORDER BY code").fetchall()
    return [
        Plant(
            code=row["code"],
            name=row["name"],
            owner=row["owner"],
            region=row["region"],
            subregion=row["subregion"],
            fuel=row["fuel"],
            nameplate_mw=row["nameplate_mw"],
            state=row["state"],
            county=row["county"],
            cod=row["cod"],
            lat=row["lat"],
            lng=row["lng"],
            history=history.get(row["code"], []),
        )
        for row in rows
    ]


# --- Plant status helpers ---


def clear_statuses(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM plant_status")


def insert_statuses(
    conn: sqlite3.Connection, statuses: list[PlantStatus], run_id: int | None = None,
) -> None:
    """Write statuses without committing; callers own the transaction."""
    conn.executemany(
        """INSERT OR REPLACE INTO plant_status
           (plant_code, display_state, ttm_average, is_likely_curtailed,
            curtailment_score, has_no_recent_data, is_maintenance_offline,
            trailing_zero_months, regional_reference, active_months, run_id)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (
                s.plant_code, s.display_state, s.ttm_average,
                int(s.is_likely_curtailed), s.curtailment_score,
                int(s.has_no_recent_data), int(s.is_maintenance_offline),
                s.trailing_zero_months, s.regional_reference, s.active_months,
                run_id,
            )
            for s in statuses
        ],
    )


def get_status(conn: sqlite3.Connection, plant_code: str) -> PlantStatus | None:
    row = conn.execute(
        "SELECT * FROM plant_status WHERE plant_code = ?", (plant_code,)
    ).fetchone()
    if row is None:
        return None
    return PlantStatus(
        plant_code=row["plant_code"],
        ttm_average=row["ttm_average"],
        is_likely_curtailed=bool(row["is_likely_curtailed"]),
        curtailment_score=row["curtailment_score"],
        has_no_recent_data=bool(row["has_no_recent_data"]),
        is_maintenance_offline=bool(row["is_maintenance_offline"]),
        trailing_zero_months=row["trailing_zero_months"],
        regional_reference=row["regional_reference"],
        active_months=row["active_months"],
    )


def count_statuses_by_state(conn: sqlite3.Connection) -> dict[str, int]:
    rows = conn.execute(
        "SELECT display_state, COUNT(*) AS n FROM plant_status GROUP BY display_state"
    ).fetchall()
    return {row["display_state"]: row["n"] for row in rows}


# --- News article helpers ---


def insert_article(conn: sqlite3.Connection, article: NewsArticle) -> bool:
    """Insert a classified article. Returns False if its URL is already stored."""
    cur = conn.execute(
        """INSERT OR IGNORE INTO news_articles
           (id, url, title, description, content, source_name, query_tag,
            published_at, fetched_at, plant_codes, owner_names, states,
            fuel_types, topics, sentiment)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            article.id,
            article.url,
            article.title,
            article.description,
            article.content,
            article.source_name,
            article.query_tag,
            _dt_str(article.published_at),
            _dt_str(article.fetched_at),
            _json_set(article.plant_codes),
            _json_set(article.owner_names),
            _json_set(article.states),
            _json_set(article.fuel_types),
            _json_set(article.topics),
            article.sentiment,
        ),
    )
    conn.commit()
    return cur.rowcount > 0


def get_known_article_ids(conn: sqlite3.Connection, since: datetime) -> set[str]:
    rows = conn.execute(
        "SELECT id FROM news_articles WHERE published_at >= ?", (_dt_str(since),)
    ).fetchall()
    return {row["id"] for row in rows}


def get_articles_since(
    conn: sqlite3.Connection, since: datetime, matched_only: bool = True,
) -> list[NewsArticle]:
    """Articles published on or after `since`, optionally only plant-matched ones."""
    sql = "SELECT * FROM news_articles WHERE published_at >= ?"
    if matched_only:
        sql += " AND plant_codes != '[]'"
    rows = conn.execute(sql, (_dt_str(since),)).fetchall()
    return [_row_to_article(row) for row in rows]


def get_plant_articles(
    conn: sqlite3.Connection,
    plant_code: str,
    since: datetime,
    embedded_only: bool = False,
) -> list[NewsArticle]:
    """Articles matched to a plant, newest first."""
    sql = """SELECT a.* FROM news_articles a
             WHERE a.published_at >= ?
               AND EXISTS (SELECT 1 FROM json_each(a.plant_codes) WHERE value = ?)"""
    if embedded_only:
        sql += " AND a.embedding IS NOT NULL"
    sql += " ORDER BY a.published_at DESC"
    rows = conn.execute(sql, (_dt_str(since), plant_code)).fetchall()
    return [_row_to_article(row) for row in rows]


def get_unembedded_articles(conn: sqlite3.Connection, limit: int = 500) -> list[NewsArticle]:
    rows = conn.execute(
        "SELECT * FROM news_articles WHERE embedding IS NULL ORDER BY fetched_at LIMIT ?",
        (limit,),
    ).fetchall()
    return [_row_to_article(row) for row in rows]


def set_article_embedding(
    conn: sqlite3.Connection, article_id: str, embedding: list[float],
) -> None:
    conn.execute(
        "UPDATE news_articles SET embedding = ?, embedded_at = ? WHERE id = ?",
        (
            np.asarray(embedding, dtype=np.float32).tobytes(),
            _dt_str(datetime.now(timezone.utc)),
            article_id,
        ),
    )
    conn.commit()


def _row_to_article(row: sqlite3.Row) -> NewsArticle:
    embedding = []
    if row["embedding"] is not None:
        embedding = np.frombuffer(row["embedding"], dtype=np.float32).tolist()
    return NewsArticle(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        description=row["description"],
        content=row["content"],
        source_name=row["source_name"],
        query_tag=row["query_tag"],
        published_at=_parse_dt(row["published_at"]),
        fetched_at=_parse_dt(row["fetched_at"]),
        plant_codes=set(json.loads(row["plant_codes"])),
        owner_names=set(json.loads(row["owner_names"])),
        states=set(json.loads(row["states"])),
        fuel_types=set(json.loads(row["fuel_types"])),
        topics=set(json.loads(row["topics"])),
        sentiment=row["sentiment"],
        embedding=embedding,
    )


# --- Rating helpers ---


def clear_ratings(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM plant_news_ratings")


def insert_ratings(conn: sqlite3.Connection, ratings: list[PlantRiskRating]) -> None:
    """Write ratings without committing; callers own the transaction."""
    rows = []
    for r in ratings:
        w30, w90, w365 = r.window(30), r.window(90), r.window(365)
        rows.append((
            r.plant_code,
            w30.article_count, w30.negative_count, w30.outage_count,
            w90.article_count, w90.negative_count, w90.outage_count,
            w365.article_count, w365.negative_count, w365.outage_count,
            r.risk_score,
            json.dumps(r.top_article_ids),
            _dt_str(r.computed_at),
        ))
    conn.executemany(
        """INSERT OR REPLACE INTO plant_news_ratings
           (plant_code, articles_30d, negative_30d, outage_30d,
            articles_90d, negative_90d, outage_90d,
            articles_365d, negative_365d, outage_365d,
            risk_score, top_article_ids, computed_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        rows,
    )


def get_rating(conn: sqlite3.Connection, plant_code: str) -> PlantRiskRating | None:
    row = conn.execute(
        "SELECT * FROM plant_news_ratings WHERE plant_code = ?", (plant_code,)
    ).fetchone()
    if row is None:
        return None
    return PlantRiskRating(
        plant_code=row["plant_code"],
        windows={
            days: WindowCounts(
                article_count=row[f"articles_{days}d"],
                negative_count=row[f"negative_{days}d"],
                outage_count=row[f"outage_{days}d"],
            )
            for days in (30, 90, 365)
        },
        risk_score=row["risk_score"],
        top_article_ids=json.loads(row["top_article_ids"]),
        computed_at=_parse_dt(row["computed_at"]),
    )


# --- PipelineRun helpers ---


def insert_run(conn: sqlite3.Connection, run: PipelineRun) -> int:
    cur = conn.execute(
        "INSERT INTO pipeline_runs (kind, started_at, status) VALUES (?, ?, ?)",
        (run.kind, _dt_str(run.started_at), run.status),
    )
    conn.commit()
    return cur.lastrowid


def finish_run(conn: sqlite3.Connection, run_id: int, run: PipelineRun) -> None:
    conn.execute(
        """UPDATE pipeline_runs SET
           finished_at = ?, status = ?, items_in = ?,
           items_written = ?, write_errors = ?
           WHERE id = ?""",
        (
            _dt_str(run.finished_at),
            run.status,
            run.items_in,
            run.items_written,
            run.write_errors,
            run_id,
        ),
    )
    conn.commit()


def get_recent_runs(conn: sqlite3.Connection, limit: int = 10) -> list[dict]:
    """Fetch recent pipeline runs for stats display."""
    rows = conn.execute(
        "SELECT * FROM pipeline_runs ORDER BY id DESC LIMIT ?", (limit,)
    ).fetchall()
    return [dict(row) for row in rows]

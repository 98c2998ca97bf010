"""CLI entrypoint: python -m gentrack {init-db|load|classify|ingest-news|embed|ratings|run|search|stats}."""

from __future__ import annotations

import asyncio
import logging
import logging.handlers
import os
import sys
from pathlib import Path

from gentrack.config import get_db_path, get_news_config, load_config
from gentrack.db import (
    count_statuses_by_state,
    get_connection,
    get_recent_runs,
    init_db,
)


def setup_logging(config: dict) -> None:
    """Configure logging with console + rotating file output."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    # File handler (rotate at 5MB, keep 3 backups)
    log_dir = Path(get_db_path(config)).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        str(log_dir / "gentrack.log"), maxBytes=5 * 1024 * 1024, backupCount=3,
    )
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def cmd_init_db(config: dict) -> None:
    """Initialize the SQLite database."""
    db_path = get_db_path(config)
    init_db(db_path)
    print(f"Database initialized at {db_path}")


async def cmd_load(config: dict) -> None:
    """Fetch plants from the enabled plant sources and store them."""
    from gentrack.db import upsert_plants
    from gentrack.pipeline import fetch_plants

    init_db(get_db_path(config))
    plants = await fetch_plants(config)
    conn = get_connection(get_db_path(config))
    try:
        upsert_plants(conn, plants)
    finally:
        conn.close()
    print(f"Loaded {len(plants)} plants")


async def cmd_classify(config: dict) -> None:
    """Classify stored plants without refetching them."""
    from gentrack.pipeline import run_generation_cycle

    init_db(get_db_path(config))
    run = await run_generation_cycle(config, plants=[])
    print(
        f"Classified {run.items_in} plants: {run.items_written} written, "
        f"{run.write_errors} failed batches"
    )


async def cmd_ingest_news(config: dict) -> None:
    """Fetch, classify and store news, then recompute ratings."""
    from gentrack.pipeline import run_news_cycle

    init_db(get_db_path(config))
    run = await run_news_cycle(config)
    print(f"Fetched {run.items_in} articles, wrote {run.items_written} ratings")


def cmd_embed(config: dict) -> None:
    """Embed stored articles that have no embedding yet."""
    from gentrack.pipeline import embed_pending

    init_db(get_db_path(config))
    conn = get_connection(get_db_path(config))
    try:
        count = embed_pending(conn, config)
    finally:
        conn.close()
    print(f"Embedded {count} articles")


def cmd_ratings(config: dict) -> None:
    """Recompute plant news ratings from stored articles."""
    from gentrack.pipeline import publish_ratings

    init_db(get_db_path(config))
    conn = get_connection(get_db_path(config))
    try:
        written, errors = publish_ratings(conn, config)
    finally:
        conn.close()
    print(f"Wrote {written} ratings ({errors} failed batches)")


def cmd_search(config: dict) -> None:
    """Semantic search over one plant's news: search <plant_code> <query...>."""
    from gentrack.news.search import search_plant_news_text

    if len(sys.argv) < 4:
        print("Usage: python -m gentrack search <plant_code> <query>")
        sys.exit(1)
    plant_code = sys.argv[2]
    query = " ".join(sys.argv[3:])

    conn = get_connection(get_db_path(config))
    try:
        results = search_plant_news_text(
            conn, plant_code, query, get_news_config(config)["embeddings"]["model"],
        )
    finally:
        conn.close()

    if not results:
        print("No matching articles.")
        return
    for article, score in results:
        print(f"{score:.3f}  {article.published_at:%Y-%m-%d}  {article.title}")


async def cmd_run(config: dict) -> None:
    """Run the generation cycle followed by the news cycle."""
    from gentrack.pipeline import run_pipeline

    init_db(get_db_path(config))
    await run_pipeline(config)


def cmd_stats(config: dict) -> None:
    """Show recent pipeline runs and the current status breakdown."""
    conn = get_connection(get_db_path(config))
    runs = get_recent_runs(conn, limit=10)
    states = count_statuses_by_state(conn)
    conn.close()

    if not runs:
        print("No pipeline runs yet.")
        return

    header = (
        f"{'Run':>4} {'Kind':<11} {'Status':<10} {'In':>6} "
        f"{'Written':>8} {'Errors':>7} {'Started'}"
    )
    print(header)
    print("-" * 70)
    for r in runs:
        print(
            f"{r['id']:>4} {r['kind']:<11} {r['status']:<10} "
            f"{r['items_in']:>6} {r['items_written']:>8} "
            f"{r['write_errors']:>7} {r['started_at']}"
        )

    if states:
        print()
        for state, count in sorted(states.items()):
            print(f"  {state:<12} {count}")


COMMANDS = {
    "init-db": cmd_init_db,
    "load": cmd_load,
    "classify": cmd_classify,
    "ingest-news": cmd_ingest_news,
    "embed": cmd_embed,
    "ratings": cmd_ratings,
    "run": cmd_run,
    "search": cmd_search,
    "stats": cmd_stats,
}


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        available = ", ".join(COMMANDS)
        print(f"Usage: python -m gentrack {{{available}}}")
        sys.exit(1)

    command = sys.argv[1]
    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    setup_logging(config)
    handler = COMMANDS[command]

    if asyncio.iscoroutinefunction(handler):
        asyncio.run(handler(config))
    else:
        handler(config)


if __name__ == "__main__":
    main()

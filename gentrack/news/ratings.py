"""Roll classified articles up into per-plant windowed counts and a risk score.

Ratings are recomputed from the full trailing-year corpus on every run and
replace the previous run's ratings wholesale.

    raw = outage_30d * 12 + negative_30d * 4
        + outage_90d * 4  + negative_90d * 1.5
        + outage_365d * 1 + negative_365d * 0.5
    risk_score = min(100, round(raw, 2))
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from gentrack.models import (
    SENTIMENT_NEGATIVE,
    TOPIC_OUTAGE,
    NewsArticle,
    PlantRiskRating,
)

logger = logging.getLogger(__name__)

WINDOWS = (30, 90, 365)

# (outage weight, negative weight) per window
WEIGHTS = {
    30: (12.0, 4.0),
    90: (4.0, 1.5),
    365: (1.0, 0.5),
}

MAX_SCORE = 100.0
TOP_ARTICLES = 5


def risk_score(rating: PlantRiskRating) -> float:
    raw = 0.0
    for days, (outage_weight, negative_weight) in WEIGHTS.items():
        counts = rating.window(days)
        raw += counts.outage_count * outage_weight
        raw += counts.negative_count * negative_weight
    return min(MAX_SCORE, round(raw, 2))


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def compute_ratings(
    articles: list[NewsArticle],
    now: datetime | None = None,
    top_n: int = TOP_ARTICLES,
) -> dict[str, PlantRiskRating]:
    """Build one rating per plant code that appears in any article's matches."""
    now = _as_utc(now or datetime.now(timezone.utc))
    ratings: dict[str, PlantRiskRating] = {}
    candidates: dict[str, list[tuple[datetime, str]]] = {}

    for article in articles:
        if not article.plant_codes:
            continue
        published = _as_utc(article.published_at)
        age = now - published
        is_negative = article.sentiment == SENTIMENT_NEGATIVE
        is_outage = TOPIC_OUTAGE in article.topics

        for code in sorted(article.plant_codes):
            rating = ratings.get(code)
            if rating is None:
                rating = ratings[code] = PlantRiskRating(plant_code=code, computed_at=now)
            in_any_window = False
            for days in WINDOWS:
                if age > timedelta(days=days):
                    continue
                in_any_window = True
                counts = rating.window(days)
                counts.article_count += 1
                if is_negative:
                    counts.negative_count += 1
                if is_outage:
                    counts.outage_count += 1
            if in_any_window and article.is_impactful:
                candidates.setdefault(code, []).append((published, article.id))

    for code, rating in ratings.items():
        for days in WINDOWS:
            rating.window(days)
        rating.risk_score = risk_score(rating)
        ranked = sorted(candidates.get(code, []), key=lambda c: c[0], reverse=True)
        rating.top_article_ids = [article_id for _, article_id in ranked[:top_n]]

    logger.info(
        "Computed news ratings for %d plants from %d articles",
        len(ratings), len(articles),
    )
    return ratings

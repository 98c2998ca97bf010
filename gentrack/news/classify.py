"""Keyword topic and sentiment classification for energy news."""

from __future__ import annotations

from gentrack.models import (
    NewsArticle,
    SENTIMENT_NEGATIVE,
    SENTIMENT_NEUTRAL,
    SENTIMENT_POSITIVE,
    TOPIC_OTHER,
)
from gentrack.news.matcher import PlantIndex, match_plants

TOPIC_KEYWORDS: dict[str, list[str]] = {
    "outage": [
        "outage", "shutdown", "offline", "tripped", "forced outage", "unplanned",
        "emergency shutdown", "fire", "explosion", "flood damage", "ice storm",
        "blackout", "curtailment",
    ],
    "regulatory": [
        "ferc", "epa", "permit", "violation", "fine", "penalty", "compliance",
        "regulation", "puc", "cpuc", "nrc", "ercot", "iso-ne", "pjm ruling",
        "order", "investigation",
    ],
    "financial": [
        "acquisition", "merger", "deal", "investment", "financing", "refinancing",
        "ppa", "power purchase", "offtake", "revenue", "earnings", "ipo",
        "bankruptcy", "default", "debt",
    ],
    "weather": [
        "hurricane", "tornado", "wildfire", "drought", "extreme heat",
        "winter storm", "freeze", "flooding", "hail", "lightning strike",
    ],
    "construction": [
        "construction", "commissioning", "commercial operation", "groundbreaking",
        "capacity expansion", "repowering", "upgrade", "retrofit", "interconnection",
    ],
}

NEGATIVE_WORDS = [
    "outage", "shutdown", "fire", "explosion", "flood", "damage", "curtailment",
    "fine", "penalty", "violation", "lawsuit", "protest", "opposition", "rejection",
    "bankruptcy", "default", "delay", "cancellation", "cancelled", "denied",
    "downgrade", "loss", "losses", "underperform", "failure", "failed",
]

POSITIVE_WORDS = [
    "record", "milestone", "approved", "approval", "award", "contract signed",
    "expansion", "upgrade", "commissioning", "online", "operational",
    "investment", "financing closed", "deal closed", "acquisition completed",
    "profit", "earnings beat",
]


def contains_any(text: str, needles: list[str]) -> bool:
    haystack = text.lower()
    return any(n in haystack for n in needles)


def classify_topics(text: str) -> set[str]:
    """Every topic whose keyword list hits the text, or {"other"}."""
    topics = {
        topic for topic, keywords in TOPIC_KEYWORDS.items()
        if contains_any(text, keywords)
    }
    return topics or {TOPIC_OTHER}


def count_terms(text: str, terms: list[str]) -> int:
    """Number of distinct terms from the list found in the text."""
    haystack = text.lower()
    return sum(1 for term in terms if term in haystack)


def classify_sentiment(text: str) -> str:
    negative = count_terms(text, NEGATIVE_WORDS)
    positive = count_terms(text, POSITIVE_WORDS)
    if negative > positive:
        return SENTIMENT_NEGATIVE
    if positive > negative:
        return SENTIMENT_POSITIVE
    return SENTIMENT_NEUTRAL


def tag_article(
    article: NewsArticle, index: PlantIndex, plant_code: str | None = None,
) -> NewsArticle:
    """Attach plant matches, topics and sentiment to an article in place."""
    text = article.search_text
    match = match_plants(text, index, plant_code)
    article.plant_codes = match.plant_codes
    article.owner_names = match.owner_names
    article.states = match.states
    article.fuel_types = match.fuel_types
    article.topics = classify_topics(text)
    article.sentiment = classify_sentiment(text)
    return article

"""Core data models for the generation and news pipelines."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone

FUEL_WIND = "Wind"
FUEL_SOLAR = "Solar"
FUEL_NUCLEAR = "Nuclear"
FUEL_SOURCES = (FUEL_WIND, FUEL_SOLAR, FUEL_NUCLEAR)

SENTIMENT_POSITIVE = "positive"
SENTIMENT_NEGATIVE = "negative"
SENTIMENT_NEUTRAL = "neutral"

TOPIC_OUTAGE = "outage"
TOPIC_OTHER = "other"

STATE_OPTIMAL = "optimal"
STATE_CURTAILED = "curtailed"
STATE_MAINTENANCE = "maintenance"
STATE_NO_DATA = "no_data"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def url_hash(url: str) -> str:
    """Stable article identifier derived from its URL."""
    return hashlib.sha256(url.encode()).hexdigest()[:16]


@dataclass
class GenerationSample:
    """One month of reported net generation for a plant."""

    month: str  # YYYY-MM
    mwh: float | None = None  # None = not reported, distinct from 0


@dataclass
class Plant:
    """A generating plant with its monthly generation history."""

    code: str  # EIA plant code
    name: str
    owner: str
    region: str
    subregion: str
    fuel: str  # Wind, Solar, Nuclear
    nameplate_mw: float
    state: str = ""
    county: str | None = None
    cod: str | None = None  # commercial operation date, YYYY-MM
    lat: float | None = None
    lng: float | None = None
    history: list[GenerationSample] = field(default_factory=list)


@dataclass
class CapacityFactorPoint:
    month: str
    factor: float | None = None
    mwh: float | None = None  # raw sample, when the point came from one

    @property
    def is_idle(self) -> bool:
        """Unreported or exactly zero generation.

        Judged on the raw sample when present, so a clamped negative month or
        a plant with no valid nameplate is not mistaken for an idle month.
        """
        if self.factor is None:
            return True
        if self.mwh is not None:
            return self.mwh == 0
        return self.factor == 0


@dataclass
class PlantStatus:
    """Classification of a plant's trailing-twelve-month performance."""

    plant_code: str
    ttm_average: float = 0.0
    is_likely_curtailed: bool = False
    curtailment_score: int = 0
    has_no_recent_data: bool = False
    is_maintenance_offline: bool = False
    trailing_zero_months: int = 0
    regional_reference: float | None = None
    active_months: int = 0
    monthly_factors: list[CapacityFactorPoint] = field(default_factory=list)

    @property
    def display_state(self) -> str:
        if self.is_maintenance_offline:
            return STATE_MAINTENANCE
        if self.has_no_recent_data:
            return STATE_NO_DATA
        if self.is_likely_curtailed:
            return STATE_CURTAILED
        return STATE_OPTIMAL


@dataclass
class NewsArticle:
    """A news article with its plant matches and keyword classification."""

    url: str
    title: str
    published_at: datetime
    description: str | None = None
    content: str | None = None
    source_name: str | None = None
    query_tag: str | None = None
    plant_codes: set[str] = field(default_factory=set)
    owner_names: set[str] = field(default_factory=set)
    states: set[str] = field(default_factory=set)
    fuel_types: set[str] = field(default_factory=set)
    topics: set[str] = field(default_factory=set)
    sentiment: str = SENTIMENT_NEUTRAL
    embedding: list[float] = field(default_factory=list)
    plant_hint: str | None = None  # set when fetched by a plant-specific query
    fetched_at: datetime = field(default_factory=_utcnow)
    id: str = ""

    def __post_init__(self):
        if not self.id and self.url:
            self.id = url_hash(self.url)

    @property
    def search_text(self) -> str:
        return " ".join(
            part for part in (self.title, self.description, self.content) if part
        )

    @property
    def is_impactful(self) -> bool:
        return self.sentiment == SENTIMENT_NEGATIVE or TOPIC_OUTAGE in self.topics


@dataclass
class WindowCounts:
    article_count: int = 0
    negative_count: int = 0
    outage_count: int = 0


@dataclass
class PlantRiskRating:
    """Windowed news counts and composite risk score for one plant."""

    plant_code: str
    windows: dict[int, WindowCounts] = field(default_factory=dict)
    risk_score: float = 0.0
    top_article_ids: list[str] = field(default_factory=list)
    computed_at: datetime = field(default_factory=_utcnow)

    def window(self, days: int) -> WindowCounts:
        return self.windows.setdefault(days, WindowCounts())


@dataclass
class PipelineRun:
    """Record of a single pipeline execution."""

    kind: str  # generation, news
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None
    status: str = "running"  # running, completed, failed
    items_in: int = 0
    items_written: int = 0
    write_errors: int = 0
    id: int | None = None

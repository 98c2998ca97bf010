"""Abstract base classes for plant and news sources."""

from __future__ import annotations

from abc import ABC, abstractmethod

from gentrack.models import NewsArticle, Plant


class BaseSource(ABC):
    """Base class for all source fetchers."""

    kind: str = ""  # plants, news

    def __init__(self, config: dict):
        self.config = config

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name as registered."""
        ...


class BasePlantSource(BaseSource):
    """A source of plant snapshots with generation history."""

    kind = "plants"

    @abstractmethod
    async def fetch_plants(self) -> list[Plant]:
        """Return validated plants. Invalid rows are skipped, never passed on."""
        ...


class BaseNewsSource(BaseSource):
    """A source of raw, unclassified news articles."""

    kind = "news"

    @abstractmethod
    async def fetch_articles(self, plants: list[Plant]) -> list[NewsArticle]:
        """Return raw articles, with `plant_hint` set for plant-targeted queries."""
        ...

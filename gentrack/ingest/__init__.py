"""Source fetcher registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gentrack.ingest.base import BaseSource

SOURCES: dict[str, type[BaseSource]] = {}


def register_source(name: str):
    """Decorator to register a source fetcher."""

    def decorator(cls):
        SOURCES[name] = cls
        return cls

    return decorator


# Import implementations to trigger registration
from gentrack.ingest.eia import EIASource  # noqa: E402, F401
from gentrack.ingest.newsapi import NewsAPISource  # noqa: E402, F401
from gentrack.ingest.snapshot import SnapshotSource  # noqa: E402, F401

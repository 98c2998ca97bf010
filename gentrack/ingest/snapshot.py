"""Plant snapshot loader for the plants.json manifest."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from gentrack.ingest import register_source
from gentrack.ingest.base import BasePlantSource
from gentrack.ingest.records import parse_plant
from gentrack.models import Plant

logger = logging.getLogger(__name__)


def parse_manifest(manifest: dict) -> list[Plant]:
    """Validate every plant row in a manifest, skipping and logging bad rows."""
    plants = []
    skipped = 0
    for raw in manifest.get("plants", []):
        try:
            plants.append(parse_plant(raw))
        except ValueError as exc:
            skipped += 1
            logger.warning("Skipping invalid plant row: %s", exc)
    if skipped:
        logger.info("Skipped %d invalid plant rows", skipped)
    return plants


@register_source("snapshot")
class SnapshotSource(BasePlantSource):
    """Read plants from a JSON manifest written by the EIA export job."""

    @property
    def name(self) -> str:
        return "snapshot"

    async def fetch_plants(self) -> list[Plant]:
        cfg = self.config.get("sources", {}).get("snapshot", {})
        path = Path(cfg.get("path", "data/plants.json"))
        if not path.is_file():
            logger.warning("Plant snapshot not found: %s", path)
            return []

        with open(path) as f:
            manifest = json.load(f)

        plants = parse_manifest(manifest)
        logger.info(
            "Loaded %d plants from %s (fetched %s)",
            len(plants), path, manifest.get("fetchedAt", "unknown"),
        )
        return plants

"""Regional peer benchmarks: average capacity factor per region/fuel and month."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from gentrack.generation.normalize import capacity_factor
from gentrack.models import Plant

logger = logging.getLogger(__name__)

# Months below this factor are treated as idle and never enter a peer average
PEER_FLOOR = 0.02

RegionKey = tuple[str, str]  # (region, fuel)
SubregionKey = tuple[str, str, str]  # (region, subregion, fuel)


@dataclass
class PeerTables:
    """Month -> average factor maps keyed by region and by subregion.

    Keys with no contributing plant are absent; callers treat a missing key
    as "no benchmark available".
    """

    regional: dict[RegionKey, dict[str, float]] = field(default_factory=dict)
    subregional: dict[SubregionKey, dict[str, float]] = field(default_factory=dict)

    def for_region(self, region: str, fuel: str) -> dict[str, float] | None:
        return self.regional.get((region, fuel))

    def for_subregion(self, region: str, subregion: str, fuel: str) -> dict[str, float] | None:
        return self.subregional.get((region, subregion, fuel))

    def for_plant(self, plant: Plant, prefer: str = "subregion") -> dict[str, float] | None:
        """Pick the peer series for a plant, falling back from subregion to region."""
        if prefer == "subregion":
            peers = self.for_subregion(plant.region, plant.subregion, plant.fuel)
            if peers:
                return peers
        return self.for_region(plant.region, plant.fuel)


def _accumulate(buckets, key, month: str, factor: float) -> None:
    bucket = buckets[key][month]
    bucket[0] += factor
    bucket[1] += 1


def _average(buckets) -> dict:
    return {
        key: {month: total / count for month, (total, count) in sorted(months.items())}
        for key, months in buckets.items()
    }


def build_peer_tables(plants: list[Plant]) -> PeerTables:
    """Aggregate every actively generating plant-month into peer averages."""
    regional = defaultdict(lambda: defaultdict(lambda: [0.0, 0]))
    subregional = defaultdict(lambda: defaultdict(lambda: [0.0, 0]))
    contributions = 0

    for plant in plants:
        for sample in plant.history:
            if not sample.mwh:
                continue
            factor = capacity_factor(sample.mwh, plant.nameplate_mw, sample.month)
            if factor is None or factor < PEER_FLOOR:
                continue
            _accumulate(regional, (plant.region, plant.fuel), sample.month, factor)
            _accumulate(
                subregional,
                (plant.region, plant.subregion, plant.fuel),
                sample.month,
                factor,
            )
            contributions += 1

    tables = PeerTables(regional=_average(regional), subregional=_average(subregional))
    logger.info(
        "Built peer tables from %d plant-months: %d regional, %d subregional keys",
        contributions, len(tables.regional), len(tables.subregional),
    )
    return tables


def trend_series(peers: dict[str, float] | None) -> list[tuple[str, float]]:
    """Month-ordered (month, avg_factor) pairs for charting."""
    if not peers:
        return []
    return sorted(peers.items())


def ttm_average(peers: dict[str, float] | None, months: int = 12) -> float | None:
    """Mean of the trailing `months` entries of a peer series."""
    series = trend_series(peers)[-months:]
    if not series:
        return None
    return sum(f for _, f in series) / len(series)

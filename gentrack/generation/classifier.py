"""Trailing-twelve-month status classification for a single plant.

Evaluation order is fixed: maintenance (a trailing run of zero/missing
months) short-circuits first, then the no-data check on active months, then
the curtailment comparison against the regional benchmark.
"""

from __future__ import annotations

import logging
import math

from gentrack.config import CLASSIFIER_DEFAULTS, DEFAULT_TYPICAL_FACTORS
from gentrack.generation.normalize import normalize_series
from gentrack.generation.regional import PeerTables
from gentrack.models import CapacityFactorPoint, Plant, PlantStatus

logger = logging.getLogger(__name__)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def trailing_zero_run(points: list[CapacityFactorPoint]) -> int:
    """Count consecutive unreported or zero-generation months ending at the latest point."""
    run = 0
    for point in reversed(points):
        if point.is_idle:
            run += 1
        else:
            break
    return run


def regional_reference(
    active: list[CapacityFactorPoint],
    peers: dict[str, float] | None,
    fuel: str,
    typical_factors: dict[str, float] | None = None,
) -> float:
    """Peer average over the plant's active months, else the national typical value."""
    if peers:
        matched = [peers[p.month] for p in active if p.month in peers]
        if matched:
            return _mean(matched)
    typical = typical_factors or DEFAULT_TYPICAL_FACTORS
    return typical.get(fuel, DEFAULT_TYPICAL_FACTORS.get(fuel, 0.3))


def classify_series(
    plant_code: str,
    points: list[CapacityFactorPoint],
    fuel: str,
    peers: dict[str, float] | None = None,
    settings: dict | None = None,
) -> PlantStatus:
    """Classify a chronological capacity-factor series into a PlantStatus."""
    cfg = dict(CLASSIFIER_DEFAULTS)
    cfg.update(settings or {})

    ttm = points[-cfg["ttm_months"]:] if points else []
    reported = [p.factor for p in ttm if p.factor is not None]
    status = PlantStatus(
        plant_code=plant_code,
        ttm_average=_mean(reported),
        monthly_factors=list(points),
    )

    status.trailing_zero_months = trailing_zero_run(ttm)
    if status.trailing_zero_months >= cfg["maintenance_run"]:
        status.is_maintenance_offline = True
        return status

    active = [
        p for p in ttm if p.factor is not None and p.factor > cfg["active_floor"]
    ]
    status.active_months = len(active)
    reference = regional_reference(active, peers, fuel, cfg.get("typical_factors"))
    status.regional_reference = reference

    if len(active) < cfg["min_active_months"]:
        status.has_no_recent_data = True
        return status

    active_avg = _mean([p.factor for p in active])
    status.is_likely_curtailed = active_avg < reference * cfg["curtailment_ratio"]
    if reference > 0:
        deficit = (reference - active_avg) / reference * 100
        status.curtailment_score = _round_half_up(min(max(deficit, 0.0), 100.0))
    return status


class TrendClassifier:
    """Classify plants against shared peer tables using configured thresholds."""

    def __init__(self, settings: dict | None = None, tables: PeerTables | None = None):
        self.settings = settings or {}
        self.tables = tables or PeerTables()

    def classify(self, plant: Plant) -> PlantStatus:
        points = normalize_series(plant.nameplate_mw, plant.history)
        peers = self.tables.for_plant(
            plant, prefer=self.settings.get("benchmark", "subregion"),
        )
        return classify_series(plant.code, points, plant.fuel, peers, self.settings)

    def classify_all(self, plants: list[Plant]) -> list[PlantStatus]:
        statuses = [self.classify(p) for p in plants]
        counts: dict[str, int] = {}
        for s in statuses:
            counts[s.display_state] = counts.get(s.display_state, 0) + 1
        logger.info("Classified %d plants: %s", len(statuses), counts)
        return statuses

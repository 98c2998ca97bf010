"""Tests for the trailing-twelve-month trend classifier."""

from __future__ import annotations

import pytest

from gentrack.generation.classifier import (
    TrendClassifier,
    classify_series,
    regional_reference,
    trailing_zero_run,
)
from gentrack.generation.normalize import normalize_series
from gentrack.generation.regional import build_peer_tables
from gentrack.models import CapacityFactorPoint, GenerationSample

from factories import MONTHS, make_plant


def points(factors, months=None):
    months = months or MONTHS[-len(factors):]
    return [CapacityFactorPoint(month=m, factor=f) for m, f in zip(months, factors)]


def peers_at(value, months=MONTHS):
    return {m: value for m in months}


# --- Maintenance detection ---


def test_three_trailing_zero_months_is_maintenance():
    status = classify_series("1", points([0.3] * 9 + [0.0, None, 0.0]), "Wind")
    assert status.is_maintenance_offline
    assert status.trailing_zero_months == 3
    assert not status.is_likely_curtailed
    assert status.curtailment_score == 0
    assert status.display_state == "maintenance"


def test_two_trailing_zero_months_is_not_maintenance():
    status = classify_series("1", points([0.3] * 10 + [0.0, None]), "Wind")
    assert not status.is_maintenance_offline
    assert status.trailing_zero_months == 2


def test_trailing_run_stops_at_generating_month():
    assert trailing_zero_run(points([0.0, 0.0, 0.3, 0.0, None])) == 2
    assert trailing_zero_run(points([])) == 0


def test_maintenance_ttm_average_ignores_nulls():
    status = classify_series("1", points([0.4] * 9 + [None] * 3), "Wind")
    assert status.is_maintenance_offline
    assert status.ttm_average == pytest.approx(0.4)


def test_maintenance_wins_over_no_data():
    """A plant with too few active months and a trailing zero run reads as maintenance."""
    status = classify_series("1", points([None] * 12), "Wind")
    assert status.is_maintenance_offline
    assert not status.has_no_recent_data


# --- No-data detection ---


def test_fewer_than_six_active_months_is_no_data():
    factors = [0.3] * 5 + [0.01] * 7
    status = classify_series("1", points(factors), "Wind", peers_at(0.5))
    assert status.has_no_recent_data
    assert status.active_months == 5
    assert status.curtailment_score == 0
    assert not status.is_likely_curtailed
    assert status.display_state == "no_data"


def test_empty_history_is_no_data():
    status = classify_series("1", [], "Solar")
    assert status.has_no_recent_data
    assert status.ttm_average == 0
    assert status.curtailment_score == 0


def test_active_floor_is_strict():
    factors = [0.02] * 7 + [0.3] * 5
    status = classify_series("1", points(factors), "Wind")
    assert status.active_months == 5
    assert status.has_no_recent_data


# --- Curtailment ---


def test_boundary_at_eighty_percent_is_not_curtailed():
    # 0.25 / 0.3125 is exactly 0.8
    status = classify_series("1", points([0.25] * 12), "Wind", peers_at(0.3125))
    assert status.regional_reference == pytest.approx(0.3125)
    assert not status.is_likely_curtailed
    assert status.curtailment_score == 20
    assert status.display_state == "optimal"


def test_underperforming_plant_is_curtailed():
    status = classify_series("1", points([0.2] * 12), "Wind", peers_at(0.4))
    assert status.is_likely_curtailed
    assert status.curtailment_score == 50
    assert status.display_state == "curtailed"


def test_outperforming_plant_scores_zero():
    status = classify_series("1", points([0.5] * 12), "Wind", peers_at(0.4))
    assert not status.is_likely_curtailed
    assert status.curtailment_score == 0


def test_only_last_twelve_seriescount():
    factors = [0.0] * 6 + [0.4] * 12
    months = [f"2023-{m:02d}" for m in range(7, 13)] + MONTHS
    status = classify_series("1", points(factors, months), "Wind", peers_at(0.4))
    assert status.ttm_average == pytest.approx(0.4)
    assert status.active_months == 12
    assert status.curtailment_score == 0


def test_score_is_integer_in_range():
    for plant_factor in (0.0001, 0.05, 0.2, 0.35, 0.9):
        factors = [plant_factor] * 6 + [0.3] * 6
        status = classify_series("1", points(factors), "Wind", peers_at(0.9))
        assert isinstance(status.curtailment_score, int)
        assert 0 <= status.curtailment_score <= 100


# --- Regional reference ---


def test_reference_uses_peer_months_matching_active_months():
    active = points([0.3, 0.3], ["2025-01", "2025-02"])
    peers = {"2025-01": 0.4, "2025-02": 0.6, "2025-03": 0.9}
    assert regional_reference(active, peers, "Wind") == pytest.approx(0.5)


def test_reference_skips_missing_peer_months():
    active = points([0.3, 0.3], ["2025-01", "2025-02"])
    assert regional_reference(active, {"2025-02": 0.6}, "Wind") == pytest.approx(0.6)


@pytest.mark.parametrize(
    "fuel, expected", [("Wind", 0.35), ("Solar", 0.22), ("Nuclear", 0.92)],
)
def test_reference_falls_back_to_national_typical(fuel, expected):
    active = points([0.3], ["2025-01"])
    assert regional_reference(active, None, fuel) == expected
    assert regional_reference(active, {"2024-01": 0.5}, fuel) == expected


def test_configured_typical_factor_overrides_default():
    active = points([0.3], ["2025-01"])
    assert regional_reference(active, None, "Wind", {"Wind": 0.4}) == 0.4


# --- End-to-end scenarios ---


def test_solar_plant_with_twelve_zero_months():
    plant = make_plant("S1", [0.0] * 12, fuel="Solar", nameplate_mw=100.0)
    status = classify_series(
        plant.code, normalize_series(plant.nameplate_mw, plant.history), plant.fuel,
    )
    assert status.is_maintenance_offline
    assert status.curtailment_score == 0
    assert status.ttm_average == 0


def test_wind_plant_with_five_active_months():
    factors = [None, 0.1] * 5 + [None, None]
    plant = make_plant("W1", factors, fuel="Wind", nameplate_mw=50.0)
    status = classify_series(
        plant.code, normalize_series(plant.nameplate_mw, plant.history), plant.fuel,
    )
    assert not status.is_maintenance_offline
    assert status.has_no_recent_data
    assert status.active_months == 5
    assert status.curtailment_score == 0


def test_trend_classifier_uses_shared_peer_tables(sample_plants):
    laggard = make_plant("1009", [0.1] * 12, name="Laggard Wind")
    plants = sample_plants + [laggard]
    classifier = TrendClassifier({"benchmark": "subregion"}, build_peer_tables(plants))

    statuses = {s.plant_code: s for s in classifier.classify_all(plants)}

    assert statuses["1003"].display_state == "maintenance"
    assert statuses["1009"].display_state == "curtailed"
    assert statuses["1001"].display_state == "optimal"
    # Peers for West Texas wind: 0.4, 0.3 and 0.1 average to 0.2667
    assert statuses["1009"].regional_reference == pytest.approx((0.4 + 0.3 + 0.1) / 3)


def test_trend_classifier_without_peers_uses_typical():
    plant = make_plant("N1", [0.5] * 12, fuel="Nuclear", nameplate_mw=1000.0)
    status = TrendClassifier().classify(plant)
    assert status.regional_reference == 0.92
    assert status.is_likely_curtailed


def test_negative_net_generation_is_not_maintenance():
    """Clamped negative months were reported and are not counted as idle."""
    plant = make_plant("N2", [0.9] * 9 + [-0.01] * 3, fuel="Nuclear", nameplate_mw=1000.0)
    series = normalize_series(plant.nameplate_mw, plant.history)
    assert [p.factor for p in series[-3:]] == [0.0, 0.0, 0.0]

    status = classify_series(plant.code, series, plant.fuel)

    assert not status.is_maintenance_offline
    assert status.trailing_zero_months == 0
    assert status.active_months == 9


def test_plant_without_valid_nameplate_is_not_maintenance():
    samples = [GenerationSample(month=m, mwh=5000.0) for m in MONTHS]
    status = classify_series("Z1", normalize_series(0.0, samples), "Wind")
    assert not status.is_maintenance_offline
    assert status.has_no_recent_data
    assert status.curtailment_score == 0


def test_reported_zero_months_still_count_as_idle():
    samples = [GenerationSample(month=m, mwh=30000.0) for m in MONTHS[:9]]
    samples += [GenerationSample(month=m, mwh=0.0) for m in MONTHS[9:]]
    status = classify_series("Z2", normalize_series(100.0, samples), "Wind")
    assert status.is_maintenance_offline

"""Tests for plant row validation and the snapshot source."""

from __future__ import annotations

import json

import pytest

from gentrack.ingest import SOURCES
from gentrack.ingest.records import (
    fill_missing_months,
    month_range,
    parse_history,
    parse_plant,
    region_for_state,
    subregion_for,
)
from gentrack.ingest.snapshot import SnapshotSource, parse_manifest
from gentrack.models import GenerationSample


def raw_plant(**overrides):
    row = {
        "eiaPlantCode": "56291",
        "name": "Roscoe Wind Farm",
        "owner": "RWE",
        "fuelSource": "Wind",
        "nameplateCapacityMW": 781.5,
        "location": {"state": "TX", "county": "Nolan", "lat": 32.4, "lng": -100.5},
        "generationHistory": [
            {"month": "2025-01", "mwh": 200000},
            {"month": "2025-03", "mwh": None},
            {"month": "2025-02", "mwh": "n/a"},
        ],
    }
    row.update(overrides)
    return row


def test_registry_has_all_sources():
    assert {"snapshot", "eia", "newsapi"} <= set(SOURCES)


def test_parse_plant_from_manifest_row():
    plant = parse_plant(raw_plant())
    assert plant.code == "56291"
    assert plant.fuel == "Wind"
    assert plant.region == "ERCOT"
    assert plant.subregion in {"West", "North", "South", "Coast"}
    assert plant.state == "TX"
    assert plant.county == "Nolan"
    assert [s.month for s in plant.history] == ["2025-01", "2025-02", "2025-03"]
    assert plant.history[1].mwh is None


def test_parse_plant_accepts_snake_case_rows():
    plant = parse_plant({
        "code": "1", "name": "X", "fuel": "Solar", "nameplate_mw": 10,
        "state": "ca", "region": "CAISO", "subregion": "SP15",
        "history": [{"month": "2025-01", "mwh": 0}],
    })
    assert plant.region == "CAISO"
    assert plant.subregion == "SP15"
    assert plant.state == "CA"
    assert plant.history[0].mwh == 0


def test_gaps_in_history_become_null_months():
    plant = parse_plant(raw_plant(generationHistory=[
        {"month": "2024-11", "mwh": 10},
        {"month": "2025-02", "mwh": 20},
    ]))
    assert [s.month for s in plant.history] == ["2024-11", "2024-12", "2025-01", "2025-02"]
    assert plant.history[1].mwh is None
    assert plant.history[2].mwh is None


@pytest.mark.parametrize("overrides", [
    {"eiaPlantCode": ""},
    {"fuelSource": "Coal"},
    {"nameplateCapacityMW": "big"},
    {"generationHistory": [{"month": "2025-13", "mwh": 1}]},
    {"generationHistory": [{"month": "2025-01", "mwh": 1}, {"month": "2025-01", "mwh": 2}]},
    {"generationHistory": ["2025-01"]},
])
def test_parse_plant_rejects_invalid_rows(overrides):
    with pytest.raises(ValueError):
        parse_plant(raw_plant(**overrides))


def test_parse_history_sorts_months():
    history = parse_history([{"month": "2025-02"}, {"month": "2025-01", "mwh": 5}])
    assert [s.month for s in history] == ["2025-01", "2025-02"]
    assert history[1].mwh is None


def test_month_range_crosses_year():
    assert month_range("2024-11", "2025-02") == ["2024-11", "2024-12", "2025-01", "2025-02"]


def test_fill_missing_months_extends_to_bounds():
    filled = fill_missing_months(
        [GenerationSample("2025-02", 5.0)], start="2025-01", end="2025-03",
    )
    assert [(s.month, s.mwh) for s in filled] == [
        ("2025-01", None), ("2025-02", 5.0), ("2025-03", None),
    ]
    assert fill_missing_months([]) == []


def test_region_lookup():
    assert region_for_state("tx") == "ERCOT"
    assert region_for_state("ZZ") == "Southeast"
    assert subregion_for("", "ERCOT") == "Unknown"
    assert subregion_for("TX", "ERCOT") == subregion_for("TX", "ERCOT")


def test_parse_manifest_skips_bad_rows():
    plants = parse_manifest({"plants": [raw_plant(), raw_plant(fuelSource="Gas")]})
    assert [p.code for p in plants] == ["56291"]


@pytest.mark.asyncio
async def test_snapshot_source_reads_manifest(sample_config, tmp_path):
    (tmp_path / "plants.json").write_text(json.dumps({
        "fetchedAt": "2025-07-01T00:00:00Z",
        "plants": [raw_plant(), raw_plant(eiaPlantCode="56292", name="Other")],
    }))
    plants = await SnapshotSource(sample_config).fetch_plants()
    assert sorted(p.code for p in plants) == ["56291", "56292"]


@pytest.mark.asyncio
async def test_snapshot_source_missing_file(sample_config):
    assert await SnapshotSource(sample_config).fetch_plants() == []

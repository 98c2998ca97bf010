"""Validation of raw plant rows into typed Plant records."""

from __future__ import annotations

from gentrack.generation.normalize import parse_month
from gentrack.models import FUEL_SOURCES, GenerationSample, Plant

STATE_TO_REGION = {
    "CA": "CAISO", "TX": "ERCOT", "NY": "NYISO",
    "ME": "ISO-NE", "NH": "ISO-NE", "VT": "ISO-NE", "MA": "ISO-NE", "CT": "ISO-NE", "RI": "ISO-NE",
    "PA": "PJM", "NJ": "PJM", "MD": "PJM", "DE": "PJM", "VA": "PJM", "WV": "PJM", "OH": "PJM",
    "DC": "PJM",
    "IL": "MISO", "IN": "MISO", "MI": "MISO", "MN": "MISO", "WI": "MISO", "IA": "MISO",
    "MO": "MISO", "ND": "MISO", "SD": "MISO",
    "KS": "SPP", "OK": "SPP", "NE": "SPP", "AR": "SPP",
    "WA": "Northwest", "OR": "Northwest", "ID": "Northwest", "MT": "Northwest", "WY": "Northwest",
    "AZ": "Southwest", "NM": "Southwest", "NV": "Southwest", "UT": "Southwest", "CO": "Southwest",
    "FL": "Southeast", "GA": "Southeast", "AL": "Southeast", "MS": "Southeast", "SC": "Southeast",
    "NC": "Southeast", "TN": "Southeast", "KY": "Southeast", "LA": "Southeast",
    "HI": "Hawaii", "AK": "Alaska",
}

SUBREGIONS = {
    "CAISO": ["NP15", "SP15", "ZP26"],
    "ERCOT": ["West", "North", "South", "Coast"],
    "PJM": ["Mid-Atlantic", "Western", "Southern"],
    "MISO": ["North", "Central", "South"],
    "NYISO": ["Upstate", "Hudson Valley", "NYC/Long Island"],
    "ISO-NE": ["Maine/NH", "VT/CT/RI", "Massachusetts"],
    "SPP": ["North", "Central", "South"],
    "Northwest": ["WA/OR Coast", "Inland PNW", "Mountain"],
    "Southwest": ["Arizona/Nevada", "New Mexico", "Colorado"],
    "Southeast": ["Florida", "Carolinas", "Deep South"],
    "Hawaii": ["Oahu", "Maui", "Big Island"],
    "Alaska": ["Railbelt", "Remote"],
}

DEFAULT_REGION = "Southeast"


def region_for_state(state: str) -> str:
    return STATE_TO_REGION.get(state.upper(), DEFAULT_REGION)


def subregion_for(state: str, region: str) -> str:
    """Deterministic subregion assignment from the state code."""
    subs = SUBREGIONS.get(region)
    if not subs or not state:
        return "Unknown"
    return subs[sum(ord(c) for c in state[:2]) % len(subs)]


def month_range(start: str, end: str) -> list[str]:
    """Inclusive list of YYYY-MM strings from start to end."""
    year, month = parse_month(start)
    end_year, end_month = parse_month(end)
    months = []
    while (year, month) <= (end_year, end_month):
        months.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def fill_missing_months(
    history: list[GenerationSample], start: str | None = None, end: str | None = None,
) -> list[GenerationSample]:
    """Insert null samples for months absent between start and end."""
    if not history and not (start and end):
        return []
    by_month = {s.month: s for s in history}
    first = start or min(by_month)
    last = end or max(by_month)
    return [by_month.get(m) or GenerationSample(month=m) for m in month_range(first, last)]


def _parse_mwh(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_history(raw_history) -> list[GenerationSample]:
    """Validate and sort raw {month, mwh} rows. Raises ValueError on bad months."""
    samples = []
    seen = set()
    for row in raw_history or []:
        if not isinstance(row, dict):
            raise ValueError(f"Malformed generation row: {row!r}")
        month = str(row.get("month", ""))
        parse_month(month)
        if month in seen:
            raise ValueError(f"Duplicate month {month}")
        seen.add(month)
        samples.append(GenerationSample(month=month, mwh=_parse_mwh(row.get("mwh"))))
    samples.sort(key=lambda s: s.month)
    return samples


def parse_plant(raw: dict) -> Plant:
    """Build a Plant from a snapshot row. Raises ValueError if the row is invalid.

    Gaps between the first and last reported month are filled with null samples.
    """
    code = str(raw.get("eiaPlantCode") or raw.get("code") or "").strip()
    if not code:
        raise ValueError("Plant row has no plant code")

    fuel = raw.get("fuelSource") or raw.get("fuel")
    if fuel not in FUEL_SOURCES:
        raise ValueError(f"Plant {code}: unsupported fuel {fuel!r}")

    try:
        nameplate = float(raw.get("nameplateCapacityMW", raw.get("nameplate_mw")))
    except (TypeError, ValueError):
        raise ValueError(f"Plant {code}: invalid nameplate capacity") from None

    location = raw.get("location") or {}
    state = str(location.get("state") or raw.get("state") or "").upper()
    region = raw.get("region") or region_for_state(state)
    subregion = raw.get("subRegion") or raw.get("subregion") or subregion_for(state, region)

    return Plant(
        code=code,
        name=str(raw.get("name") or f"Plant {code}"),
        owner=str(raw.get("owner") or ""),
        region=region,
        subregion=subregion,
        fuel=fuel,
        nameplate_mw=nameplate,
        state=state,
        county=raw.get("county") or location.get("county"),
        cod=raw.get("cod"),
        lat=location.get("lat"),
        lng=location.get("lng"),
        history=fill_missing_months(
            parse_history(raw.get("generationHistory", raw.get("history"))),
        ),
    )

"""EIA API v2 source: EIA-923 monthly generation plus EIA-860 plant capacity."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from gentrack.ingest import register_source
from gentrack.ingest.base import BasePlantSource
from gentrack.ingest.records import fill_missing_months, region_for_state, subregion_for
from gentrack.models import GenerationSample, Plant
from gentrack.retry import retry_async

logger = logging.getLogger(__name__)

EIA_BASE_URL = "https://api.eia.gov/v2/"
GENERATION_ROUTE = "electricity/facility-fuel/data/"
CAPACITY_ROUTE = "electricity/operating-generator-capacity/data/"

# EIA fuel code -> fuel name
FUEL_CODES = {"SUN": "Solar", "WND": "Wind", "NUC": "Nuclear"}

# Average hours per month, used to estimate capacity from the peak month
HOURS_PER_MONTH = 730
MIN_CAPACITY_MW = 0.5


def _previous_month() -> str:
    now = datetime.now(timezone.utc)
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    return f"{year:04d}-{month:02d}"


def _to_float(value) -> float | None:
    if value in (None, "", "null"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def build_plants(
    records: list[dict], fuel: str, start: str | None = None, end: str | None = None,
) -> list[Plant]:
    """Group facility-fuel rows into plants with monthly histories.

    Only the "ALL" prime-mover rows are used so a plant's output is not
    double counted. A month with no usable value stays null unless another
    row for the same month reports a number.
    """
    grouped: dict[str, list[dict]] = {}
    for r in records:
        if r.get("primeMover") not in (None, "", "ALL"):
            continue
        code = str(r.get("plantCode") or "")
        if code:
            grouped.setdefault(code, []).append(r)

    plants = []
    for code, rows in grouped.items():
        monthly: dict[str, float | None] = {}
        for r in rows:
            month = r.get("period")
            if not month:
                continue
            gen = _to_float(r.get("generation"))
            if gen is None:
                monthly.setdefault(month, None)
            else:
                monthly[month] = (monthly.get(month) or 0.0) + gen

        history = [GenerationSample(month=m, mwh=v) for m, v in sorted(monthly.items())]
        peak = max((s.mwh or 0.0 for s in history), default=0.0)
        capacity = round(peak / HOURS_PER_MONTH) if peak > 0 else 0
        if capacity < MIN_CAPACITY_MW:
            continue

        first = rows[0]
        state = str(first.get("state") or "").upper()
        region = region_for_state(state)
        plants.append(
            Plant(
                code=code,
                name=first.get("plantName") or f"Plant {code}",
                owner=first.get("operator") or "Unknown",
                region=region,
                subregion=subregion_for(state, region),
                fuel=fuel,
                nameplate_mw=float(capacity),
                state=state,
                history=fill_missing_months(history, start, end),
            )
        )
    return plants


def aggregate_characteristics(records: list[dict]) -> dict[str, dict]:
    """Roll EIA-860 generator rows up to plant level.

    Each generator counts once (latest period). Capacities are summed, the
    earliest operating month is kept, and the first non-empty county,
    coordinates and owner win.
    """
    latest: dict[tuple[str, str], dict] = {}
    for r in records:
        key = (str(r.get("plantid") or ""), str(r.get("generatorid") or ""))
        existing = latest.get(key)
        if existing is None or (r.get("period") or "") > (existing.get("period") or ""):
            latest[key] = r

    plants: dict[str, dict] = {}
    for (code, _), r in latest.items():
        if not code:
            continue
        cod = r.get("operating-year-month") or None
        lat = _to_float(r.get("latitude"))
        lng = _to_float(r.get("longitude"))
        owner = r.get("entityName") or r.get("entity-name") or None
        entry = plants.get(code)
        if entry is None:
            plants[code] = {
                "nameplate_mw": _to_float(r.get("nameplate-capacity-mw")) or 0.0,
                "cod": cod,
                "county": r.get("county") or None,
                "lat": lat,
                "lng": lng,
                "owner": owner,
            }
            continue
        entry["nameplate_mw"] += _to_float(r.get("nameplate-capacity-mw")) or 0.0
        if cod and (not entry["cod"] or cod < entry["cod"]):
            entry["cod"] = cod
        if not entry["county"] and r.get("county"):
            entry["county"] = r["county"]
        if not entry["lat"] and lat:
            entry["lat"], entry["lng"] = lat, lng
        if not entry["owner"] and owner:
            entry["owner"] = owner
    return plants


def apply_characteristics(plants: list[Plant], characteristics: dict[str, dict]) -> int:
    """Replace estimated capacity with EIA-860 nameplate. Returns the match count."""
    hits = 0
    for plant in plants:
        ch = characteristics.get(plant.code)
        if ch is None:
            continue
        hits += 1
        plant.nameplate_mw = round(ch["nameplate_mw"], 1)
        plant.cod = ch["cod"] or plant.cod
        plant.county = ch["county"] or plant.county
        if ch["lat"]:
            plant.lat, plant.lng = ch["lat"], ch["lng"]
        if ch["owner"]:
            plant.owner = ch["owner"]
    return hits


@register_source("eia")
class EIASource(BasePlantSource):
    """Fetch Wind, Solar and Nuclear plants from the EIA open data API."""

    @property
    def name(self) -> str:
        return "eia"

    async def fetch_plants(self) -> list[Plant]:
        cfg = self.config.get("sources", {}).get("eia", {})
        if not cfg.get("enabled", False):
            return []

        api_key = cfg.get("api_key", "")
        if not api_key:
            logger.warning("EIA API key not configured")
            return []

        start = cfg.get("start_month", "2024-01")
        end = cfg.get("end_month") or _previous_month()

        plants: dict[str, Plant] = {}
        async with httpx.AsyncClient(timeout=cfg.get("timeout", 120)) as client:
            for fuel_code, fuel in FUEL_CODES.items():
                params = [
                    ("frequency", "monthly"),
                    ("data[0]", "generation"),
                    ("facets[fuel2002][]", fuel_code),
                    ("sort[0][column]", "plantCode"),
                    ("sort[0][direction]", "asc"),
                    ("start", start),
                    ("end", end),
                ]
                try:
                    records = await self._fetch_all(client, GENERATION_ROUTE, params, api_key)
                except Exception:
                    logger.exception("EIA generation fetch failed for %s", fuel)
                    continue
                # A plant reporting several fuels keeps its largest-capacity record
                for plant in build_plants(records, fuel, start, end):
                    existing = plants.get(plant.code)
                    if existing is None or plant.nameplate_mw > existing.nameplate_mw:
                        plants[plant.code] = plant
                logger.info("EIA fetched %d %s records", len(records), fuel)

            params = [
                ("frequency", "monthly"),
                ("data[]", "nameplate-capacity-mw"),
                ("data[]", "operating-year-month"),
                ("data[]", "county"),
                ("data[]", "latitude"),
                ("data[]", "longitude"),
                ("facets[status][]", "OP"),
                *[("facets[energy_source_code][]", c) for c in FUEL_CODES],
                ("start", cfg.get("capacity_period", "2024-12")),
                ("end", cfg.get("capacity_period", "2024-12")),
                ("sort[0][column]", "plantid"),
                ("sort[0][direction]", "asc"),
            ]
            try:
                records = await self._fetch_all(client, CAPACITY_ROUTE, params, api_key)
                hits = apply_characteristics(
                    list(plants.values()), aggregate_characteristics(records),
                )
                logger.info("EIA-860 matched %d/%d plants", hits, len(plants))
            except Exception:
                logger.exception("EIA-860 fetch failed, keeping estimated capacities")

        result = [p for p in plants.values() if p.nameplate_mw >= MIN_CAPACITY_MW]
        logger.info("EIA produced %d plants", len(result))
        return result

    async def _fetch_all(
        self, client: httpx.AsyncClient, route: str, params: list, api_key: str,
    ) -> list[dict]:
        """Page through an EIA route using offset/length."""
        cfg = self.config.get("sources", {}).get("eia", {})
        page_size = cfg.get("page_size", 5000)
        page_delay = cfg.get("page_delay", 1.5)
        records: list[dict] = []
        offset = 0
        total = None

        while total is None or offset < total:
            page_params = [
                ("api_key", api_key), *params,
                ("length", str(page_size)), ("offset", str(offset)),
            ]
            data = await retry_async(
                self._get, client, EIA_BASE_URL + route, page_params,
            )
            response = data.get("response", {})
            page = response.get("data", [])
            total = int(response.get("total") or 0)
            records.extend(page)
            offset += page_size
            if not page:
                break
            if offset < total:
                await asyncio.sleep(page_delay)

        return records

    async def _get(self, client: httpx.AsyncClient, url: str, params: list) -> dict:
        resp = await client.get(url, params=params)
        resp.raise_for_status()
        data = resp.json()
        if data.get("error"):
            raise ValueError(f"EIA error: {data['error']}")
        return data

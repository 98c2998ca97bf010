"""Convert monthly generation into capacity factors."""

from __future__ import annotations

import calendar

from gentrack.models import CapacityFactorPoint, GenerationSample


def parse_month(month: str) -> tuple[int, int]:
    """Split a YYYY-MM string into (year, month). Raises ValueError if malformed."""
    year_str, sep, month_str = month.partition("-")
    if not sep or len(year_str) != 4 or len(month_str) != 2:
        raise ValueError(f"Malformed month: {month!r}")
    year, mon = int(year_str), int(month_str)
    if not 1 <= mon <= 12:
        raise ValueError(f"Month out of range: {month!r}")
    return year, mon


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def hours_in_month(month: str) -> int:
    year, mon = parse_month(month)
    return days_in_month(year, mon) * 24


def capacity_factor(mwh: float | None, nameplate_mw: float, month: str) -> float | None:
    """Energy over theoretical maximum for the month, clamped to [0, 1].

    None propagates. A non-positive nameplate yields 0.
    """
    if mwh is None:
        return None
    max_generation = nameplate_mw * hours_in_month(month)
    if max_generation <= 0:
        return 0.0
    return min(max(mwh / max_generation, 0.0), 1.0)


def normalize_series(
    nameplate_mw: float, samples: list[GenerationSample],
) -> list[CapacityFactorPoint]:
    """Map each sample to a CapacityFactorPoint, preserving order and length."""
    return [
        CapacityFactorPoint(
            month=s.month,
            factor=capacity_factor(s.mwh, nameplate_mw, s.month),
            mwh=s.mwh,
        )
        for s in samples
    ]

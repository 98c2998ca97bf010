"""Match article text to plants by owner, plant name and state."""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field

from gentrack.models import FUEL_SOURCES, Plant

logger = logging.getLogger(__name__)

MIN_OWNER_LENGTH = 5
MIN_NAME_LENGTH = 8

STATE_NAMES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota",
    "MS": "Mississippi", "MO": "Missouri", "MT": "Montana", "NE": "Nebraska",
    "NV": "Nevada", "NH": "New Hampshire", "NJ": "New Jersey",
    "NM": "New Mexico", "NY": "New York", "NC": "North Carolina",
    "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma", "OR": "Oregon",
    "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington",
    "WV": "West Virginia", "WI": "Wisconsin", "WY": "Wyoming",
}

# Abbreviations are matched as uppercase tokens so words like "in" or "or"
# never count as Indiana or Oregon.
_STATE_PATTERNS = {
    abbr: (
        re.compile(rf"(?<![A-Za-z]){abbr}(?![A-Za-z])"),
        re.compile(rf"\b{re.escape(name.lower())}\b"),
    )
    for abbr, name in STATE_NAMES.items()
}


def _norm(value: str) -> str:
    return value.lower().strip()


@dataclass
class PlantIndex:
    """Lookup tables from plant metadata to plant codes."""

    by_owner: dict[str, list[str]] = field(default_factory=dict)
    by_state: dict[str, list[str]] = field(default_factory=dict)
    by_name: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, plants: list[Plant]) -> PlantIndex:
        by_owner = defaultdict(list)
        by_state = defaultdict(list)
        by_name = {}
        for plant in plants:
            if plant.owner:
                by_owner[_norm(plant.owner)].append(plant.code)
            if plant.state:
                by_state[plant.state.upper().strip()].append(plant.code)
            if plant.name:
                by_name[_norm(plant.name)] = plant.code
        return cls(by_owner=dict(by_owner), by_state=dict(by_state), by_name=by_name)


@dataclass
class MatchResult:
    plant_codes: set[str] = field(default_factory=set)
    owner_names: set[str] = field(default_factory=set)
    states: set[str] = field(default_factory=set)
    fuel_types: set[str] = field(default_factory=set)


def find_states(text: str) -> set[str]:
    """State abbreviations mentioned as an uppercase token or by full name."""
    lowered = text.lower()
    found = set()
    for abbr, (abbr_pattern, name_pattern) in _STATE_PATTERNS.items():
        if abbr_pattern.search(text) or name_pattern.search(lowered):
            found.add(abbr)
    return found


def match_plants(
    text: str, index: PlantIndex, plant_code: str | None = None,
) -> MatchResult:
    """Resolve the plants an article refers to.

    Owner hits add every plant of that owner, plant-name hits add one plant,
    and state hits add that state's plants only when an owner also matched.
    A plant code passed in by a plant-specific query is always included.
    """
    lowered = text.lower()
    result = MatchResult()

    for owner, codes in index.by_owner.items():
        if len(owner) >= MIN_OWNER_LENGTH and owner in lowered:
            result.plant_codes.update(codes)
            result.owner_names.add(owner)

    for name, code in index.by_name.items():
        if len(name) >= MIN_NAME_LENGTH and name in lowered:
            result.plant_codes.add(code)

    result.states = find_states(text)
    if result.owner_names:
        for state in result.states:
            result.plant_codes.update(index.by_state.get(state, []))

    for fuel in FUEL_SOURCES:
        if fuel.lower() in lowered:
            result.fuel_types.add(fuel)

    if plant_code:
        result.plant_codes.add(plant_code)

    return result

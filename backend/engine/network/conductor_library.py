"""SANS standard conductor impedance library.

Provides typical parameters for the overhead conductors, aerial bundled
cables and underground cables used on South African distribution networks.

Each entry provides:
  - r_ohm_per_km: AC resistance
  - x_ohm_per_km: reactance
  - ampacity_a: continuous thermal rating
  - category: ACSR, LV ABC or Cable

The table is the default only; a regional table can be loaded from JSON with
``load_conductor_library`` and passed to the analysis in its place.
"""

from __future__ import annotations

import difflib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


@dataclass(frozen=True)
class ConductorSpec:
    """Standard conductor specification."""
    code: str
    r_ohm_per_km: float
    x_ohm_per_km: float
    ampacity_a: float
    category: str  # ACSR, LV ABC, Cable


CONDUCTOR_LIBRARY: dict[str, ConductorSpec] = {
    c.code: c
    for c in (
        # Overhead ACSR (animal codes)
        ConductorSpec("Hare", 0.5426, 0.359, 130, "ACSR"),
        ConductorSpec("Mink", 0.273, 0.336, 180, "ACSR"),
        ConductorSpec("Rabbit", 0.5426, 0.359, 125, "ACSR"),
        ConductorSpec("Dog", 0.2733, 0.33, 210, "ACSR"),
        ConductorSpec("Wolf", 0.1828, 0.32, 265, "ACSR"),

        # LV aerial bundled conductor
        ConductorSpec("ABC 50mm", 0.72, 0.1, 140, "LV ABC"),
        ConductorSpec("ABC 95mm", 0.32, 0.09, 215, "LV ABC"),

        # Underground cable
        ConductorSpec("PVC 16mm Cu", 1.15, 0.1, 80, "Cable"),
        ConductorSpec("PVC 70mm Cu", 0.268, 0.09, 200, "Cable"),
        ConductorSpec("PILC 185mm Cu", 0.099, 0.08, 380, "Cable"),
    )
}

# Conductor the editor assigns to a freshly drawn edge
DEFAULT_CONDUCTOR = "Mink"


def conductor_to_dict(c: ConductorSpec) -> dict:
    return {
        "code": c.code,
        "r_ohm_per_km": c.r_ohm_per_km,
        "x_ohm_per_km": c.x_ohm_per_km,
        "ampacity_a": c.ampacity_a,
        "category": c.category,
    }


def get_conductor_library(
    library: Mapping[str, ConductorSpec] | None = None,
) -> list[dict]:
    """Return conductor library as list of dicts for API response."""
    library = CONDUCTOR_LIBRARY if library is None else library
    return [conductor_to_dict(c) for c in library.values()]


def find_conductor(
    code: str,
    library: Mapping[str, ConductorSpec] | None = None,
) -> ConductorSpec | None:
    """Find a conductor by code (exact, then case-insensitive)."""
    library = CONDUCTOR_LIBRARY if library is None else library
    if code in library:
        return library[code]
    folded = code.strip().casefold()
    for c in library.values():
        if c.code.casefold() == folded:
            return c
    return None


def closest_conductor(
    code: str,
    library: Mapping[str, ConductorSpec] | None = None,
) -> ConductorSpec | None:
    """Nearest table entry by name similarity, or None if nothing is close."""
    library = CONDUCTOR_LIBRARY if library is None else library
    matches = difflib.get_close_matches(code.strip(), list(library), n=1, cutoff=0.6)
    if matches:
        return library[matches[0]]
    return None


def filter_conductors(
    category: str | None = None,
    min_ampacity: float | None = None,
    library: Mapping[str, ConductorSpec] | None = None,
) -> list[ConductorSpec]:
    """Filter conductors by criteria."""
    library = CONDUCTOR_LIBRARY if library is None else library
    result = list(library.values())
    if category:
        result = [c for c in result if c.category == category]
    if min_ampacity is not None:
        result = [c for c in result if c.ampacity_a >= min_ampacity]
    return result


def load_conductor_library(path: str | Path) -> dict[str, ConductorSpec]:
    """Load a conductor table from JSON.

    The file maps conductor code to ``{"r", "x", "maxCurrent", "type"}``,
    the same shape the editor ships its SANS table in.

    Raises:
        ValueError: if an entry is missing a field or has a non-positive
            ampacity.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    library: dict[str, ConductorSpec] = {}
    for code, entry in raw.items():
        try:
            spec = ConductorSpec(
                code=code,
                r_ohm_per_km=float(entry["r"]),
                x_ohm_per_km=float(entry["x"]),
                ampacity_a=float(entry["maxCurrent"]),
                category=str(entry.get("type", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid conductor entry {code!r}: {exc}") from exc
        if spec.ampacity_a <= 0:
            raise ValueError(f"Conductor {code!r} has non-positive ampacity")
        library[code] = spec
    return library

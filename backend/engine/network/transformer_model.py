"""Transformer default impedance table and tap model.

Standard impedance (%Z) by rating for distribution and power transformers,
used when a transformer node does not carry its own nameplate impedance.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

# Rating kVA -> impedance %
TRANSFORMER_IMPEDANCE: dict[float, float] = {
    16: 4.0,
    25: 4.0,
    50: 4.0,
    100: 4.5,
    200: 4.5,
    315: 4.5,
    500: 4.5,
    630: 4.5,
    800: 5.0,
    1000: 5.0,
    1250: 5.0,
    1600: 6.0,
    2000: 6.0,
    # Power transformers (typical values)
    2500: 6.25,
    5000: 7.0,
    10000: 8.0,
    20000: 10.0,
    40000: 12.5,
}

TAP_STEP_PCT = 2.5
TAP_MIN = -5
TAP_MAX = 5


def get_transformer_library(
    table: Mapping[float, float] | None = None,
) -> list[dict]:
    """Return the impedance table as list of dicts for API response."""
    table = TRANSFORMER_IMPEDANCE if table is None else table
    return [
        {"rating_kva": rating, "impedance_pct": z_pct}
        for rating, z_pct in sorted(table.items())
    ]


def nearest_rating(
    rating_kva: float,
    table: Mapping[float, float] | None = None,
) -> float:
    """Closest table rating; ties go to the larger unit."""
    table = TRANSFORMER_IMPEDANCE if table is None else table
    if not table:
        raise ValueError("Transformer impedance table is empty")
    return min(table, key=lambda r: (abs(r - rating_kva), -r))


def default_impedance_pct(
    rating_kva: float,
    table: Mapping[float, float] | None = None,
) -> tuple[float, bool]:
    """Look up %Z for a rating.

    Returns:
        (impedance_pct, exact) where ``exact`` is False when the rating was
        rounded to the nearest table entry.
    """
    table = TRANSFORMER_IMPEDANCE if table is None else table
    rating = nearest_rating(rating_kva, table)
    return table[rating], rating == rating_kva


def tap_factor(tap_position: int, step_pct: float = TAP_STEP_PCT) -> float:
    """Secondary voltage multiplier for a tap position (+ve raises voltage)."""
    return 1.0 + tap_position * step_pct / 100.0


def load_transformer_impedance_table(path: str | Path) -> dict[float, float]:
    """Load a rating kVA -> %Z table from JSON (keys may be strings)."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    table: dict[float, float] = {}
    for rating, z_pct in raw.items():
        r = float(rating)
        z = float(z_pct)
        if r <= 0 or z <= 0:
            raise ValueError(f"Invalid transformer table entry {rating!r}: {z_pct!r}")
        table[r] = z
    if not table:
        raise ValueError("Transformer impedance table is empty")
    return table

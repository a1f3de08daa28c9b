"""Alert records raised while building and analyzing a network.

Alerts are rendered as plain strings in the result contract; the kind is
kept so the summary can count violations separately from data problems.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AlertKind(str, Enum):
    STRUCTURAL = "structural"  # no source, cycle, multiple roots, island
    DATA = "data"              # missing/unresolvable values, defaults applied
    RANGE = "range"            # out-of-range values clamped
    VOLTAGE = "voltage"
    THERMAL = "thermal"


@dataclass(frozen=True)
class Alert:
    kind: AlertKind
    message: str
    subject: str = ""  # node name or edge id the alert refers to

    @property
    def is_violation(self) -> bool:
        return self.kind in (AlertKind.VOLTAGE, AlertKind.THERMAL)

    def __str__(self) -> str:
        return self.message

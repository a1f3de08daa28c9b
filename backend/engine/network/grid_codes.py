"""Voltage and thermal limit profiles.

Each profile specifies the steady-state voltage band (per-unit of the node's
own nominal voltage) and the thermal loading limit (% of conductor
ampacity) that the propagator checks when it raises alerts. Profiles may
carry a wider band for low-voltage nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class VoltageLimits:
    """Voltage limits in per-unit."""
    normal_min: float = 0.95
    normal_max: float = 1.05

    def check_normal(self, v_pu: float) -> str | None:
        """Return violation type or None if within limits."""
        if v_pu < self.normal_min:
            return "low"
        if v_pu > self.normal_max:
            return "high"
        return None


@dataclass(frozen=True)
class GridCodeProfile:
    """Limit profile used for voltage and thermal alerts.

    Attributes:
        name: Human-readable profile name (e.g. "IEC Default")
        standard: Standard reference
        voltage: Voltage band for nodes at or above ``lv_threshold_kv``
        lv_voltage: Band for nodes below ``lv_threshold_kv`` (None: same band)
        lv_threshold_kv: Nominal voltage below which ``lv_voltage`` applies
        thermal_limit_pct: Maximum line loading as % of ampacity
    """
    name: str
    standard: str
    voltage: VoltageLimits = field(default_factory=VoltageLimits)
    lv_voltage: VoltageLimits | None = None
    lv_threshold_kv: float = 1.0
    thermal_limit_pct: float = 100.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def voltage_limits_for(self, nominal_kv: float) -> VoltageLimits:
        if self.lv_voltage is not None and nominal_kv < self.lv_threshold_kv:
            return self.lv_voltage
        return self.voltage

    def to_dict(self) -> dict[str, Any]:
        """Serialize profile to a JSON-compatible dict."""
        return {
            "name": self.name,
            "standard": self.standard,
            "voltage_limits": {
                "normal": [self.voltage.normal_min, self.voltage.normal_max],
                "lv": (
                    [self.lv_voltage.normal_min, self.lv_voltage.normal_max]
                    if self.lv_voltage else None
                ),
                "lv_threshold_kv": self.lv_threshold_kv,
            },
            "thermal_limit_pct": self.thermal_limit_pct,
            "metadata": self.metadata,
        }


# ======================================================================
# Built-in profiles
# ======================================================================

IEC_DEFAULT = GridCodeProfile(
    name="IEC Default",
    standard="IEC 60038",
    voltage=VoltageLimits(normal_min=0.95, normal_max=1.05),
    thermal_limit_pct=100.0,
)

NRS_048 = GridCodeProfile(
    name="NRS 048-2",
    standard="NRS 048-2 (South African voltage quality)",
    voltage=VoltageLimits(normal_min=0.95, normal_max=1.05),
    lv_voltage=VoltageLimits(normal_min=0.90, normal_max=1.10),
    lv_threshold_kv=0.5,
    thermal_limit_pct=100.0,
    metadata={
        "region": "South Africa",
        "notes": "±10% below 500 V, ±5% at and above 500 V",
    },
)

# Profile registry
PROFILES: dict[str, GridCodeProfile] = {
    "iec_default": IEC_DEFAULT,
    "nrs_048": NRS_048,
}


def get_profile(name: str) -> GridCodeProfile:
    """Get a built-in grid code profile by name.

    Raises:
        KeyError if profile name not found
    """
    if name not in PROFILES:
        available = ", ".join(sorted(PROFILES.keys()))
        raise KeyError(f"Unknown grid code profile '{name}'. Available: {available}")
    return PROFILES[name]


def list_profiles() -> list[dict[str, Any]]:
    """List all available grid code profiles with summary info."""
    return [
        {
            "key": key,
            "name": profile.name,
            "standard": profile.standard,
            "voltage_normal": [profile.voltage.normal_min, profile.voltage.normal_max],
            "thermal_limit_pct": profile.thermal_limit_pct,
        }
        for key, profile in PROFILES.items()
    ]


def _band(values: Any, what: str) -> VoltageLimits:
    """VoltageLimits from a [min, max] pair in per-unit."""
    try:
        lo, hi = (float(v) for v in values)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{what} band must be a [min, max] pair, got {values!r}") from exc
    if not 0 < lo < hi:
        raise ValueError(f"{what} band [{lo:g}, {hi:g}] must satisfy 0 < min < max")
    return VoltageLimits(normal_min=lo, normal_max=hi)


def build_custom_profile(config: dict[str, Any]) -> GridCodeProfile:
    """Build a custom profile from a configuration dict.

    Args:
        config: Dictionary with optional keys:
            name, standard, voltage_limits ({"normal": [min, max],
            "lv": [min, max], "lv_threshold_kv"}), thermal_limit_pct

    Returns:
        GridCodeProfile with IEC defaults for unspecified fields

    Raises:
        ValueError: if a band is malformed or the thermal limit is not positive
    """
    vl = config.get("voltage_limits") or {}
    lv = vl.get("lv")

    thermal = float(config.get("thermal_limit_pct", IEC_DEFAULT.thermal_limit_pct))
    if thermal <= 0:
        raise ValueError(f"Thermal limit {thermal:g}% must be positive")

    return GridCodeProfile(
        name=config.get("name", "Custom"),
        standard=config.get("standard", "Custom Standard"),
        voltage=_band(vl.get("normal", [0.95, 1.05]), "Normal"),
        lv_voltage=_band(lv, "LV") if lv else None,
        lv_threshold_kv=float(vl.get("lv_threshold_kv", 1.0)),
        thermal_limit_pct=thermal,
        metadata=config.get("metadata", {}),
    )

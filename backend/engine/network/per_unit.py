"""Unit conversions shared by the impedance resolver and the sweeps.

Voltages are line-to-line kV unless a name says otherwise. Impedances are
ohms on the voltage level where they are computed:
  Z_base = V² / S  (Ω)
  Z_referred = Z · (V_new / V_old)²
"""

from __future__ import annotations

import math

SQRT3 = math.sqrt(3)


def z_base(v_base_kv: float, s_base_mva: float) -> float:
    """Base impedance in ohms: Z_base = V²/S."""
    return (v_base_kv ** 2) / s_base_mva


def phase_voltage_v(v_ll_kv: float) -> float:
    """Line-to-neutral voltage in volts."""
    return v_ll_kv * 1000.0 / SQRT3


def refer_impedance(z_ohm: complex, v_new_kv: float, v_old_kv: float) -> complex:
    """Refer an impedance across a voltage-level boundary."""
    return z_ohm * (v_new_kv / v_old_kv) ** 2


def split_impedance(z_mag: float, x_r_ratio: float) -> complex:
    """Split |Z| into R + jX using an X/R ratio."""
    r = z_mag / math.sqrt(1 + x_r_ratio ** 2)
    return complex(r, r * x_r_ratio)

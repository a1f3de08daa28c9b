"""Per-component series impedance.

Each component's impedance is computed in ohms at its own (local) voltage
level:

  Source       Z = (V_LL/√3) / I_fault, split by X/R; infinite bus -> 0
  Transformer  Z = (Z%/100) · V_sec² / S_rated, on the secondary side
  Line         Z = (R + jX)/km · length

Referral across transformer boundaries is the propagator's job; nothing in
this module mixes voltage levels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

import numpy as np

from engine.network.alerts import Alert, AlertKind
from engine.network.conductor_library import (
    CONDUCTOR_LIBRARY,
    DEFAULT_CONDUCTOR,
    ConductorSpec,
    closest_conductor,
    find_conductor,
)
from engine.network.network_model import NetworkModel, SourceNode, TransformerNode
from engine.network.per_unit import phase_voltage_v, split_impedance, z_base
from engine.network.topology import RadialTopology
from engine.network.transformer_model import (
    TAP_STEP_PCT,
    TRANSFORMER_IMPEDANCE,
    default_impedance_pct,
    nearest_rating,
    tap_factor,
)

logger = logging.getLogger(__name__)


def source_impedance(v_ll_kv: float, fault_level_ka: float | None, x_r_ratio: float) -> complex:
    """Thevenin impedance of a grid infeed in ohms."""
    if fault_level_ka is None:
        return 0j
    z_mag = phase_voltage_v(v_ll_kv) / (fault_level_ka * 1000.0)
    return split_impedance(z_mag, x_r_ratio)


def transformer_impedance(
    impedance_pct: float,
    rating_kva: float,
    v_secondary_kv: float,
    x_r_ratio: float | None = None,
) -> complex:
    """Transformer series impedance referred to the secondary, in ohms.

    x_r_ratio: None models the winding as purely reactive (R = 0).
    """
    z_mag = impedance_pct / 100.0 * z_base(v_secondary_kv, rating_kva / 1000.0)
    if x_r_ratio is None:
        return complex(0.0, z_mag)
    return split_impedance(z_mag, x_r_ratio)


def line_impedance(conductor: ConductorSpec, length_m: float) -> complex:
    """Series impedance of a line segment in ohms."""
    length_km = length_m / 1000.0
    return complex(conductor.r_ohm_per_km * length_km, conductor.x_ohm_per_km * length_km)


def resolve_conductor(
    code: str,
    library: Mapping[str, ConductorSpec],
    default_code: str = DEFAULT_CONDUCTOR,
) -> tuple[ConductorSpec, str | None]:
    """Conductor for a code, with a fallback note when it had to be guessed.

    Unknown codes resolve to the closest name in the table, else to the
    default conductor (else the first table entry).
    """
    spec = find_conductor(code, library)
    if spec is not None:
        return spec, None
    guess = closest_conductor(code, library) if code else None
    if guess is None:
        guess = library.get(default_code) or next(iter(library.values()))
    return guess, f"conductor {code or '(none)'!r} not in library; using {guess.code}"


@dataclass
class ResolvedImpedances:
    """Local impedances over the topology arena."""
    z_source: np.ndarray        # complex, non-zero only at roots
    z_line: np.ndarray          # complex, parent line of each node (0 at roots)
    ampacity_a: np.ndarray      # parent line rating (inf at roots)
    conductor: list[str | None]
    is_transformer: np.ndarray  # bool
    z_transformer: np.ndarray   # complex, secondary-side ohms
    tap_factor: np.ndarray      # 1.0 except at transformers
    alerts: list[Alert] = field(default_factory=list)


def resolve_impedances(
    network: NetworkModel,
    topology: RadialTopology,
    level_kv: np.ndarray,
    conductors: Mapping[str, ConductorSpec] | None = None,
    transformer_table: Mapping[float, float] | None = None,
    default_conductor: str = DEFAULT_CONDUCTOR,
    transformer_x_r_ratio: float | None = None,
    tap_step_pct: float = TAP_STEP_PCT,
) -> ResolvedImpedances:
    """Compute every component impedance for one analysis run."""
    conductors = CONDUCTOR_LIBRARY if conductors is None else conductors
    transformer_table = TRANSFORMER_IMPEDANCE if transformer_table is None else transformer_table

    n = topology.n
    z_source = np.zeros(n, dtype=np.complex128)
    z_line = np.zeros(n, dtype=np.complex128)
    ampacity = np.full(n, np.inf)
    conductor_codes: list[str | None] = [None] * n
    is_tx = np.zeros(n, dtype=bool)
    z_tx = np.zeros(n, dtype=np.complex128)
    taps = np.ones(n)
    alerts: list[Alert] = []

    for i, nid in enumerate(topology.order):
        node = network.nodes[nid]

        if isinstance(node, SourceNode):
            z_source[i] = source_impedance(level_kv[i], node.fault_level_ka, node.x_r_ratio)

        line = topology.parent_line[i]
        if line is not None:
            spec, note = resolve_conductor(line.conductor_code, conductors, default_conductor)
            if note:
                alerts.append(Alert(AlertKind.DATA, f"Edge {line.id}: {note}", line.id))
            z_line[i] = line_impedance(spec, line.length_m)
            ampacity[i] = spec.ampacity_a
            conductor_codes[i] = spec.code

        if isinstance(node, TransformerNode):
            is_tx[i] = True
            taps[i] = tap_factor(node.tap_position, tap_step_pct)
            if node.rating_kva is None:
                continue
            z_pct = node.impedance_pct
            if z_pct is None:
                z_pct, exact = default_impedance_pct(node.rating_kva, transformer_table)
                if not exact:
                    nearest = nearest_rating(node.rating_kva, transformer_table)
                    alerts.append(Alert(
                        AlertKind.DATA,
                        f"Transformer {node.name}: rating {node.rating_kva:g} kVA not in table and "
                        f"no impedance given; using {z_pct:g}% from the {nearest:g} kVA entry",
                        node.name,
                    ))
            z_tx[i] = transformer_impedance(
                z_pct, node.rating_kva, level_kv[i], transformer_x_r_ratio,
            )

    logger.debug(
        "Resolved impedances: %d line(s), %d transformer(s), %d data alert(s)",
        n - int((topology.parent < 0).sum()), int(is_tx.sum()), len(alerts),
    )
    return ResolvedImpedances(
        z_source=z_source,
        z_line=z_line,
        ampacity_a=ampacity,
        conductor=conductor_codes,
        is_transformer=is_tx,
        z_transformer=z_tx,
        tap_factor=taps,
        alerts=alerts,
    )

"""Forward sweep: cumulative fault impedance, node voltages and fault levels.

Walking root to leaves, each node takes its parent's state and adds the
component between them:

  line            Z_acc = Z_acc_parent + Z_line
                  ΔV%  = I·(R cosφ + X sinφ) / V_phase · 100
                  V    = V_parent − ΔV%·V_nominal
  transformer     Z_acc = Z_acc_primary · (V_sec/V_pri)² + Z_tx
                  V     = V_pu_primary · V_sec · (1 + tap·2.5%)
  fault           I_f  = (V/√3) / |Z_acc|          (kV / Ω = kA)

The angle is the quadrature part of the same drop, I·(X cosφ − R sinφ)/V.
Transformer vector-group phase shifts are not modelled.

Nodes on one depth level are independent, so each level is one vectorized
step. Voltage and thermal alerts are raised at the end of the sweep in
pre-order, so alert order follows the drawing from source outwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from engine.network.alerts import Alert, AlertKind
from engine.network.grid_codes import IEC_DEFAULT, GridCodeProfile
from engine.network.impedance import ResolvedImpedances
from engine.network.load_flow import LoadAggregation
from engine.network.network_model import NetworkModel
from engine.network.per_unit import SQRT3, refer_impedance
from engine.network.topology import RadialTopology

logger = logging.getLogger(__name__)

# Below this the accumulated impedance is treated as zero (infinite fault level)
Z_EPSILON = 1e-12


@dataclass
class PropagationResult:
    """Per-node and per-parent-edge electrical state over the arena."""
    z_acc: np.ndarray        # cumulative fault impedance, ohms at the node's level
    voltage_kv: np.ndarray   # solved line-to-line voltage
    voltage_pu: np.ndarray
    angle_deg: np.ndarray
    fault_ka: np.ndarray     # inf where the source is an infinite bus with no series Z
    drop_pct: np.ndarray     # parent edge voltage drop, % of the edge's nominal
    loading_pct: np.ndarray  # parent edge current as % of ampacity
    overloaded: np.ndarray   # bool, parent edge current > ampacity
    alerts: list[Alert] = field(default_factory=list)


def propagate(
    network: NetworkModel,
    topology: RadialTopology,
    level_kv: np.ndarray,
    impedances: ResolvedImpedances,
    loads: LoadAggregation,
    grid_code: GridCodeProfile = IEC_DEFAULT,
    transformer_regulation: bool = False,
) -> PropagationResult:
    """Solve voltages and fault levels top-down and raise limit alerts.

    Args:
        transformer_regulation: also subtract each transformer's own
            I·(R cosφ + X sinφ) drop on the secondary. Off by default, where
            a transformer only rescales the primary per-unit voltage.
    """
    n = topology.n
    parent = topology.parent
    pf = loads.power_factor
    sin_phi = np.sqrt(np.clip(1.0 - pf ** 2, 0.0, None))

    z_acc = np.zeros(n, dtype=np.complex128)
    v = np.zeros(n)
    angle = np.zeros(n)  # radians
    drop_pct = np.zeros(n)

    levels = topology.levels()
    if levels:
        roots = levels[0]
        z_acc[roots] = impedances.z_source[roots]
        v[roots] = level_kv[roots]

    for idx in levels[1:]:
        p = parent[idx]
        v_level = level_kv[p]
        v_phase = v_level * 1000.0 / SQRT3
        current = loads.current_a[idx]
        z = impedances.z_line[idx]

        in_phase = current * (z.real * pf[idx] + z.imag * sin_phi[idx])
        quadrature = current * (z.imag * pf[idx] - z.real * sin_phi[idx])
        drop_pct[idx] = in_phase / v_phase * 100.0

        v_end = np.maximum(v[p] - drop_pct[idx] / 100.0 * v_level, 0.0)
        angle_end = angle[p] - quadrature / v_phase
        z_end = z_acc[p] + z

        tx = impedances.is_transformer[idx]
        secondary = level_kv[idx]
        z_tx = impedances.z_transformer[idx]

        v_tx = v_end / v_level * secondary * impedances.tap_factor[idx]
        angle_tx = angle_end.copy()
        if transformer_regulation:
            i_sec = loads.subtree_kva[idx] / (SQRT3 * secondary)
            v_phase_sec = secondary * 1000.0 / SQRT3
            reg = i_sec * (z_tx.real * pf[idx] + z_tx.imag * sin_phi[idx]) / v_phase_sec
            v_tx = np.maximum(v_tx - reg * secondary, 0.0)
            angle_tx -= i_sec * (z_tx.imag * pf[idx] - z_tx.real * sin_phi[idx]) / v_phase_sec

        z_acc[idx] = np.where(tx, refer_impedance(z_end, secondary, v_level) + z_tx, z_end)
        v[idx] = np.where(tx, v_tx, v_end)
        angle[idx] = np.where(tx, angle_tx, angle_end)

    v_pu = np.divide(v, level_kv, out=np.zeros(n), where=level_kv > 0)

    z_mag = np.abs(z_acc)
    finite = z_mag > Z_EPSILON
    fault = np.full(n, np.inf)
    fault[finite] = v[finite] / SQRT3 / z_mag[finite]

    ampacity = impedances.ampacity_a
    loading = np.zeros(n)
    has_edge = parent >= 0
    loading[has_edge] = loads.current_a[has_edge] / ampacity[has_edge] * 100.0
    overloaded = has_edge & (loads.current_a > ampacity)

    alerts: list[Alert] = []
    for i, nid in enumerate(topology.order):
        node = network.nodes[nid]
        line = topology.parent_line[i]
        if line is not None:
            code = impedances.conductor[i]
            if overloaded[i]:
                alerts.append(Alert(
                    AlertKind.THERMAL,
                    f"Edge {line.id} ({code}) overloaded: {loads.current_a[i]:.1f} A is "
                    f"{loading[i]:.0f}% of its {ampacity[i]:g} A rating",
                    line.id,
                ))
            elif loading[i] > grid_code.thermal_limit_pct:
                alerts.append(Alert(
                    AlertKind.THERMAL,
                    f"Edge {line.id} ({code}) loaded to {loading[i]:.0f}% of rating, "
                    f"above the {grid_code.thermal_limit_pct:g}% limit",
                    line.id,
                ))

        limits = grid_code.voltage_limits_for(level_kv[i])
        violation = limits.check_normal(float(v_pu[i]))
        if violation == "low":
            alerts.append(Alert(
                AlertKind.VOLTAGE,
                f"Node {node.name} voltage {v_pu[i]:.3f} p.u. below {limits.normal_min:.2f} p.u.",
                node.name,
            ))
        elif violation == "high":
            alerts.append(Alert(
                AlertKind.VOLTAGE,
                f"Node {node.name} voltage {v_pu[i]:.3f} p.u. above {limits.normal_max:.2f} p.u.",
                node.name,
            ))

    logger.debug(
        "Propagated %d node(s) over %d level(s); %d limit alert(s)",
        n, len(levels), len(alerts),
    )

    return PropagationResult(
        z_acc=z_acc,
        voltage_kv=v,
        voltage_pu=v_pu,
        angle_deg=np.degrees(angle),
        fault_ka=fault,
        drop_pct=drop_pct,
        loading_pct=loading,
        overloaded=overloaded,
        alerts=alerts,
    )

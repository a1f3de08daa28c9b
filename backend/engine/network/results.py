"""Result assembly: internal arena state -> external result contract.

No electrical computation happens here, only selection, rounding and the
summary text. The serialized field names (camelCase) and the edge status
values are what the rendering layer reads.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from engine.network.alerts import Alert, AlertKind
from engine.network.impedance import ResolvedImpedances
from engine.network.load_flow import LoadAggregation
from engine.network.network_model import NetworkModel
from engine.network.propagation import PropagationResult
from engine.network.topology import RadialTopology

FAULT_TYPE = "3-Phase"


class EdgeStatus(str, Enum):
    NORMAL = "NORMAL"
    OVERLOAD = "OVERLOAD"


@dataclass
class VoltageProfilePoint:
    node_name: str
    distance_m: float  # cumulative line length from the source
    voltage_pu: float


@dataclass
class FaultCurrent:
    node_name: str
    current_ka: float | None  # None when infinite
    fault_type: str = FAULT_TYPE

    @property
    def is_infinite(self) -> bool:
        return self.current_ka is None


@dataclass
class EdgeResult:
    edge_id: str
    voltage_drop_pct: float
    current_a: float
    status: EdgeStatus
    loading_pct: float
    conductor: str


@dataclass
class NodeResult:
    voltage_pu: float
    voltage_angle_deg: float
    load_kva: float  # apparent power flowing into the node's subtree


@dataclass
class AnalysisResult:
    """Complete steady-state assessment of one network."""
    voltage_profile: list[VoltageProfilePoint] = field(default_factory=list)
    fault_currents: list[FaultCurrent] = field(default_factory=list)
    edge_analysis: list[EdgeResult] = field(default_factory=list)
    node_results: dict[str, NodeResult] = field(default_factory=dict)
    alert_records: list[Alert] = field(default_factory=list)
    summary: str = ""

    @property
    def alerts(self) -> list[str]:
        return [a.message for a in self.alert_records]

    @property
    def violations(self) -> list[Alert]:
        return [a for a in self.alert_records if a.is_violation]

    def edge(self, edge_id: str) -> EdgeResult:
        for e in self.edge_analysis:
            if e.edge_id == edge_id:
                return e
        raise KeyError(f"Edge {edge_id!r} not in analysis")

    def fault_at(self, node_name: str) -> FaultCurrent:
        for f in self.fault_currents:
            if f.node_name == node_name:
                return f
        raise KeyError(f"Node {node_name!r} not in analysis")

    @classmethod
    def empty(cls, alert: Alert) -> AnalysisResult:
        """Result with no numeric output and a single top-level alert."""
        return cls(alert_records=[alert], summary=f"Analysis not possible: {alert.message}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible result contract."""
        return {
            "voltageProfile": [
                {"distance": p.distance_m, "voltage": p.voltage_pu, "nodeName": p.node_name}
                for p in self.voltage_profile
            ],
            "faultCurrents": [
                {
                    "nodeName": f.node_name,
                    "currentKA": f.current_ka,
                    "type": f.fault_type,
                    "isInfinite": f.is_infinite,
                }
                for f in self.fault_currents
            ],
            "edgeAnalysis": [
                {
                    "edgeId": e.edge_id,
                    "voltageDrop": e.voltage_drop_pct,
                    "current": e.current_a,
                    "status": e.status.value,
                    "loadingPct": e.loading_pct,
                    "conductor": e.conductor,
                }
                for e in self.edge_analysis
            ],
            "nodeResults": {
                name: {
                    "voltagePu": r.voltage_pu,
                    "voltageAngle": r.voltage_angle_deg,
                    "loadKVA": r.load_kva,
                }
                for name, r in self.node_results.items()
            },
            "alerts": self.alerts,
            "summary": self.summary,
        }


def assemble_result(
    network: NetworkModel,
    topology: RadialTopology,
    impedances: ResolvedImpedances,
    loads: LoadAggregation,
    state: PropagationResult,
    alerts: list[Alert],
) -> AnalysisResult:
    """Map per-node and per-edge arrays into the result records."""
    result = AnalysisResult(alert_records=list(alerts))

    for i, nid in enumerate(topology.order):
        name = network.nodes[nid].name
        v_pu = _r(state.voltage_pu[i], 4)
        result.voltage_profile.append(
            VoltageProfilePoint(name, _r(topology.distance_m[i], 1), v_pu)
        )
        fault = state.fault_ka[i]
        result.fault_currents.append(
            FaultCurrent(name, None if math.isinf(fault) else _r(fault, 3))
        )
        result.node_results[name] = NodeResult(
            voltage_pu=v_pu,
            voltage_angle_deg=_r(state.angle_deg[i], 3),
            load_kva=_r(loads.subtree_kva[i], 2),
        )

    # Edges in drawing order; excluded and ignored edges have no result
    arena_of_line = {
        line.id: i for i, line in enumerate(topology.parent_line) if line is not None
    }
    for line in network.lines:
        i = arena_of_line.get(line.id)
        if i is None:
            continue
        result.edge_analysis.append(EdgeResult(
            edge_id=line.id,
            voltage_drop_pct=_r(state.drop_pct[i], 3),
            current_a=_r(loads.current_a[i], 2),
            status=EdgeStatus.OVERLOAD if state.overloaded[i] else EdgeStatus.NORMAL,
            loading_pct=_r(state.loading_pct[i], 1),
            conductor=impedances.conductor[i] or "",
        ))

    result.summary = compose_summary(result)
    return result


def compose_summary(result: AnalysisResult) -> str:
    """One-paragraph summary from alert counts and worst-case figures."""
    violations = len(result.violations)
    parts: list[str] = []

    if result.node_results:
        worst_name, worst = min(result.node_results.items(), key=lambda kv: kv[1].voltage_pu)
        parts.append(f"lowest voltage {worst.voltage_pu:.2f} p.u. at {worst_name}")

    overloaded = [e for e in result.edge_analysis if e.status is EdgeStatus.OVERLOAD]
    if overloaded:
        top = max(overloaded, key=lambda e: e.loading_pct)
        noun = "conductor" if len(overloaded) == 1 else "conductors"
        parts.append(
            f"{len(overloaded)} {noun} overloaded ({top.conductor} @ {top.loading_pct:.0f}%)"
        )
    elif result.edge_analysis:
        top = max(result.edge_analysis, key=lambda e: e.loading_pct)
        parts.append(f"maximum conductor loading {top.loading_pct:.0f}% ({top.conductor})")

    if violations:
        noun = "violation" if violations == 1 else "violations"
        head = f"{violations} {noun} found"
    else:
        head = "No violations found"
    text = f"{head}: {'; '.join(parts)}." if parts else f"{head}."

    structural = sum(1 for a in result.alert_records if a.kind is AlertKind.STRUCTURAL)
    if structural:
        text += f" {structural} structural issue(s) excluded part of the network."
    defaulted = sum(1 for a in result.alert_records if a.kind in (AlertKind.DATA, AlertKind.RANGE))
    if defaulted:
        text += f" {defaulted} input value(s) defaulted or clamped."
    return text


def apply_voltage_drops(edges: list[dict], result: AnalysisResult) -> list[dict]:
    """Copies of editor edges with ``voltageDrop`` echoed from the analysis.

    Edges without a result keep whatever value they had.
    """
    drops = {e.edge_id: e.voltage_drop_pct for e in result.edge_analysis}
    updated = []
    for edge in edges:
        edge = copy.deepcopy(edge)
        edge_id = str(edge.get("id"))
        if edge_id in drops:
            edge["voltageDrop"] = drops[edge_id]
        updated.append(edge)
    return updated


def _r(value: float | np.floating, digits: int) -> float:
    return round(float(value), digits)

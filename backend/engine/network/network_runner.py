"""Network analysis runner.

One call = one stateless pass over the editor's node/edge lists:

  build model -> orient topology -> resolve impedances
  -> aggregate loads (bottom-up) -> propagate voltages/faults (top-down)
  -> assemble result

Also provides the tap sweep, which reruns the analysis on copies of the
input with one transformer's tap moved through a range of positions.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import numpy as np

from engine.network.alerts import Alert, AlertKind
from engine.network.conductor_library import DEFAULT_CONDUCTOR, ConductorSpec
from engine.network.grid_codes import IEC_DEFAULT, GridCodeProfile
from engine.network.impedance import resolve_impedances
from engine.network.load_flow import PowerFactorPolicy, aggregate_loads
from engine.network.network_model import NetworkModel, NodeKind, build_network_from_config
from engine.network.propagation import propagate
from engine.network.results import AnalysisResult, assemble_result
from engine.network.topology import NoSourceError, assign_voltage_levels, build_topology
from engine.network.transformer_model import TAP_MAX, TAP_MIN

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOptions:
    """Modelling policies and static tables for one analysis.

    Attributes:
        grid_code: voltage band and thermal limit used for alerts
        power_factor_policy: composite pf of a subtree with several loads
        transformer_x_r_ratio: None models transformers as purely reactive
        transformer_regulation: include the transformer's own voltage drop
        default_conductor: fallback for conductor codes with no close match
        conductors: conductor table (None: built-in SANS table)
        transformer_table: rating -> %Z table (None: built-in table)
    """
    grid_code: GridCodeProfile = IEC_DEFAULT
    power_factor_policy: PowerFactorPolicy = PowerFactorPolicy.KVA_WEIGHTED
    transformer_x_r_ratio: float | None = None
    transformer_regulation: bool = False
    default_conductor: str = DEFAULT_CONDUCTOR
    conductors: Mapping[str, ConductorSpec] | None = None
    transformer_table: Mapping[float, float] | None = None


def run_analysis(
    nodes_config: list[dict],
    edges_config: list[dict],
    options: AnalysisOptions | None = None,
) -> AnalysisResult:
    """Analyze an editor network. Never raises on network content."""
    network = build_network_from_config(nodes_config, edges_config)
    return analyze_network(network, options)


def analyze_network(
    network: NetworkModel,
    options: AnalysisOptions | None = None,
) -> AnalysisResult:
    """Analyze an already-built network model."""
    options = options or AnalysisOptions()

    if network.n_nodes == 0:
        return AnalysisResult.empty(
            Alert(AlertKind.STRUCTURAL, "Network is empty: nothing to analyze.")
        )

    try:
        topology = build_topology(network)
    except NoSourceError as exc:
        logger.warning("Analysis aborted: %s", exc)
        return AnalysisResult.empty(Alert(AlertKind.STRUCTURAL, str(exc)))

    level_kv, level_alerts = assign_voltage_levels(network, topology)
    impedances = resolve_impedances(
        network, topology, level_kv,
        conductors=options.conductors,
        transformer_table=options.transformer_table,
        default_conductor=options.default_conductor,
        transformer_x_r_ratio=options.transformer_x_r_ratio,
    )
    loads = aggregate_loads(network, topology, level_kv, options.power_factor_policy)
    state = propagate(
        network, topology, level_kv, impedances, loads,
        grid_code=options.grid_code,
        transformer_regulation=options.transformer_regulation,
    )

    alerts = [
        *network.alerts,
        *topology.alerts,
        *level_alerts,
        *impedances.alerts,
        *loads.alerts,
        *state.alerts,
    ]
    result = assemble_result(network, topology, impedances, loads, state, alerts)

    logger.info(
        "Analysis complete: %d node(s), %d edge(s), %.0f kVA, %d alert(s), %d violation(s)",
        topology.n, len(result.edge_analysis), loads.total_kva,
        len(alerts), len(result.violations),
        extra={
            "nodes": topology.n,
            "edges": len(result.edge_analysis),
            "alerts": len(alerts),
            "violations": len(result.violations),
        },
    )
    return result


# ======================================================================
# Tap sweep
# ======================================================================


@dataclass
class TapSweepResult:
    """Per-unit voltage of every node for each tap position."""
    transformer_id: str
    positions: list[int]
    node_names: list[str]
    voltage_pu: np.ndarray  # shape (len(positions), len(node_names))
    alerts: list[list[str]] = field(default_factory=list)

    def voltages_at(self, node_name: str) -> np.ndarray:
        return self.voltage_pu[:, self.node_names.index(node_name)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "transformerId": self.transformer_id,
            "positions": self.positions,
            "nodeNames": self.node_names,
            "voltagePu": [[round(float(v), 4) for v in row] for row in self.voltage_pu],
            "alerts": self.alerts,
        }


def sweep_tap_positions(
    nodes_config: list[dict],
    edges_config: list[dict],
    transformer_id: str,
    positions: Iterable[int] | None = None,
    options: AnalysisOptions | None = None,
) -> TapSweepResult:
    """Rerun the analysis for each tap position of one transformer.

    Raises:
        KeyError: if ``transformer_id`` is not a transformer node
        ValueError: if a position lies outside the tap range
    """
    positions = list(range(TAP_MIN, TAP_MAX + 1) if positions is None else positions)
    for pos in positions:
        if not TAP_MIN <= pos <= TAP_MAX:
            raise ValueError(f"Tap position {pos} outside [{TAP_MIN}, {TAP_MAX}]")

    target = _node_entry(nodes_config, transformer_id)
    kind = None if target is None else str(nodes_config[target].get("type", "")).upper()
    if kind != NodeKind.TRANSFORMER.value:
        raise KeyError(f"Transformer {transformer_id!r} not found")

    rows: list[list[float]] = []
    names: list[str] = []
    alerts: list[list[str]] = []
    for pos in positions:
        nodes = copy.deepcopy(nodes_config)
        if not isinstance(nodes[target].get("data"), dict):
            nodes[target]["data"] = {}
        nodes[target]["data"]["tapPosition"] = pos
        result = run_analysis(nodes, edges_config, options)
        names = list(result.node_results)
        rows.append([r.voltage_pu for r in result.node_results.values()])
        alerts.append(result.alerts)

    logger.debug("Tap sweep of %s over %d position(s)", transformer_id, len(positions))
    return TapSweepResult(
        transformer_id=transformer_id,
        positions=positions,
        node_names=names,
        voltage_pu=np.array(rows, dtype=np.float64).reshape(len(positions), len(names)),
        alerts=alerts,
    )


def _node_entry(nodes_config: list[dict], node_id: str) -> int | None:
    """Index of the entry the model builder keeps for ``node_id``.

    Mirrors build_network_from_config: non-objects and unknown types are
    skipped, and the first remaining entry with the id wins.
    """
    for i, nc in enumerate(nodes_config):
        if not isinstance(nc, dict):
            continue
        if str(nc.get("id") if nc.get("id") is not None else f"#{i}") != node_id:
            continue
        try:
            NodeKind(str(nc.get("type", "")).upper())
        except ValueError:
            continue
        return i
    return None

"""Backward sweep: downstream apparent power and edge currents.

For every node, subtree_kVA = own load + Σ children. An edge carries the
subtree of its downstream node, and its current is taken at the edge's
nominal voltage:

    I = S / (√3 · V_nominal)

Current is computed from nominal rather than solved voltage, i.e. one
backward/forward sweep instead of an iterated load flow. Acceptable for the
lightly loaded radial feeders this engine targets.

Accumulation runs level by level from the deepest nodes up; all nodes on one
level are independent, so each level is a single ``np.add.at``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from engine.network.alerts import Alert, AlertKind
from engine.network.network_model import LoadNode, NetworkModel
from engine.network.per_unit import SQRT3
from engine.network.topology import RadialTopology


class PowerFactorPolicy(str, Enum):
    """How a subtree serving several loads gets one power factor."""
    KVA_WEIGHTED = "kva_weighted"  # Σ(S·pf) / ΣS
    VECTOR_SUM = "vector_sum"      # ΣP / |ΣP + jΣQ|


@dataclass
class LoadAggregation:
    own_kva: np.ndarray
    subtree_kva: np.ndarray
    power_factor: np.ndarray  # composite pf of each subtree (1.0 if unloaded)
    edge_kv: np.ndarray       # nominal voltage of the parent edge (0 at roots)
    current_a: np.ndarray     # parent edge current (0 at roots)
    alerts: list[Alert] = field(default_factory=list)

    @property
    def total_kva(self) -> float:
        return float(self.own_kva.sum())


def aggregate_loads(
    network: NetworkModel,
    topology: RadialTopology,
    level_kv: np.ndarray,
    policy: PowerFactorPolicy = PowerFactorPolicy.KVA_WEIGHTED,
) -> LoadAggregation:
    """Accumulate load bottom-up and derive parent-edge currents."""
    n = topology.n
    own = np.zeros(n)
    pf = np.ones(n)
    for i, nid in enumerate(topology.order):
        node = network.nodes[nid]
        if isinstance(node, LoadNode):
            own[i] = node.demand_kva
            pf[i] = node.power_factor

    subtree = own.copy()
    weighted = own * pf                       # Σ S·pf, also Σ P
    reactive = own * np.sqrt(np.clip(1.0 - pf ** 2, 0.0, None))

    parent = topology.parent
    with np.errstate(over="ignore"):
        for idx in reversed(topology.levels()[1:]):
            np.add.at(subtree, parent[idx], subtree[idx])
            np.add.at(weighted, parent[idx], weighted[idx])
            np.add.at(reactive, parent[idx], reactive[idx])

    has_parent = parent >= 0
    edge_kv = np.zeros(n)
    edge_kv[has_parent] = level_kv[parent[has_parent]]
    current = np.zeros(n)
    live = has_parent & (edge_kv > 0)
    with np.errstate(over="ignore"):
        current[live] = subtree[live] / (SQRT3 * edge_kv[live])

    # Finite loads can still sum, or divide, past float range
    overflow = ~(
        np.isfinite(subtree) & np.isfinite(weighted)
        & np.isfinite(reactive) & np.isfinite(current)
    )
    alerts: list[Alert] = []
    if overflow.any():
        names = [network.nodes[topology.order[i]].name for i in np.flatnonzero(overflow)]
        alerts.append(Alert(
            AlertKind.DATA,
            f"Downstream load at {', '.join(names)} exceeds the numeric range; "
            "treated as 0 kVA",
            names[0],
        ))
        for arr in (subtree, weighted, reactive, current):
            arr[overflow] = 0.0

    composite = np.ones(n)
    if policy is PowerFactorPolicy.VECTOR_SUM:
        apparent = np.hypot(weighted, reactive)
        loaded = apparent > 0
        composite[loaded] = weighted[loaded] / apparent[loaded]
    else:
        loaded = subtree > 0
        composite[loaded] = weighted[loaded] / subtree[loaded]

    return LoadAggregation(
        own_kva=own,
        subtree_kva=subtree,
        power_factor=np.clip(composite, 0.0, 1.0),
        edge_kv=edge_kv,
        current_a=current,
        alerts=alerts,
    )

"""Radial topology builder.

Turns the undirected node/edge collection into a forest of rooted trees, one
per Source node, and stores it as an arena: every reachable node gets an
index in pre-order, and parent/depth/distance are arrays over that index.
Later passes read the arena only; the network model is never mutated.

Structural violations:
  NoSource       -- no Source node at all (raised, fatal)
  Cycle          -- edge closing a loop within one tree (edge excluded)
  MultipleRoots  -- node reachable from two sources (tie edge excluded,
                    node stays with the first source in input order)
  Island         -- node unreachable from any source (node excluded)
  InvalidEdge    -- edge to an unknown or annotation node (edge ignored)
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field

import numpy as np

from engine.network.alerts import Alert, AlertKind
from engine.network.network_model import LineSegment, NetworkModel, TransformerNode

logger = logging.getLogger(__name__)


class TopologyError(Exception):
    """Structural problem that prevents any analysis."""


class NoSourceError(TopologyError):
    pass


@dataclass
class RadialTopology:
    """Rooted forest over the reachable part of a network."""
    order: list[str]                      # arena index -> node id (pre-order)
    parent: np.ndarray                    # arena index of parent, -1 at roots
    parent_line: list[LineSegment | None]
    depth: np.ndarray
    root: np.ndarray                      # arena index of the owning source
    distance_m: np.ndarray                # cumulative line length from the root
    islands: list[str] = field(default_factory=list)
    excluded_lines: list[str] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)

    @property
    def n(self) -> int:
        return len(self.order)

    @property
    def index(self) -> dict[str, int]:
        return {node_id: i for i, node_id in enumerate(self.order)}

    def children(self, i: int) -> list[int]:
        return [int(c) for c in np.flatnonzero(self.parent == i)]

    def levels(self) -> list[np.ndarray]:
        """Arena indices grouped by depth, root level first."""
        if self.n == 0:
            return []
        return [np.flatnonzero(self.depth == d) for d in range(int(self.depth.max()) + 1)]


def build_topology(network: NetworkModel) -> RadialTopology:
    """Orient the network into one tree per source.

    Raises:
        NoSourceError: if the network has no Source node.
    """
    alerts: list[Alert] = []
    nodes = network.nodes

    def name(node_id: str) -> str:
        return nodes[node_id].name

    adjacency: dict[str, list[tuple[LineSegment, str]]] = {nid: [] for nid in nodes}
    for line in network.lines:
        missing = [e for e in (line.from_node, line.to_node) if e not in nodes]
        if missing:
            what = (
                "an annotation" if all(e in network.annotations for e in missing)
                else "an unknown node"
            )
            alerts.append(Alert(
                AlertKind.STRUCTURAL,
                f"Edge {line.id} connects to {what} ({', '.join(missing)}); edge ignored",
                line.id,
            ))
            continue
        if line.from_node == line.to_node:
            alerts.append(Alert(
                AlertKind.STRUCTURAL,
                f"Cycle: edge {line.id} loops back onto {name(line.from_node)}; "
                "edge excluded from analysis",
                line.id,
            ))
            continue
        adjacency[line.from_node].append((line, line.to_node))
        adjacency[line.to_node].append((line, line.from_node))

    sources = network.sources
    if not sources:
        raise NoSourceError("No source node found: add a Source to analyze the network.")

    owner: dict[str, str] = {s.id: s.id for s in sources}
    parent_of: dict[str, tuple[str, LineSegment]] = {}
    children: dict[str, list[str]] = {nid: [] for nid in nodes}
    handled: set[str] = set()
    excluded: list[str] = []

    for source in sources:
        queue = deque([source.id])
        while queue:
            u = queue.popleft()
            for line, v in adjacency[u]:
                if line.id in handled:
                    continue
                handled.add(line.id)
                if v not in owner:
                    owner[v] = source.id
                    parent_of[v] = (u, line)
                    children[u].append(v)
                    queue.append(v)
                elif owner[v] == source.id:
                    excluded.append(line.id)
                    alerts.append(Alert(
                        AlertKind.STRUCTURAL,
                        f"Cycle: edge {line.id} between {name(u)} and {name(v)} closes a loop; "
                        "edge excluded from analysis",
                        line.id,
                    ))
                else:
                    excluded.append(line.id)
                    if owner[v] == v:
                        message = (
                            f"Multiple sources: sources {name(source.id)} and {name(v)} "
                            f"are tied via edge {line.id}"
                        )
                    else:
                        message = (
                            f"Multiple sources: node {name(v)} is supplied by {name(owner[v])} "
                            f"and reachable from {name(source.id)} via edge {line.id}"
                        )
                    alerts.append(Alert(
                        AlertKind.STRUCTURAL,
                        f"{message}; edge excluded from analysis",
                        name(v),
                    ))

    islands = [nid for nid in nodes if nid not in owner]
    for nid in islands:
        alerts.append(Alert(
            AlertKind.STRUCTURAL,
            f"Island: node {name(nid)} is not connected to any source; excluded from results",
            name(nid),
        ))

    # Pre-order per tree, children in the order they were discovered
    order: list[str] = []
    for source in sources:
        stack = [source.id]
        while stack:
            nid = stack.pop()
            order.append(nid)
            stack.extend(reversed(children[nid]))

    index = {nid: i for i, nid in enumerate(order)}
    n = len(order)
    parent = np.full(n, -1, dtype=np.int64)
    depth = np.zeros(n, dtype=np.int64)
    root = np.arange(n, dtype=np.int64)
    distance = np.zeros(n, dtype=np.float64)
    parent_line: list[LineSegment | None] = [None] * n

    # Pre-order guarantees parents are filled before children
    for i, nid in enumerate(order):
        if nid in parent_of:
            up, line = parent_of[nid]
            p = index[up]
            parent[i] = p
            parent_line[i] = line
            depth[i] = depth[p] + 1
            root[i] = root[p]
            distance[i] = distance[p] + line.length_m

    if alerts:
        logger.warning("Topology has %d structural issue(s)", len(alerts))
    logger.debug(
        "Built %d tree(s) over %d node(s), max depth %d",
        len(sources), n, int(depth.max()) if n else 0,
    )

    return RadialTopology(
        order=order,
        parent=parent,
        parent_line=parent_line,
        depth=depth,
        root=root,
        distance_m=distance,
        islands=islands,
        excluded_lines=excluded,
        alerts=alerts,
    )


def assign_voltage_levels(
    network: NetworkModel,
    topology: RadialTopology,
) -> tuple[np.ndarray, list[Alert]]:
    """Nominal operating voltage (kV) of every arena node.

    Sources use their own voltage, transformers their secondary voltage (or
    the primary level when no secondary is given); every other node inherits
    the level feeding it. A drawn voltage that disagrees with the inherited
    level is reported and overridden.
    """
    level = np.zeros(topology.n, dtype=np.float64)
    alerts: list[Alert] = []

    for i, nid in enumerate(topology.order):
        node = network.nodes[nid]
        p = int(topology.parent[i])
        if p < 0:
            level[i] = node.nominal_kv
            continue
        inherited = level[p]
        if isinstance(node, TransformerNode):
            level[i] = node.nominal_kv if node.nominal_kv is not None else inherited
            continue
        if node.nominal_kv is not None and not math.isclose(node.nominal_kv, inherited, rel_tol=1e-6):
            alerts.append(Alert(
                AlertKind.DATA,
                f"Node {node.name}: nominal voltage {node.nominal_kv:g} kV differs from the "
                f"{inherited:g} kV level feeding it; using {inherited:g} kV",
                node.name,
            ))
        level[i] = inherited

    return level, alerts

"""Network model: typed nodes and line segments built from editor data.

The editor stores every node as a loosely-typed ``data`` bag. Here each node
kind becomes its own dataclass carrying exactly the fields that kind uses.
Parsing is total: missing or out-of-range values are replaced by documented
defaults and reported as alerts instead of raising.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from engine.network.alerts import Alert, AlertKind
from engine.network.transformer_model import TAP_MAX, TAP_MIN

logger = logging.getLogger(__name__)

DEFAULT_VOLTAGE_KV = 11.0
DEFAULT_X_R_RATIO = 10.0
DEFAULT_POWER_FACTOR = 0.85
MIN_POWER_FACTOR = 0.01


class NodeKind(str, Enum):
    SOURCE = "SOURCE"
    BUSBAR = "BUSBAR"
    TRANSFORMER = "TRANSFORMER"
    LOAD = "LOAD"
    TEXT = "TEXT"


@dataclass(frozen=True)
class SourceNode:
    """Grid infeed. ``fault_level_ka`` of None models an infinite bus."""
    id: str
    name: str
    nominal_kv: float
    fault_level_ka: float | None = None
    x_r_ratio: float = DEFAULT_X_R_RATIO
    kind: NodeKind = field(default=NodeKind.SOURCE, init=False)


@dataclass(frozen=True)
class BusbarNode:
    id: str
    name: str
    nominal_kv: float | None
    kind: NodeKind = field(default=NodeKind.BUSBAR, init=False)


@dataclass(frozen=True)
class TransformerNode:
    """Two-winding transformer; ``nominal_kv`` is the secondary voltage."""
    id: str
    name: str
    nominal_kv: float | None
    rating_kva: float | None
    impedance_pct: float | None = None
    tap_position: int = 0
    vector_group: str = ""
    kind: NodeKind = field(default=NodeKind.TRANSFORMER, init=False)


@dataclass(frozen=True)
class LoadNode:
    id: str
    name: str
    nominal_kv: float | None
    rating_kva: float = 0.0
    power_factor: float = DEFAULT_POWER_FACTOR
    scale_factor: float = 1.0
    kind: NodeKind = field(default=NodeKind.LOAD, init=False)

    @property
    def demand_kva(self) -> float:
        return self.rating_kva * self.scale_factor


Node = Union[SourceNode, BusbarNode, TransformerNode, LoadNode]


@dataclass(frozen=True)
class LineSegment:
    """Cable or overhead line between two nodes (undirected as drawn)."""
    id: str
    from_node: str
    to_node: str
    length_m: float
    conductor_code: str


@dataclass
class NetworkModel:
    """Electrical nodes keyed by id (input order kept) and line segments."""
    nodes: dict[str, Node] = field(default_factory=dict)
    lines: list[LineSegment] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    # Ids of TEXT annotation nodes, which carry no electrical meaning
    annotations: set[str] = field(default_factory=set)

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def sources(self) -> list[SourceNode]:
        return [n for n in self.nodes.values() if isinstance(n, SourceNode)]

    def get_node(self, node_id: str) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise KeyError(f"Node {node_id!r} not found") from None


def _as_float(value: Any) -> float | None:
    """Finite float from editor input, or None if missing/unparseable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    return f


class _Parser:
    """Accumulates alerts while turning editor dicts into model objects."""

    def __init__(self) -> None:
        self.alerts: list[Alert] = []

    def warn(self, kind: AlertKind, message: str, subject: str = "") -> None:
        self.alerts.append(Alert(kind, message, subject))

    def nominal_kv(self, data: dict, name: str, required: bool) -> float | None:
        kv = _as_float(data.get("voltage"))
        if kv is not None and kv > 0:
            return kv
        if required:
            self.warn(
                AlertKind.DATA,
                f"Node {name}: nominal voltage missing or invalid; "
                f"assuming {DEFAULT_VOLTAGE_KV:g} kV",
                name,
            )
            return DEFAULT_VOLTAGE_KV
        if data.get("voltage") is not None:
            self.warn(
                AlertKind.DATA,
                f"Node {name}: nominal voltage {data.get('voltage')!r} is invalid; "
                "inheriting the upstream voltage level",
                name,
            )
        return None

    def source(self, node_id: str, name: str, data: dict) -> SourceNode:
        kv = self.nominal_kv(data, name, required=True)

        fault_ka = _as_float(data.get("faultLevel3Ph"))
        if fault_ka is not None and fault_ka <= 0:
            self.warn(
                AlertKind.DATA,
                f"Source {name}: fault level {fault_ka:g} kA is not positive; "
                "treating as infinite bus",
                name,
            )
            fault_ka = None

        xr = _as_float(data.get("xrRatio"))
        if xr is None:
            xr = DEFAULT_X_R_RATIO
        elif xr <= 0:
            self.warn(
                AlertKind.RANGE,
                f"Source {name}: X/R ratio {xr:g} out of range; using {DEFAULT_X_R_RATIO:g}",
                name,
            )
            xr = DEFAULT_X_R_RATIO

        return SourceNode(node_id, name, kv, fault_level_ka=fault_ka, x_r_ratio=xr)

    def transformer(self, node_id: str, name: str, data: dict) -> TransformerNode:
        kv = self.nominal_kv(data, name, required=False)
        if kv is None and data.get("voltage") is None:
            self.warn(
                AlertKind.DATA,
                f"Transformer {name}: secondary voltage missing; assuming 1:1 ratio",
                name,
            )

        rating = _as_float(data.get("rating"))
        if rating is not None and rating <= 0:
            rating = None
        if rating is None:
            self.warn(
                AlertKind.DATA,
                f"Transformer {name}: rating missing or invalid; modelled as ideal (zero impedance)",
                name,
            )

        z_pct = _as_float(data.get("zPercent"))
        if z_pct is not None and z_pct <= 0:
            self.warn(
                AlertKind.DATA,
                f"Transformer {name}: impedance {z_pct:g}% is not positive; using table value",
                name,
            )
            z_pct = None

        tap = _as_float(data.get("tapPosition"))
        if tap is None:
            tap_position = 0
        else:
            tap_position = int(round(tap))
            if tap_position != tap:
                self.warn(
                    AlertKind.RANGE,
                    f"Transformer {name}: tap position {tap:g} rounded to {tap_position}",
                    name,
                )
            clamped = min(max(tap_position, TAP_MIN), TAP_MAX)
            if clamped != tap_position:
                self.warn(
                    AlertKind.RANGE,
                    f"Transformer {name}: tap position {tap_position} outside "
                    f"[{TAP_MIN}, {TAP_MAX}]; clamped to {clamped}",
                    name,
                )
                tap_position = clamped

        return TransformerNode(
            node_id, name, kv,
            rating_kva=rating,
            impedance_pct=z_pct,
            tap_position=tap_position,
            vector_group=str(data.get("vectorGroup") or ""),
        )

    def load(self, node_id: str, name: str, data: dict) -> LoadNode:
        kv = self.nominal_kv(data, name, required=False)

        rating = _as_float(data.get("rating"))
        if rating is None or rating < 0:
            self.warn(
                AlertKind.DATA,
                f"Load {name}: rating missing or invalid; contributes 0 kVA",
                name,
            )
            rating = 0.0

        pf = _as_float(data.get("powerFactor"))
        if pf is None:
            pf = DEFAULT_POWER_FACTOR
        elif pf <= 0 or pf > 1:
            clamped = min(max(pf, MIN_POWER_FACTOR), 1.0)
            self.warn(
                AlertKind.RANGE,
                f"Load {name}: power factor {pf:g} outside (0, 1]; clamped to {clamped:g}",
                name,
            )
            pf = clamped

        scale = _as_float(data.get("loadScaleFactor"))
        if scale is None:
            scale = 1.0
        elif scale < 0:
            self.warn(
                AlertKind.RANGE,
                f"Load {name}: scale factor {scale:g} is negative; clamped to 0",
                name,
            )
            scale = 0.0

        if not math.isfinite(rating * scale):
            self.warn(
                AlertKind.DATA,
                f"Load {name}: demand {rating:g} kVA x {scale:g} exceeds the numeric range; "
                "contributes 0 kVA",
                name,
            )
            rating = 0.0

        return LoadNode(node_id, name, kv, rating_kva=rating, power_factor=pf, scale_factor=scale)


def build_network_from_config(
    nodes_config: list[dict],
    edges_config: list[dict],
) -> NetworkModel:
    """Build a NetworkModel from editor node and edge dicts.

    Args:
        nodes_config: list of node dicts with keys:
            id, type, data (name, voltage and kind-specific fields)
        edges_config: list of edge dicts with keys:
            id, from, to, length (m), conductorType
    """
    parser = _Parser()
    network = NetworkModel()
    names: set[str] = set()

    for i, nc in enumerate(nodes_config or []):
        if not isinstance(nc, dict):
            parser.warn(AlertKind.DATA, f"Node entry #{i} is not an object; ignored")
            continue
        node_id = str(nc.get("id") if nc.get("id") is not None else f"#{i}")
        data = nc.get("data") if isinstance(nc.get("data"), dict) else {}

        try:
            kind = NodeKind(str(nc.get("type", "")).upper())
        except ValueError:
            parser.warn(
                AlertKind.DATA,
                f"Node {node_id}: unknown type {nc.get('type')!r}; ignored",
                node_id,
            )
            continue

        if node_id in network.nodes or node_id in network.annotations:
            parser.warn(AlertKind.DATA, f"Duplicate node id {node_id}; later entry ignored", node_id)
            continue
        if kind is NodeKind.TEXT:
            network.annotations.add(node_id)
            continue

        name = str(data.get("name") or node_id)
        if name in names:
            unique = f"{name} ({node_id})"
            parser.warn(
                AlertKind.DATA,
                f"Duplicate node name {name}; node {node_id} reported as {unique}",
                unique,
            )
            name = unique
        names.add(name)

        if kind is NodeKind.SOURCE:
            node: Node = parser.source(node_id, name, data)
        elif kind is NodeKind.TRANSFORMER:
            node = parser.transformer(node_id, name, data)
        elif kind is NodeKind.LOAD:
            node = parser.load(node_id, name, data)
        else:
            node = BusbarNode(node_id, name, parser.nominal_kv(data, name, required=False))
        network.nodes[node_id] = node

    edge_ids: set[str] = set()
    for i, ec in enumerate(edges_config or []):
        if not isinstance(ec, dict):
            parser.warn(AlertKind.DATA, f"Edge entry #{i} is not an object; ignored")
            continue
        edge_id = str(ec.get("id") if ec.get("id") is not None else f"#{i}")
        if edge_id in edge_ids:
            parser.warn(AlertKind.DATA, f"Duplicate edge id {edge_id}; later entry ignored", edge_id)
            continue
        edge_ids.add(edge_id)

        length = _as_float(ec.get("length"))
        if length is None or length < 0:
            parser.warn(
                AlertKind.DATA,
                f"Edge {edge_id}: length {ec.get('length')!r} is invalid; treated as 0 m",
                edge_id,
            )
            length = 0.0

        network.lines.append(LineSegment(
            id=edge_id,
            from_node=str(ec.get("from")),
            to_node=str(ec.get("to")),
            length_m=length,
            conductor_code=str(ec.get("conductorType") or ""),
        ))

    network.alerts.extend(parser.alerts)
    logger.debug(
        "Parsed network: %d nodes, %d lines, %d annotations, %d alerts",
        network.n_nodes, len(network.lines), len(network.annotations), len(parser.alerts),
    )
    return network

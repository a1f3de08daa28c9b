"""Tests for network parsing, radial topology building, and load aggregation."""

from __future__ import annotations

import numpy as np
import pytest

from engine.network.alerts import AlertKind
from engine.network.load_flow import PowerFactorPolicy, aggregate_loads
from engine.network.network_model import (
    DEFAULT_POWER_FACTOR,
    BusbarNode,
    LoadNode,
    NodeKind,
    SourceNode,
    TransformerNode,
    build_network_from_config,
)
from engine.network.topology import NoSourceError, assign_voltage_levels, build_topology


def _node(node_id: str, kind: str, **data) -> dict:
    return {"id": node_id, "type": kind, "x": 0, "y": 0, "data": data}


def _edge(edge_id: str, a: str, b: str, length: float = 1000.0, conductor: str = "Hare") -> dict:
    return {"id": edge_id, "from": a, "to": b, "length": length, "conductorType": conductor}


def _messages(alerts) -> list[str]:
    return [a.message for a in alerts]


# ======================================================================
# Node parsing
# ======================================================================


class TestNodeParsing:
    """Editor data bags become typed nodes with documented defaults."""

    def test_kinds(self, demo_config):
        network = build_network_from_config(demo_config["nodes"], demo_config["edges"])
        assert isinstance(network.get_node("n1"), SourceNode)
        assert isinstance(network.get_node("n2"), BusbarNode)
        assert isinstance(network.get_node("n4"), TransformerNode)
        assert isinstance(network.get_node("n6"), LoadNode)
        assert network.get_node("n6").kind is NodeKind.LOAD
        assert not network.alerts

    def test_lowercase_type_accepted(self):
        network = build_network_from_config([_node("s", "source", voltage=11)], [])
        assert isinstance(network.get_node("s"), SourceNode)

    def test_text_nodes_are_annotations(self):
        network = build_network_from_config(
            [_node("s", "SOURCE", voltage=11), _node("t", "TEXT", name="Note")], [],
        )
        assert network.n_nodes == 1
        assert network.annotations == {"t"}

    def test_unknown_type_ignored(self):
        network = build_network_from_config([_node("x", "GENERATOR")], [])
        assert network.n_nodes == 0
        assert "unknown type 'GENERATOR'" in network.alerts[0].message

    def test_missing_node_raises_key_error(self):
        network = build_network_from_config([], [])
        with pytest.raises(KeyError):
            network.get_node("nope")

    def test_source_defaults(self):
        network = build_network_from_config([_node("s", "SOURCE", name="Grid")], [])
        src = network.get_node("s")
        assert src.nominal_kv == 11.0
        assert src.fault_level_ka is None
        assert src.x_r_ratio == 10.0
        assert "assuming 11 kV" in network.alerts[0].message

    def test_non_positive_fault_level_is_infinite_bus(self):
        network = build_network_from_config(
            [_node("s", "SOURCE", name="Grid", voltage=11, faultLevel3Ph=0)], [],
        )
        assert network.get_node("s").fault_level_ka is None
        assert "treating as infinite bus" in network.alerts[0].message

    def test_non_positive_xr_defaulted(self):
        network = build_network_from_config(
            [_node("s", "SOURCE", voltage=11, faultLevel3Ph=5, xrRatio=-3)], [],
        )
        assert network.get_node("s").x_r_ratio == 10.0
        assert network.alerts[0].kind is AlertKind.RANGE

    def test_tap_rounded_and_clamped(self):
        network = build_network_from_config(
            [_node("t", "TRANSFORMER", name="Tx", voltage=0.4, rating=500, tapPosition=8.6)], [],
        )
        assert network.get_node("t").tap_position == 5
        messages = _messages(network.alerts)
        assert any("rounded to 9" in m for m in messages)
        assert any("clamped to 5" in m for m in messages)

    def test_transformer_without_rating_is_ideal(self):
        network = build_network_from_config(
            [_node("t", "TRANSFORMER", name="Tx", voltage=0.4)], [],
        )
        assert network.get_node("t").rating_kva is None
        assert any("modelled as ideal" in m for m in _messages(network.alerts))

    def test_load_clamping(self):
        network = build_network_from_config(
            [_node("l", "LOAD", name="L", rating=100, powerFactor=1.4, loadScaleFactor=-2)], [],
        )
        load = network.get_node("l")
        assert load.power_factor == 1.0
        assert load.scale_factor == 0.0
        assert load.demand_kva == 0.0
        assert len(network.alerts) == 2
        assert all(a.kind is AlertKind.RANGE for a in network.alerts)

    def test_zero_power_factor_floored(self):
        network = build_network_from_config(
            [_node("l", "LOAD", name="L", rating=100, powerFactor=0)], [],
        )
        assert network.get_node("l").power_factor == 0.01

    def test_load_default_power_factor(self):
        network = build_network_from_config([_node("l", "LOAD", name="L", rating=100)], [])
        assert network.get_node("l").power_factor == DEFAULT_POWER_FACTOR
        assert not network.alerts

    def test_missing_rating_contributes_nothing(self):
        network = build_network_from_config([_node("l", "LOAD", name="L", rating="abc")], [])
        assert network.get_node("l").demand_kva == 0.0
        assert "contributes 0 kVA" in network.alerts[0].message

    def test_scale_factor_applied(self):
        network = build_network_from_config(
            [_node("l", "LOAD", name="L", rating=400, loadScaleFactor=0.5)], [],
        )
        assert network.get_node("l").demand_kva == 200.0

    def test_duplicate_ids_and_names(self):
        network = build_network_from_config(
            [
                _node("a", "BUSBAR", name="Bus"),
                _node("a", "BUSBAR", name="Other"),
                _node("b", "BUSBAR", name="Bus"),
            ],
            [],
        )
        assert network.n_nodes == 2
        assert network.get_node("b").name == "Bus (b)"
        assert len(network.alerts) == 2

    def test_bad_edge_length(self):
        network = build_network_from_config(
            [], [{"id": "e1", "from": "a", "to": "b", "length": -5}],
        )
        assert network.lines[0].length_m == 0.0
        assert "treated as 0 m" in network.alerts[0].message


# ======================================================================
# Topology
# ======================================================================


class TestTopology:
    """Orientation of the undirected drawing into rooted trees."""

    def test_preorder_arena(self, demo_config):
        network = build_network_from_config(demo_config["nodes"], demo_config["edges"])
        topology = build_topology(network)
        assert topology.order == ["n1", "n2", "n3", "n4", "n5", "n6", "n7"]
        np.testing.assert_array_equal(topology.parent, [-1, 0, 1, 2, 3, 4, 4])
        np.testing.assert_array_equal(topology.depth, [0, 1, 2, 3, 4, 5, 5])
        assert topology.children(4) == [5, 6]
        assert [lvl.tolist() for lvl in topology.levels()][-1] == [5, 6]
        assert not topology.alerts

    def test_edge_direction_irrelevant(self):
        """An edge drawn from load to source is oriented away from the source."""
        network = build_network_from_config(
            [_node("s", "SOURCE", voltage=11), _node("l", "LOAD", voltage=11, rating=10)],
            [_edge("e1", "l", "s")],
        )
        topology = build_topology(network)
        assert topology.order == ["s", "l"]
        assert topology.parent_line[1].id == "e1"

    def test_no_source_raises(self):
        network = build_network_from_config([_node("b", "BUSBAR", voltage=11)], [])
        with pytest.raises(NoSourceError, match="No source node found"):
            build_topology(network)

    def test_island_excluded(self):
        network = build_network_from_config(
            [_node("s", "SOURCE", name="Grid", voltage=11), _node("b", "BUSBAR", name="Lonely")],
            [],
        )
        topology = build_topology(network)
        assert topology.order == ["s"]
        assert topology.islands == ["b"]
        assert topology.alerts[0].message.startswith("Island: node Lonely")

    def test_multiple_sources_first_keeps_node(self):
        network = build_network_from_config(
            [
                _node("s1", "SOURCE", name="G1", voltage=11),
                _node("a", "BUSBAR", name="A", voltage=11),
                _node("s2", "SOURCE", name="G2", voltage=11),
            ],
            [_edge("e1", "s1", "a"), _edge("e2", "a", "s2")],
        )
        topology = build_topology(network)
        idx = topology.index
        assert topology.root[idx["a"]] == idx["s1"]
        assert topology.excluded_lines == ["e2"]
        assert topology.alerts[0].message == (
            "Multiple sources: sources G1 and G2 are tied via edge e2; edge excluded from analysis"
        )
        assert topology.alerts[0].kind is AlertKind.STRUCTURAL

    def test_multiple_sources_shared_node(self):
        network = build_network_from_config(
            [
                _node("s1", "SOURCE", name="G1", voltage=11),
                _node("s2", "SOURCE", name="G2", voltage=11),
                _node("a", "BUSBAR", name="A", voltage=11),
                _node("b", "BUSBAR", name="B", voltage=11),
            ],
            [_edge("e1", "s1", "a"), _edge("e2", "a", "b"), _edge("e3", "s2", "b")],
        )
        topology = build_topology(network)
        assert topology.excluded_lines == ["e3"]
        assert topology.alerts[0].message == (
            "Multiple sources: node B is supplied by G1 and reachable from G2 via edge e3; "
            "edge excluded from analysis"
        )

    def test_self_loop(self):
        network = build_network_from_config(
            [_node("s", "SOURCE", name="Grid", voltage=11)], [_edge("e1", "s", "s")],
        )
        topology = build_topology(network)
        assert topology.alerts[0].message.startswith("Cycle: edge e1 loops back")

    def test_edge_to_unknown_node(self):
        network = build_network_from_config(
            [_node("s", "SOURCE", voltage=11), _node("t", "TEXT")],
            [_edge("e1", "s", "ghost"), _edge("e2", "s", "t")],
        )
        messages = _messages(build_topology(network).alerts)
        assert "an unknown node (ghost)" in messages[0]
        assert "an annotation (t)" in messages[1]

    def test_distance(self, demo_config):
        network = build_network_from_config(demo_config["nodes"], demo_config["edges"])
        topology = build_topology(network)
        assert topology.distance_m[topology.index["n7"]] == 21_100.0


class TestVoltageLevels:
    """Nominal levels inherited downstream and reset at transformers."""

    def test_levels(self, demo_config):
        network = build_network_from_config(demo_config["nodes"], demo_config["edges"])
        topology = build_topology(network)
        level_kv, alerts = assign_voltage_levels(network, topology)
        np.testing.assert_array_equal(level_kv, [132, 132, 132, 11, 11, 11, 11])
        assert alerts == []

    def test_mismatch_uses_inherited_level(self):
        network = build_network_from_config(
            [
                _node("s", "SOURCE", name="Grid", voltage=11),
                _node("l", "LOAD", name="L", voltage=0.4, rating=10),
            ],
            [_edge("e1", "s", "l")],
        )
        topology = build_topology(network)
        level_kv, alerts = assign_voltage_levels(network, topology)
        assert level_kv[1] == 11.0
        assert "differs from the 11 kV level" in alerts[0].message

    def test_missing_voltage_inherits(self):
        network = build_network_from_config(
            [_node("s", "SOURCE", voltage=33), _node("b", "BUSBAR")],
            [_edge("e1", "s", "b")],
        )
        topology = build_topology(network)
        level_kv, alerts = assign_voltage_levels(network, topology)
        assert level_kv[1] == 33.0
        assert alerts == []


# ======================================================================
# Load aggregation
# ======================================================================


def _two_load_network():
    network = build_network_from_config(
        [
            _node("s", "SOURCE", voltage=11),
            _node("b", "BUSBAR", voltage=11),
            _node("l1", "LOAD", voltage=11, rating=100, powerFactor=1.0),
            _node("l2", "LOAD", voltage=11, rating=100, powerFactor=0.6),
        ],
        [_edge("e1", "s", "b"), _edge("e2", "b", "l1"), _edge("e3", "b", "l2")],
    )
    topology = build_topology(network)
    level_kv, _ = assign_voltage_levels(network, topology)
    return network, topology, level_kv


class TestLoadAggregation:
    """Backward sweep of apparent power and composite power factor."""

    def test_subtree_sums(self):
        network, topology, level_kv = _two_load_network()
        loads = aggregate_loads(network, topology, level_kv)
        idx = topology.index
        assert loads.subtree_kva[idx["s"]] == 200.0
        assert loads.subtree_kva[idx["b"]] == 200.0
        assert loads.subtree_kva[idx["l2"]] == 100.0
        assert loads.total_kva == 200.0
        assert loads.current_a[idx["s"]] == 0.0
        assert loads.current_a[idx["b"]] == pytest.approx(200 / (np.sqrt(3) * 11))

    def test_kva_weighted_pf(self):
        network, topology, level_kv = _two_load_network()
        loads = aggregate_loads(network, topology, level_kv, PowerFactorPolicy.KVA_WEIGHTED)
        assert loads.power_factor[topology.index["b"]] == pytest.approx(0.8)

    def test_vector_sum_pf(self):
        network, topology, level_kv = _two_load_network()
        loads = aggregate_loads(network, topology, level_kv, PowerFactorPolicy.VECTOR_SUM)
        # P = 160 kW, Q = 80 kvar
        assert loads.power_factor[topology.index["b"]] == pytest.approx(160 / np.hypot(160, 80))

    def test_unloaded_subtree_pf_is_unity(self):
        network = build_network_from_config(
            [_node("s", "SOURCE", voltage=11), _node("b", "BUSBAR", voltage=11)],
            [_edge("e1", "s", "b")],
        )
        topology = build_topology(network)
        level_kv, _ = assign_voltage_levels(network, topology)
        loads = aggregate_loads(network, topology, level_kv)
        np.testing.assert_array_equal(loads.power_factor, [1.0, 1.0])

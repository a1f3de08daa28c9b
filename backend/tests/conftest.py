"""Shared test fixtures for RetiNet engine and API tests."""

from __future__ import annotations

from typing import Callable

import pytest

from engine.network.demo_network import demo_network


# ======================================================================
# Editor-shaped node/edge builders
# ======================================================================

def _node(node_id: str, kind: str, **data) -> dict:
    return {"id": node_id, "type": kind, "x": 0, "y": 0, "data": data}


def _edge(edge_id: str, a: str, b: str, length: float = 1000.0, conductor: str = "Hare") -> dict:
    return {"id": edge_id, "from": a, "to": b, "length": length, "conductorType": conductor}


# ======================================================================
# Network fixtures
# ======================================================================

@pytest.fixture
def demo_config() -> dict[str, list[dict]]:
    """Demo 1: 132/11 kV, 20 MVA transformer, two 3 MVA loads."""
    return demo_network()


@pytest.fixture
def feeder_config() -> Callable[..., dict[str, list[dict]]]:
    """Factory for Source -> one line -> Load on a single voltage level.

    The source defaults to an 11 kV infinite bus.
    """
    def _build(
        load_kva: float = 1000.0,
        power_factor: float = 1.0,
        length_m: float = 1000.0,
        conductor: str = "Hare",
        fault_ka: float | None = None,
        voltage_kv: float = 11.0,
    ) -> dict[str, list[dict]]:
        src = {"name": "Grid", "voltage": voltage_kv}
        if fault_ka is not None:
            src["faultLevel3Ph"] = fault_ka
            src["xrRatio"] = 10
        return {
            "nodes": [
                _node("s", "SOURCE", **src),
                _node("l", "LOAD", name="Load", voltage=voltage_kv,
                      rating=load_kva, powerFactor=power_factor),
            ],
            "edges": [_edge("e1", "s", "l", length_m, conductor)],
        }

    return _build


@pytest.fixture
def substation_config() -> Callable[..., dict[str, list[dict]]]:
    """Factory for the single-load 132/11 kV substation.

    Source (132 kV, 20 kA, X/R 10) - 10 km Wolf - HV busbar - jumper -
    20 MVA 11.25% transformer - 50 m Hare - 11 kV busbar - 1000 m Hare - Load.
    """
    def _build(load_kva: float = 3000.0, tap: int = 0) -> dict[str, list[dict]]:
        return {
            "nodes": [
                _node("src", "SOURCE", name="Grid", voltage=132, faultLevel3Ph=20, xrRatio=10),
                _node("hv", "BUSBAR", name="HV", voltage=132),
                _node("tx", "TRANSFORMER", name="Tx", voltage=11, rating=20000,
                      zPercent=11.25, tapPosition=tap, vectorGroup="Dyn11"),
                _node("mv", "BUSBAR", name="MV", voltage=11),
                _node("ld", "LOAD", name="Load", voltage=11, rating=load_kva,
                      powerFactor=0.85, loadScaleFactor=1.0),
            ],
            "edges": [
                _edge("e1", "src", "hv", 10_000, "Wolf"),
                _edge("e2", "hv", "tx", 50, "Wolf"),
                _edge("e3", "tx", "mv", 50, "Hare"),
                _edge("e4", "mv", "ld", 1000, "Hare"),
            ],
        }

    return _build

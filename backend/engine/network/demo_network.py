"""Demo 1: 132 kV infeed, 20 MVA 132/11 kV transformer, two 11 kV loads.

Returned in the editor's node/edge shape, including canvas coordinates.
"""

from __future__ import annotations

import copy

_DEMO_NODES: list[dict] = [
    # 132 kV source section
    {"id": "n1", "type": "SOURCE", "x": 100, "y": 300,
     "data": {"name": "Main_Source", "voltage": 132, "faultLevel3Ph": 20, "xrRatio": 10}},
    {"id": "n2", "type": "BUSBAR", "x": 250, "y": 300, "data": {"name": "HV1", "voltage": 132}},
    {"id": "n3", "type": "BUSBAR", "x": 400, "y": 300, "data": {"name": "HV2", "voltage": 132}},

    # 20 MVA transformer 132/11 kV
    {"id": "n4", "type": "TRANSFORMER", "x": 550, "y": 300,
     "data": {"name": "Tx_01", "voltage": 11, "rating": 20000, "zPercent": 11.25,
              "vectorGroup": "Dyn11"}},

    # 11 kV distribution
    {"id": "n5", "type": "BUSBAR", "x": 700, "y": 300, "data": {"name": "MV1", "voltage": 11}},
    {"id": "n6", "type": "LOAD", "x": 700, "y": 450,
     "data": {"name": "Load_A", "voltage": 11, "rating": 3000, "powerFactor": 0.85,
              "loadScaleFactor": 1.0}},
    {"id": "n7", "type": "LOAD", "x": 850, "y": 300,
     "data": {"name": "Load_B", "voltage": 11, "rating": 3000, "powerFactor": 0.85}},
]

_DEMO_EDGES: list[dict] = [
    # 132 kV Wolf lines
    {"id": "e1", "from": "n1", "to": "n2", "length": 10000, "conductorType": "Wolf"},
    {"id": "e2", "from": "n2", "to": "n3", "length": 10000, "conductorType": "Wolf"},
    {"id": "e3", "from": "n3", "to": "n4", "length": 50, "conductorType": "Wolf"},  # jumper to Tx

    # 11 kV Hare lines
    {"id": "e4", "from": "n4", "to": "n5", "length": 50, "conductorType": "Hare"},
    {"id": "e5", "from": "n5", "to": "n6", "length": 1000, "conductorType": "Hare"},
    {"id": "e6", "from": "n5", "to": "n7", "length": 1000, "conductorType": "Hare"},
]


def demo_network() -> dict[str, list[dict]]:
    """Fresh copy of the demo network as {"nodes": [...], "edges": [...]}."""
    return {"nodes": copy.deepcopy(_DEMO_NODES), "edges": copy.deepcopy(_DEMO_EDGES)}

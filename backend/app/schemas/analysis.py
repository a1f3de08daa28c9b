from typing import Any, Literal

from pydantic import BaseModel, Field


# ----------------------------------------------------------------------
# Editor input
# ----------------------------------------------------------------------

class NodeData(BaseModel):
    """Editor node data bag; kind-specific fields are all optional here."""
    model_config = {"extra": "allow"}

    name: str | None = None
    voltage: float | None = None
    rating: float | None = None
    faultLevel3Ph: float | None = None
    xrRatio: float | None = None
    zPercent: float | None = None
    tapPosition: float | None = None
    vectorGroup: str | None = None
    powerFactor: float | None = None
    loadScaleFactor: float | None = None


class NodeIn(BaseModel):
    id: str
    type: str = Field(max_length=32)
    x: float | None = None
    y: float | None = None
    data: NodeData = Field(default_factory=NodeData)


class EdgeIn(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    from_node: str = Field(alias="from")
    to_node: str = Field(alias="to")
    length: float | None = None
    conductorType: str | None = None
    voltageDrop: float | None = None


class AnalysisOptionsIn(BaseModel):
    grid_code: str | None = None
    custom_grid_code: dict[str, Any] | None = None
    power_factor_policy: str | None = Field(
        default=None, pattern="^(kva_weighted|vector_sum)$"
    )
    transformer_x_r_ratio: float | None = Field(default=None, gt=0)
    transformer_regulation: bool | None = None
    default_conductor: str | None = None


class AnalysisRequest(BaseModel):
    nodes: list[NodeIn]
    edges: list[EdgeIn] = Field(default_factory=list)
    options: AnalysisOptionsIn | None = None


class TapSweepRequest(AnalysisRequest):
    transformerId: str
    positions: list[int] | None = None


# ----------------------------------------------------------------------
# Result contract
# ----------------------------------------------------------------------

class VoltageProfilePoint(BaseModel):
    distance: float
    voltage: float
    nodeName: str


class FaultCurrent(BaseModel):
    nodeName: str
    currentKA: float | None  # null when the fault level is infinite
    type: str
    isInfinite: bool


class EdgeAnalysis(BaseModel):
    edgeId: str
    voltageDrop: float
    current: float
    status: Literal["NORMAL", "OVERLOAD"]
    loadingPct: float
    conductor: str


class NodeResult(BaseModel):
    voltagePu: float
    voltageAngle: float
    loadKVA: float


class AnalysisResponse(BaseModel):
    voltageProfile: list[VoltageProfilePoint]
    faultCurrents: list[FaultCurrent]
    edgeAnalysis: list[EdgeAnalysis]
    nodeResults: dict[str, NodeResult]
    alerts: list[str]
    summary: str


class TapSweepResponse(BaseModel):
    transformerId: str
    positions: list[int]
    nodeNames: list[str]
    voltagePu: list[list[float]]
    alerts: list[list[str]]


# ----------------------------------------------------------------------
# Libraries
# ----------------------------------------------------------------------

class ConductorResponse(BaseModel):
    code: str
    r_ohm_per_km: float
    x_ohm_per_km: float
    ampacity_a: float
    category: str


class TransformerImpedanceResponse(BaseModel):
    rating_kva: float
    impedance_pct: float


class GridCodeProfileSummary(BaseModel):
    key: str
    name: str
    standard: str
    voltage_normal: list[float]
    thermal_limit_pct: float


class GridCodeListResponse(BaseModel):
    profiles: list[GridCodeProfileSummary]


class DemoNetworkResponse(BaseModel):
    nodes: list[dict[str, Any]]
    edges: list[dict[str, Any]]

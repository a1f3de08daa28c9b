from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas.analysis import (
    ConductorResponse,
    DemoNetworkResponse,
    GridCodeListResponse,
    TransformerImpedanceResponse,
)
from app.services.library_service import Libraries, get_libraries
from engine.network.conductor_library import (
    conductor_to_dict,
    filter_conductors,
    find_conductor,
    get_conductor_library,
)
from engine.network.demo_network import demo_network
from engine.network.grid_codes import list_profiles
from engine.network.transformer_model import get_transformer_library

router = APIRouter()


@router.get(
    "/conductor-library",
    response_model=list[ConductorResponse],
    summary="List conductors",
    description="Return the conductor library with optional filtering by category or minimum ampacity.",
)
async def list_conductors(
    category: str | None = Query(default=None, max_length=32),
    min_ampacity: float | None = Query(default=None, ge=0),
    libraries: Libraries = Depends(get_libraries),
):
    if category or min_ampacity is not None:
        conductors = filter_conductors(category, min_ampacity, libraries.conductors)
        return [conductor_to_dict(c) for c in conductors]
    return get_conductor_library(libraries.conductors)


@router.get(
    "/conductor-library/{code}",
    response_model=ConductorResponse,
    summary="Get conductor",
)
async def get_conductor(
    code: str,
    libraries: Libraries = Depends(get_libraries),
):
    spec = find_conductor(code, libraries.conductors)
    if spec is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conductor '{code}' not found",
        )
    return conductor_to_dict(spec)


@router.get(
    "/transformer-library",
    response_model=list[TransformerImpedanceResponse],
    summary="List transformer impedances",
    description="Return the default impedance (%Z) by transformer rating.",
)
async def list_transformers(libraries: Libraries = Depends(get_libraries)):
    return get_transformer_library(libraries.transformer_table)


@router.get("/grid-codes", response_model=GridCodeListResponse)
async def list_grid_codes():
    """List the voltage/thermal limit profiles available for alerts."""
    return GridCodeListResponse(profiles=list_profiles())


@router.get("/demo-network", response_model=DemoNetworkResponse)
async def get_demo_network():
    """The editor's Demo 1 network (132/11 kV, two loads)."""
    return demo_network()

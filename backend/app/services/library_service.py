"""Static library tables loaded once at startup.

The built-in SANS tables are used unless a settings path points at a
regional replacement. Tables are read-only after loading and shared by all
requests.
"""

import logging
from dataclasses import dataclass
from typing import Mapping

from fastapi import Request

from app.config import Settings
from engine.network.conductor_library import (
    CONDUCTOR_LIBRARY,
    ConductorSpec,
    load_conductor_library,
)
from engine.network.transformer_model import (
    TRANSFORMER_IMPEDANCE,
    load_transformer_impedance_table,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Libraries:
    conductors: Mapping[str, ConductorSpec]
    transformer_table: Mapping[float, float]


def load_libraries(settings: Settings) -> Libraries:
    """Read the configured tables, falling back to the built-in ones.

    Raises:
        OSError / ValueError: if a configured file is missing or malformed.
            A bad regional table should stop startup rather than silently
            analyze with the wrong standard.
    """
    conductors: Mapping[str, ConductorSpec] = CONDUCTOR_LIBRARY
    if settings.conductor_library_path:
        conductors = load_conductor_library(settings.conductor_library_path)
        logger.info(
            "Loaded %d conductor(s) from %s", len(conductors), settings.conductor_library_path
        )

    transformer_table: Mapping[float, float] = TRANSFORMER_IMPEDANCE
    if settings.transformer_table_path:
        transformer_table = load_transformer_impedance_table(settings.transformer_table_path)
        logger.info(
            "Loaded %d transformer rating(s) from %s",
            len(transformer_table), settings.transformer_table_path,
        )

    return Libraries(conductors=conductors, transformer_table=transformer_table)


def get_libraries(request: Request) -> Libraries:
    """FastAPI dependency: the tables loaded in the app lifespan."""
    return request.app.state.libraries

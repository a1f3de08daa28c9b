from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1 import analysis, libraries
from app.core.logging import RequestLoggingMiddleware, setup_logging
from app.services.library_service import load_libraries


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    app.state.libraries = load_libraries(settings)
    yield


def create_app() -> FastAPI:
    setup_logging(json_format=settings.log_json, debug=settings.debug)

    application = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(RequestLoggingMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(analysis.router, prefix="/api/v1", tags=["analysis"])
    application.include_router(libraries.router, prefix="/api/v1", tags=["libraries"])

    @application.get("/health")
    async def health_check() -> dict:
        libs = getattr(application.state, "libraries", None)
        return {
            "status": "ok" if libs is not None else "starting",
            "services": {
                "conductors": len(libs.conductors) if libs else 0,
                "transformer_ratings": len(libs.transformer_table) if libs else 0,
            },
        }

    return application


app = create_app()

"""FastAPI server for Logistics Sync.

Exposes on-demand sync triggers next to the scheduled Temporal runs.
Run with: uvicorn api.server:app
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import health, logistics
from connectors.hillebrand.hb_errors import PersistenceError
from core import __version__
from core.config import HillebrandSettings
from core.observability.logging import get_logger
from storage.logistics_db import init_logistics_db


logger = get_logger(__name__)


def _cors_origins() -> List[str]:
    raw = os.getenv("LOGISTICS_API_CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the logistics tables before serving requests."""
    settings = HillebrandSettings.from_env()
    init_logistics_db(settings.db_path)
    logger.info("Logistics Sync API starting up", extra_fields={"db_path": str(settings.db_path)})

    yield

    logger.info("Logistics Sync API shutting down")


async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Logistics store failure", extra_fields={"path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=500, content={"detail": f"Logistics store error: {exc}"})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Logistics Sync API",
        description="Triggers and inspects Hillebrand shipment, document and invoice synchronization",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PersistenceError, persistence_error_handler)

    app.include_router(health.router, tags=["Health"])
    app.include_router(logistics.router, prefix="/logistics", tags=["Logistics"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000)

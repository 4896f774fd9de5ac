"""Health check endpoints."""

import sqlite3
from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Response
from pydantic import BaseModel

from core import __version__
from core.config import HillebrandSettings


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


def _storage_status(settings: HillebrandSettings) -> str:
    try:
        conn = sqlite3.connect(settings.db_path)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    except sqlite3.Error:
        return "down"
    return "up"


def _credentials_status(settings: HillebrandSettings) -> str:
    required = (settings.client_id, settings.client_secret, settings.username, settings.password)
    return "configured" if all(v and v.strip() for v in required) else "not_configured"


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    settings = HillebrandSettings.from_env()
    services = {
        "api": "up",
        "storage": _storage_status(settings),
        "hillebrand": _credentials_status(settings),
    }
    return HealthResponse(
        status="healthy" if services["storage"] == "up" else "degraded",
        timestamp=datetime.utcnow().isoformat(),
        version=__version__,
        services=services,
    )


@router.get("/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """Readiness probe: storage reachable and credentials configured."""
    settings = HillebrandSettings.from_env()
    if _storage_status(settings) != "up" or _credentials_status(settings) != "configured":
        response.status_code = 503
        return {"status": "not_ready"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}

"""API Routes Package."""

from api.routes import health, logistics

__all__ = [
    "health",
    "logistics",
]

"""API Package.

FastAPI server for triggering Hillebrand logistics syncs.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]

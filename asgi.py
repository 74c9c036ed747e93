"""
asgi.py -- Server entry point for the LukaMath portal API.

Configures process-wide logging, then exposes the FastAPI app. Library
modules only ever call logging.getLogger(); this is the one place that
decides format and level.

Run with:  uvicorn asgi:app --reload
"""

import logging

from core.config import get_settings

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

from api.main import app  # noqa: E402

__all__ = ["app"]

"""
Routers Package
===============

Routers are like the reception desk - they direct incoming requests
to the right place.
"""

from .data import router as data_router
from .analyze import router as analyze_router
from .deps import get_ingestion_service

__all__ = [
    "data_router",
    "analyze_router",
    "get_ingestion_service",
]

"""
FastAPI Dependencies

The external-service clients are built once in the lifespan handler and
kept on app.state; these accessors hand them to the routes. Tests swap them
through app.dependency_overrides.
"""

from fastapi import Request

from image_transformation.core.storage import IStorage
from image_transformation.pipeline.stages import BackgroundRemovalClient


def get_storage(request: Request) -> IStorage:
    """Media store client - ready for FastAPI Depends()."""
    return request.app.state.storage


def get_background_remover(request: Request) -> BackgroundRemovalClient:
    """Background-removal client - ready for FastAPI Depends()."""
    return request.app.state.background_remover

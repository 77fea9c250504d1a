"""
API Router Module

All image endpoints are prefixed with /api/
"""

from fastapi import APIRouter

from image_transformation.api.images import router as images_router

api_router = APIRouter(prefix="/api")

api_router.include_router(images_router, prefix="/images", tags=["images"])

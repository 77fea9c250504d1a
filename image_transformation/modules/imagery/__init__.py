"""
Imagery Module

Request and response schemas for the image endpoints.
"""

from image_transformation.modules.imagery.schemas import (
    ApiResponse,
    DeleteResult,
    ProcessedImageRef,
    StoredImage,
    UploadRequest,
)

__all__ = ["ApiResponse", "DeleteResult", "ProcessedImageRef", "StoredImage", "UploadRequest"]

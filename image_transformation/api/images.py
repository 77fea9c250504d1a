"""
Image Endpoints

POST   /api/images       - Upload image, remove background, flip, store
DELETE /api/images/{id}  - Remove image from the media store by storage key
"""

from typing import Union

from fastapi import APIRouter, Depends, File, UploadFile

from image_transformation.api.dependencies import get_background_remover, get_storage
from image_transformation.api.upload import read_upload
from image_transformation.core.logging import get_logger
from image_transformation.core.storage import IStorage
from image_transformation.modules.imagery.schemas import (
    ApiResponse,
    DeleteResult,
    ProcessedImageRef,
)
from image_transformation.pipeline.orchestrator import delete_image, process_image
from image_transformation.pipeline.stages import BackgroundRemovalClient

logger = get_logger(__name__)
router = APIRouter()


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse[ProcessedImageRef],
    response_model_exclude_none=True
)
async def upload_image(
    image: Union[UploadFile, str, None] = File(None),
    remover: BackgroundRemovalClient = Depends(get_background_remover),
    storage: IStorage = Depends(get_storage)
):
    """
    Upload an image for processing.

    Flow:
    1. Validate type and size, read into memory
    2. Remove background (Clipdrop)
    3. Flip horizontally
    4. Upload to the media store, return its public URL and id
    """
    upload = await read_upload(image)
    logger.info("upload_received", filename=upload.filename, content_type=upload.content_type)

    ref = await process_image(upload, remover, storage)
    return ApiResponse[ProcessedImageRef].ok(ref)


@router.delete(
    "/{image_id:path}",
    response_model=ApiResponse[DeleteResult],
    response_model_exclude_none=True
)
async def remove_image(
    image_id: str,
    storage: IStorage = Depends(get_storage)
):
    """Delete an image. Unknown ids succeed, so the call is idempotent."""
    await delete_image(image_id, storage)
    return ApiResponse[DeleteResult].ok(DeleteResult(message="Image deleted successfully"))

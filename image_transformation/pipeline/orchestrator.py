"""
Upload and Delete Orchestration

Upload runs three steps in strict sequence, each awaiting the previous one:
background removal -> horizontal flip -> media store upload. The first
failure aborts the rest; nothing is retried.
"""

from urllib.parse import unquote

from starlette.concurrency import run_in_threadpool

from image_transformation.core.exceptions import (
    ImageServiceError,
    StorageError,
    ValidationError,
    error_message,
)
from image_transformation.core.logging import get_logger
from image_transformation.core.metrics import record_image_deleted, record_image_processed
from image_transformation.core.storage import IStorage
from image_transformation.modules.imagery.schemas import ProcessedImageRef, UploadRequest
from image_transformation.pipeline.stages import BackgroundRemovalClient, flip_horizontal

logger = get_logger(__name__)

PROCESS_FALLBACK_ERROR = "Failed to process image"
DELETE_FALLBACK_ERROR = "Failed to delete image"


async def process_image(
    request: UploadRequest,
    remover: BackgroundRemovalClient,
    storage: IStorage
) -> ProcessedImageRef:
    """
    Remove the background, flip, and store an uploaded image.

    Raises:
        ImageServiceError: from whichever step failed; foreign exceptions are
            wrapped so the message (or a generic fallback) reaches the client.
    """
    stage = "remove_background"
    logger.info("process_image_started", filename=request.filename, size=len(request.content))

    try:
        bg_removed = await remover.remove_background(request.content)

        stage = "flip"
        flipped = await run_in_threadpool(flip_horizontal, bg_removed)

        stage = "upload"
        stored = await storage.upload(flipped, request.filename)

    except ImageServiceError as e:
        record_image_processed("failed", failure_stage=e.stage or stage)
        e.message = error_message(e, PROCESS_FALLBACK_ERROR)
        raise
    except Exception as e:
        record_image_processed("failed", failure_stage=stage)
        logger.exception("process_image_unexpected_error", stage=stage, error_type=type(e).__name__)
        raise ImageServiceError(error_message(e, PROCESS_FALLBACK_ERROR), stage=stage) from e

    record_image_processed("completed")
    logger.info("process_image_completed", public_id=stored.public_id)

    return ProcessedImageRef(
        id=stored.public_id,
        url=stored.url,
        original_name=request.filename
    )


async def delete_image(raw_id: str, storage: IStorage) -> bool:
    """
    Delete an image by its (percent-encoded) storage key.

    The id is decoded exactly once. A key the store no longer knows is
    treated as already deleted.
    """
    storage_key = unquote(raw_id or "")
    if not storage_key:
        raise ValidationError("Image ID is required")

    try:
        deleted = await storage.delete(storage_key)
    except ImageServiceError as e:
        record_image_deleted("error")
        e.message = error_message(e, DELETE_FALLBACK_ERROR)
        raise
    except Exception as e:
        record_image_deleted("error")
        logger.exception("delete_image_unexpected_error", public_id=storage_key, error_type=type(e).__name__)
        raise StorageError(error_message(e, DELETE_FALLBACK_ERROR), stage="delete") from e

    record_image_deleted("deleted" if deleted else "not_found")
    return deleted

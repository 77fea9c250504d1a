"""
Upload Validation

Checks a multipart upload before it reaches the pipeline: the MIME type must
be on the allow-list and the file must fit under the size limit. The file is
read into memory; nothing is written to disk.
"""

from typing import Iterable, Optional, Union

from starlette.datastructures import UploadFile

from image_transformation.core.config import settings
from image_transformation.core.exceptions import ValidationError
from image_transformation.modules.imagery.schemas import UploadRequest

INVALID_TYPE_MESSAGE = "Invalid file type. Only JPEG, PNG, and WebP are allowed."
MISSING_FILE_MESSAGE = "No image file provided"


def check_content_type(content_type: Optional[str], allowed_types: Iterable[str]) -> None:
    if content_type not in set(allowed_types):
        raise ValidationError(INVALID_TYPE_MESSAGE, details={"content_type": content_type})


async def read_upload(
    file: Union[UploadFile, str, None],
    allowed_types: Optional[Iterable[str]] = None,
    max_size_bytes: Optional[int] = None
) -> UploadRequest:
    """
    Validate and read an uploaded image.

    Raises:
        ValidationError: missing file, disallowed type, or oversized file
    """
    # An empty file input or a plain text field under the same name is not a file
    if not isinstance(file, UploadFile) or not file.filename:
        raise ValidationError(MISSING_FILE_MESSAGE)

    allowed_types = settings.allowed_image_types if allowed_types is None else allowed_types
    max_size_bytes = settings.MAX_IMAGE_SIZE_BYTES if max_size_bytes is None else max_size_bytes

    check_content_type(file.content_type, allowed_types)

    # Read one byte past the limit so oversize files are caught without
    # buffering them whole
    content = await file.read(max_size_bytes + 1)
    if len(content) > max_size_bytes:
        max_size_mb = max_size_bytes / (1024 * 1024)
        raise ValidationError(
            f"File too large. Maximum size is {max_size_mb:.0f}MB.",
            details={"max_size_bytes": max_size_bytes}
        )

    return UploadRequest(
        content=content,
        filename=file.filename,
        content_type=file.content_type
    )

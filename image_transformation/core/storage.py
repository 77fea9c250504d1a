"""
Storage Abstraction Layer - The Bridge Pattern

Provides a clean interface for media store operations. CloudinaryStorage is
the production implementation; orchestrators and tests depend on IStorage.
"""

import io
import re
import time
import threading
from abc import ABC, abstractmethod
from typing import Optional

import cloudinary.exceptions
import cloudinary.uploader
from starlette.concurrency import run_in_threadpool

from image_transformation.core.config import Settings
from image_transformation.core.exceptions import ConfigurationError, StorageError
from image_transformation.core.logging import get_logger
from image_transformation.modules.imagery.schemas import StoredImage

logger = get_logger(__name__)

DEFAULT_FOLDER = "image-transformation"
PUBLIC_ID_PREFIX = "processed"

# Only the last dot-delimited suffix; dots inside the stem survive
_EXTENSION_RE = re.compile(r"\.[^/.]+$")


def strip_extension(filename: str) -> str:
    """
    Drop the final extension of a filename.

    >>> strip_extension("my.image.name.png")
    'my.image.name'
    """
    return _EXTENSION_RE.sub("", filename)


class IStorage(ABC):
    """Interface for media store operations - The Bridge"""

    @abstractmethod
    async def upload(self, file_data: bytes, filename: str) -> StoredImage:
        """
        Upload an image under a freshly generated key.

        Args:
            file_data: Raw bytes of the image
            filename: Original filename, used to derive the key

        Returns:
            Public URL and final storage key
        """

    @abstractmethod
    async def delete(self, storage_key: str) -> bool:
        """
        Delete an image by storage key.

        Returns:
            True if something was deleted, False if the key was already absent
        """


class CloudinaryStorage(IStorage):
    """Cloudinary-backed media store with CDN delivery."""

    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
        folder: str = DEFAULT_FOLDER
    ):
        if not cloud_name or not api_key or not api_secret:
            raise ConfigurationError("Cloudinary credentials are not configured")

        self.cloud_name = cloud_name
        self.folder = folder
        self._api_key = api_key
        self._api_secret = api_secret
        self._last_timestamp = 0
        self._timestamp_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryStorage":
        return cls(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            folder=settings.CLOUDINARY_FOLDER,
        )

    def _credentials(self) -> dict:
        # Passed per call so the SDK's module-level config is never touched
        return {
            "cloud_name": self.cloud_name,
            "api_key": self._api_key,
            "api_secret": self._api_secret,
        }

    def _next_timestamp(self) -> int:
        """Millisecond timestamp, strictly increasing within this process."""
        with self._timestamp_lock:
            now = int(time.time() * 1000)
            self._last_timestamp = max(now, self._last_timestamp + 1)
            return self._last_timestamp

    def generate_public_id(self, filename: str) -> str:
        return f"{PUBLIC_ID_PREFIX}_{self._next_timestamp()}_{strip_extension(filename)}"

    def _upload_sync(self, file_data: bytes, public_id: str) -> StoredImage:
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(file_data),
                folder=self.folder,
                public_id=public_id,
                resource_type="image",
                **self._credentials()
            )
        except cloudinary.exceptions.Error as e:
            raise StorageError(str(e) or "Upload failed", stage="upload")

        if not result:
            raise StorageError("Upload failed with no result", stage="upload")

        return StoredImage(url=result["secure_url"], public_id=result["public_id"])

    async def upload(self, file_data: bytes, filename: str) -> StoredImage:
        public_id = self.generate_public_id(filename)
        logger.info("cloudinary_upload_starting", public_id=public_id, folder=self.folder, size=len(file_data))

        stored = await run_in_threadpool(self._upload_sync, file_data, public_id)

        logger.info("cloudinary_upload_completed", public_id=stored.public_id)
        return stored

    def _delete_sync(self, storage_key: str) -> bool:
        try:
            result = cloudinary.uploader.destroy(
                storage_key,
                invalidate=True,
                **self._credentials()
            )
        except cloudinary.exceptions.NotFound:
            return False
        except cloudinary.exceptions.Error as e:
            raise StorageError(str(e) or "Delete failed", stage="delete")

        outcome = (result or {}).get("result")
        if outcome == "not found":
            return False
        return True

    async def delete(self, storage_key: str) -> bool:
        deleted = await run_in_threadpool(self._delete_sync, storage_key)
        if deleted:
            logger.info("cloudinary_delete_completed", public_id=storage_key)
        else:
            logger.info("cloudinary_delete_not_found", public_id=storage_key)
        return deleted

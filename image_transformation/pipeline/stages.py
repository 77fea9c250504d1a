"""
Pipeline Stage Implementations

Each stage is a separate unit that can be called independently:

1. Background removal - Clipdrop remove-background API
2. Horizontal flip - Pillow, re-encoded as PNG
"""

import io
import json
from typing import Optional

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from image_transformation.core.config import Settings
from image_transformation.core.exceptions import (
    ConfigurationError,
    ProcessingError,
    RemoteServiceError,
    TransportError,
)
from image_transformation.core.logging import get_logger, with_logging
from image_transformation.core.metrics import track_stage_latency

logger = get_logger(__name__)

CLIPDROP_API_URL = "https://clipdrop-api.co/remove-background/v1"
DEFAULT_REMOVE_BG_ERROR = "Background removal failed"
OUTPUT_FORMAT = "PNG"

# Modes Pillow can write straight to PNG
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


# =============================================================================
# Stage 1: Background Removal (Clipdrop)
# =============================================================================

class BackgroundRemovalClient:
    """Thin client for the Clipdrop remove-background endpoint."""

    service = "clipdrop"

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = CLIPDROP_API_URL,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackgroundRemovalClient":
        return cls(
            api_key=settings.CLIPDROP_API_KEY,
            api_url=settings.CLIPDROP_API_URL,
            timeout_seconds=settings.REMOVE_BG_TIMEOUT_SECONDS,
        )

    @staticmethod
    def _parse_error(body: bytes) -> str:
        """Pull the upstream `error` text out of a JSON error payload."""
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return DEFAULT_REMOVE_BG_ERROR

        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, str) and error:
                return error
        return DEFAULT_REMOVE_BG_ERROR

    @with_logging("remove_background")
    async def remove_background(self, image_bytes: bytes) -> bytes:
        """
        Send an image to Clipdrop and return the background-free result.

        Raises:
            ConfigurationError: no API key configured
            RemoteServiceError: upstream answered with a non-200 status
            TransportError: upstream could not be reached
        """
        if not self.api_key:
            raise ConfigurationError("CLIPDROP_API_KEY is not configured", stage="remove_background")

        files = {"image_file": ("image.png", image_bytes, "application/octet-stream")}
        headers = {"x-api-key": self.api_key}

        with track_stage_latency("remove_background"):
            try:
                async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                    response = await client.post(self.api_url, files=files, headers=headers)
            except httpx.TransportError as e:
                raise TransportError(str(e), service=self.service, stage="remove_background")

            if response.status_code != 200:
                message = self._parse_error(response.content)
                logger.warning(
                    "remove_background_rejected",
                    http_status=response.status_code,
                    error=message
                )
                raise RemoteServiceError(
                    message,
                    service=self.service,
                    http_status=response.status_code,
                    stage="remove_background"
                )

        logger.info(
            "remove_background_completed",
            input_size=len(image_bytes),
            output_size=len(response.content)
        )
        return response.content


# =============================================================================
# Stage 2: Horizontal Flip (Pillow)
# =============================================================================

@with_logging("flip")
def flip_horizontal(image_bytes: bytes) -> bytes:
    """
    Mirror an image across its vertical axis.

    Accepts any format Pillow can decode; always returns PNG bytes.
    Transparency is kept.
    """
    with track_stage_latency("flip"):
        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ProcessingError(f"Invalid image data: {e}", stage="flip")

        if image.mode not in _PNG_MODES:
            image = image.convert("RGBA")

        try:
            flipped = ImageOps.mirror(image)
            output_buffer = io.BytesIO()
            flipped.save(output_buffer, format=OUTPUT_FORMAT)
        except (OSError, ValueError) as e:
            raise ProcessingError(f"Failed to encode image: {e}", stage="flip")

    return output_buffer.getvalue()

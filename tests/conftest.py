import io
import os
from typing import AsyncGenerator, List, Optional
from unittest.mock import AsyncMock

# Settings are read at import time; give the app credentials before it loads
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "test-cloud")
os.environ.setdefault("CLOUDINARY_API_KEY", "test-api-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-api-secret")
os.environ.setdefault("CLIPDROP_API_KEY", "test-clipdrop-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_FORMAT_JSON"] = "false"

import pytest
from httpx import AsyncClient, ASGITransport
from PIL import Image

from image_transformation.main import app
from image_transformation.api.dependencies import get_background_remover, get_storage
from image_transformation.core.storage import IStorage, strip_extension
from image_transformation.modules.imagery.schemas import StoredImage


def make_image_bytes(fmt: str = "PNG", size=(4, 2), mode: str = "RGBA") -> bytes:
    """Small test image whose left column is red and the rest blue."""
    color = (0, 0, 255, 255) if mode == "RGBA" else (0, 0, 255)
    image = Image.new(mode, size, color)
    red = (255, 0, 0, 255) if mode == "RGBA" else (255, 0, 0)
    for y in range(size[1]):
        image.putpixel((0, y), red)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


class FakeStorage(IStorage):
    """In-memory media store recording every call."""

    def __init__(self):
        self.uploads: List[tuple] = []
        self.deleted: List[str] = []
        self.known_ids = set()
        self.upload_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None

    async def upload(self, file_data: bytes, filename: str) -> StoredImage:
        if self.upload_error:
            raise self.upload_error
        public_id = f"image-transformation/processed_1_{strip_extension(filename)}"
        self.uploads.append((file_data, filename))
        self.known_ids.add(public_id)
        return StoredImage(url=f"https://res.cloudinary.com/test/{public_id}.png", public_id=public_id)

    async def delete(self, storage_key: str) -> bool:
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(storage_key)
        if storage_key in self.known_ids:
            self.known_ids.discard(storage_key)
            return True
        return False


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def fake_remover(png_bytes):
    remover = AsyncMock()
    remover.remove_background.return_value = png_bytes
    return remover


@pytest.fixture
async def client(fake_storage, fake_remover) -> AsyncGenerator[AsyncClient, None]:
    # Trigger lifespan events (startup/shutdown)
    async with app.router.lifespan_context(app):
        app.dependency_overrides[get_storage] = lambda: fake_storage
        app.dependency_overrides[get_background_remover] = lambda: fake_remover
        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                yield ac
        finally:
            app.dependency_overrides.clear()


@pytest.fixture
def image_factory():
    return make_image_bytes

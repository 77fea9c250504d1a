import io

import pytest
from PIL import Image

from image_transformation.core.exceptions import (
    ImageServiceError,
    ProcessingError,
    RemoteServiceError,
    StorageError,
    ValidationError,
)
from image_transformation.modules.imagery.schemas import UploadRequest
from image_transformation.pipeline.orchestrator import delete_image, process_image


@pytest.fixture
def upload_request():
    return UploadRequest(content=b"original-bytes", filename="my.image.name.png", content_type="image/png")


# =============================================================================
# Upload pipeline
# =============================================================================

@pytest.mark.asyncio
async def test_process_image_runs_all_steps(upload_request, fake_remover, fake_storage):
    ref = await process_image(upload_request, fake_remover, fake_storage)

    fake_remover.remove_background.assert_awaited_once_with(b"original-bytes")
    assert len(fake_storage.uploads) == 1

    uploaded, filename = fake_storage.uploads[0]
    assert filename == "my.image.name.png"
    flipped = Image.open(io.BytesIO(uploaded))
    assert flipped.format == "PNG"
    assert flipped.getpixel((3, 0)) == (255, 0, 0, 255)

    assert ref.id == "image-transformation/processed_1_my.image.name"
    assert ref.url.startswith("https://")
    assert ref.original_name == "my.image.name.png"
    assert ref.model_dump(by_alias=True)["originalName"] == "my.image.name.png"


@pytest.mark.asyncio
async def test_remove_background_failure_stops_pipeline(upload_request, fake_remover, fake_storage):
    fake_remover.remove_background.side_effect = RemoteServiceError(
        "Invalid API key", service="clipdrop", http_status=401
    )

    with pytest.raises(RemoteServiceError, match="Invalid API key"):
        await process_image(upload_request, fake_remover, fake_storage)

    assert fake_storage.uploads == []


@pytest.mark.asyncio
async def test_flip_failure_stops_pipeline(upload_request, fake_remover, fake_storage):
    fake_remover.remove_background.return_value = b"not an image"

    with pytest.raises(ProcessingError):
        await process_image(upload_request, fake_remover, fake_storage)

    assert fake_storage.uploads == []


@pytest.mark.asyncio
async def test_upload_failure_surfaces_message(upload_request, fake_remover, fake_storage):
    fake_storage.upload_error = StorageError("Upload failed")

    with pytest.raises(StorageError, match="Upload failed"):
        await process_image(upload_request, fake_remover, fake_storage)


@pytest.mark.asyncio
async def test_foreign_exception_message_is_kept(upload_request, fake_remover, fake_storage):
    fake_remover.remove_background.side_effect = RuntimeError("boom")

    with pytest.raises(ImageServiceError) as exc_info:
        await process_image(upload_request, fake_remover, fake_storage)

    assert exc_info.value.message == "boom"
    assert exc_info.value.code == 500


@pytest.mark.asyncio
async def test_exception_without_message_uses_fallback(upload_request, fake_remover, fake_storage):
    fake_storage.upload_error = RuntimeError()

    with pytest.raises(ImageServiceError) as exc_info:
        await process_image(upload_request, fake_remover, fake_storage)

    assert exc_info.value.message == "Failed to process image"
    assert exc_info.value.stage == "upload"


# =============================================================================
# Delete
# =============================================================================

@pytest.mark.asyncio
async def test_delete_decodes_id_once(fake_storage):
    await delete_image("image-transformation%2Ftest-image", fake_storage)

    assert fake_storage.deleted == ["image-transformation/test-image"]


@pytest.mark.asyncio
async def test_delete_leaves_second_encoding_level(fake_storage):
    await delete_image("folder%252Fimage", fake_storage)

    assert fake_storage.deleted == ["folder%2Fimage"]


@pytest.mark.asyncio
async def test_delete_unknown_id_succeeds(fake_storage):
    assert await delete_image("never-uploaded", fake_storage) is False


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_id", ["", None])
async def test_delete_rejects_empty_id(fake_storage, raw_id):
    with pytest.raises(ValidationError, match="Image ID is required"):
        await delete_image(raw_id, fake_storage)

    assert fake_storage.deleted == []


@pytest.mark.asyncio
async def test_delete_store_failure_surfaces_message(fake_storage):
    fake_storage.delete_error = StorageError("Delete failed")

    with pytest.raises(StorageError, match="Delete failed"):
        await delete_image("test-id", fake_storage)


@pytest.mark.asyncio
async def test_delete_failure_without_message_uses_fallback(fake_storage):
    fake_storage.delete_error = ConnectionError()

    with pytest.raises(StorageError) as exc_info:
        await delete_image("test-id", fake_storage)

    assert exc_info.value.message == "Failed to delete image"

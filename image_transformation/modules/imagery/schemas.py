"""
Imagery Schemas

Request-scoped data carried through the upload pipeline and the
ApiResponse envelope every endpoint answers with.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")


class UploadRequest(BaseModel):
    """An uploaded image, alive only for the duration of one request."""
    content: bytes = Field(..., repr=False)
    filename: str
    content_type: str = "application/octet-stream"


class StoredImage(BaseModel):
    """What the media store hands back after an upload."""
    url: str
    public_id: str


class ProcessedImageRef(BaseModel):
    """Reference to a processed image living in the media store."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Storage key (public ID) for later deletion")
    url: str = Field(..., description="Public CDN URL")
    original_name: str = Field(..., alias="originalName")


class DeleteResult(BaseModel):
    message: str


class ApiResponse(BaseModel, Generic[T]):
    """
    Uniform response envelope.

    Exactly one of ``data`` / ``error`` is set, matching ``success``.
    """
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def check_payload(self):
        if self.success and self.error is not None:
            raise ValueError("successful response cannot carry an error")
        if not self.success and (self.error is None or self.data is not None):
            raise ValueError("failed response must carry only an error")
        return self

    @classmethod
    def ok(cls, data: T) -> "ApiResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ApiResponse[T]":
        return cls(success=False, error=error)

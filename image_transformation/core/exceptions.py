"""
Global Exception Handling

Domain exceptions for the image pipeline and the FastAPI handlers that
render every failure in the uniform ApiResponse shape.
"""

import traceback
from typing import Optional, Dict, Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from image_transformation.core.logging import get_logger
from image_transformation.modules.imagery.schemas import ApiResponse

logger = get_logger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================

class ImageServiceError(Exception):
    """Base exception for the image transformation service."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ImageServiceError):
    """Raised when a required credential or setting is missing."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=500, **kwargs)


class ValidationError(ImageServiceError):
    """Raised when request input validation fails."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class RemoteServiceError(ImageServiceError):
    """Raised when an upstream API answers with a non-success status."""

    def __init__(self, message: str, service: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, code=500, **kwargs)
        self.details["service"] = service
        self.details["http_status"] = http_status


class TransportError(ImageServiceError):
    """Raised when an upstream API cannot be reached (network, timeout)."""

    def __init__(self, message: str, service: str, **kwargs):
        super().__init__(message, code=500, **kwargs)
        self.details["service"] = service


class ProcessingError(ImageServiceError):
    """Raised when image data cannot be decoded or re-encoded."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=500, **kwargs)


class StorageError(ImageServiceError):
    """Raised when media store operations fail."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=500, **kwargs)


def error_message(exc: BaseException, fallback: str) -> str:
    """Text of an exception, or the fallback when it carries none."""
    if isinstance(exc, ImageServiceError):
        message = exc.message
    else:
        message = str(exc)
    return message if message and message.strip() else fallback


def error_response(message: str, status_code: int, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Build a failed ApiResponse."""
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse.fail(message).model_dump(exclude_none=True),
        headers=headers,
    )


# =============================================================================
# Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(ImageServiceError)
    async def image_service_exception_handler(request: Request, exc: ImageServiceError):
        log = logger.warning if exc.code < 500 else logger.error
        log(
            "request_failed",
            error=exc.message,
            error_type=type(exc).__name__,
            code=exc.code,
            stage=exc.stage,
            details=exc.details,
            path=str(request.url.path)
        )
        return error_response(exc.message, exc.code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail), exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        logger.warning("request_validation_failed", error=message, path=str(request.url.path))
        return error_response(message, 400)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )
        return error_response("Internal server error", 500)

"""
Image Transformation Service - Main Application

FastAPI application that removes the background of an uploaded image,
flips it horizontally and stores the result on a CDN-backed media host:
- Structured logging with structlog
- Prometheus metrics
- Global exception handling (uniform ApiResponse errors)
- Per-client rate limiting on the image routes
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from image_transformation.core.config import Settings, settings
from image_transformation.core.logging import setup_logging, get_logger, LogContext
from image_transformation.core.exceptions import register_exception_handlers
from image_transformation.core.metrics import set_app_info, http_requests_total, http_request_duration_seconds
from image_transformation.core.storage import CloudinaryStorage
from image_transformation.api import api_router
from image_transformation.api.metrics import router as metrics_router
from image_transformation.api.rate_limit import RateLimitMiddleware
from image_transformation.pipeline.stages import BackgroundRemovalClient


# =============================================================================
# Initialize Logging
# =============================================================================
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.LOG_FORMAT_JSON
)
logger = get_logger(__name__)

# =============================================================================
# Lifespan Handler
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - startup and shutdown.

    Builds the external-service clients once from the app's settings.
    Missing media store credentials abort startup.
    """
    app_settings: Settings = app.state.settings
    logger.info(
        "application_starting",
        app_name=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        environment=app_settings.ENVIRONMENT
    )

    app.state.storage = CloudinaryStorage.from_settings(app_settings)
    logger.info("media_store_initialized", cloud_name=app_settings.CLOUDINARY_CLOUD_NAME)

    app.state.background_remover = BackgroundRemovalClient.from_settings(app_settings)
    if not app_settings.CLIPDROP_API_KEY:
        logger.warning("clipdrop_api_key_missing", message="Uploads will fail until CLIPDROP_API_KEY is set")

    set_app_info(
        version=app_settings.APP_VERSION,
        environment=app_settings.ENVIRONMENT
    )

    logger.info("application_ready", port=app_settings.PORT)

    yield

    logger.info("application_shutdown_complete")


# =============================================================================
# Request id + timing middleware
# =============================================================================
async def add_request_context(request: Request, call_next):
    """Tag logs with a request id and track request timing for metrics."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    start_time = time.time()

    with LogContext(request_id=request_id):
        response = await call_next(request)

    duration = time.time() - start_time

    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)

    http_request_duration_seconds.labels(
        method=request.method,
        endpoint=endpoint
    ).observe(duration)

    http_requests_total.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code
    ).inc()

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(duration)

    return response


# =============================================================================
# Create FastAPI Application
# =============================================================================
def create_app(app_settings: Settings = settings) -> FastAPI:
    """Build the application and wire middleware from `app_settings`."""
    app = FastAPI(
        title=app_settings.APP_NAME,
        description="""
        Image transformation API:

        1. **Background Removal** - Clipdrop remove-background API
        2. **Horizontal Flip** - mirrored and re-encoded as PNG
        3. **Storage** - Cloudinary, served from its CDN

        Every endpoint answers `{success, data}` or `{success: false, error}`.
        """,
        version=app_settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.settings = app_settings

    # Rate limiting (image routes only)
    app.add_middleware(
        RateLimitMiddleware,
        path_prefix="/api/images",
        max_requests=app_settings.RATE_LIMIT_REQUESTS,
        window_seconds=app_settings.RATE_LIMIT_WINDOW_SECONDS,
        enabled=app_settings.RATE_LIMIT_ENABLED
    )

    # CORS wraps the rate limiter so 429 responses carry CORS headers too
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[app_settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(add_request_context)

    register_exception_handlers(app)

    app.include_router(api_router)
    app.include_router(metrics_router, tags=["metrics"])

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "environment": app_settings.ENVIRONMENT,
            "docs": "/api/docs",
            "images": "/api/images",
            "metrics": "/metrics"
        }

    @app.get("/health", tags=["health"])
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app(settings)


# =============================================================================
# Development Server
# =============================================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "image_transformation.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )

"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Image Transformation Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD
    DEBUG: bool = False

    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # ==========================================================================
    # CORS Settings
    # ==========================================================================
    # Single origin, sent with Access-Control-Allow-Credentials
    FRONTEND_URL: str = "http://localhost:5173"

    # ==========================================================================
    # Media Store (Cloudinary)
    # ==========================================================================
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "image-transformation"

    # ==========================================================================
    # Background Removal (Clipdrop)
    # ==========================================================================
    CLIPDROP_API_KEY: Optional[str] = None
    CLIPDROP_API_URL: str = "https://clipdrop-api.co/remove-background/v1"
    REMOVE_BG_TIMEOUT_SECONDS: float = 30.0

    # ==========================================================================
    # Upload Limits
    # ==========================================================================
    MAX_IMAGE_SIZE_BYTES: int = 10485760  # 10MB
    ALLOWED_IMAGE_TYPES: str = "image/jpeg,image/png,image/webp"

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 20
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def allowed_image_types(self) -> List[str]:
        return [t.strip() for t in self.ALLOWED_IMAGE_TYPES.split(",") if t.strip()]


# Global settings instance
settings = Settings()

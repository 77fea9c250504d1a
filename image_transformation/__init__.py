"""Image Transformation Service - background removal, flip, CDN storage."""

__version__ = "1.0.0"

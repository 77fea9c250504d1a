"""
Image Processing Pipeline

Three sequential steps:
1. Background removal - Clipdrop API
2. Horizontal flip - Pillow, PNG output
3. Storage - Cloudinary
"""

"""
WebP recompression built on Pillow.
Resizes to fit inside the configured box (never upscaling) and re-encodes
at the configured quality.
"""

import io
import os

from PIL import Image, ImageOps

from backend.app.core.exceptions import TransformError
from backend.app.services.progress.models import TransformSettings


def _normalize_mode(image: Image.Image) -> Image.Image:
    """Convert modes the WebP encoder cannot take (P, LA, CMYK, I;16...)."""
    if image.mode in ("RGB", "RGBA"):
        return image

    has_alpha = (
        image.mode in ("LA", "PA")
        or (image.mode == "P" and "transparency" in image.info)
    )
    return image.convert("RGBA" if has_alpha else "RGB")


def compress_to_webp(image_path: str, settings: TransformSettings) -> bytes:
    """
    Load an image, shrink it into the bounding box and encode it as WebP.

    Args:
        image_path: Path to the source image
        settings: Target box and quality

    Returns:
        The encoded WebP bytes

    Raises:
        TransformError: If the image cannot be read or encoded
    """
    filename = os.path.basename(image_path)

    try:
        with Image.open(image_path) as source:
            image = ImageOps.exif_transpose(source)
            image = _normalize_mode(image)

            # thumbnail() keeps the aspect ratio and never enlarges
            image.thumbnail(
                (settings.max_width, settings.max_height),
                Image.Resampling.LANCZOS,
            )

            buffer = io.BytesIO()
            image.save(
                buffer,
                "WEBP",
                quality=settings.quality,
                alpha_quality=100,
            )
    except Exception as e:
        # Pillow raises a wide range of errors on broken input
        raise TransformError(filename, str(e)) from e

    return buffer.getvalue()

from backend.app.core.transform.selector import (
    RASTER_EXTENSIONS,
    should_transform,
    transformed_name,
)
from backend.app.core.transform.webp import compress_to_webp

__all__ = [
    "RASTER_EXTENSIONS",
    "should_transform",
    "transformed_name",
    "compress_to_webp",
]

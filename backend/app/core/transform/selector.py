import os

# Raster formats that get resized and re-encoded
RASTER_EXTENSIONS = (
    ".jpg",
    ".jpeg",
    ".png",
)

TRANSFORMED_EXTENSION = ".webp"


def should_transform(filename: str) -> bool:
    """True if the file is a raster image we recompress."""
    return os.path.splitext(filename)[1].lower() in RASTER_EXTENSIONS


def transformed_name(filename: str) -> str:
    """Name of the entry written for a transformed image."""
    return os.path.splitext(filename)[0] + TRANSFORMED_EXTENSION

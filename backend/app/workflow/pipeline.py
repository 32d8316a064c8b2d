import os
from typing import Optional, Set

from backend.app.core.exceptions import TransformError
from backend.app.core.transform import compress_to_webp, should_transform, transformed_name
from backend.app.logging_config import get_logger
from backend.app.services.archive import ArchiveProducer
from backend.app.services.progress.models import SourceFile, TransformSettings

logger = get_logger(__name__)


def unique_entry_name(name: str, used: Set[str]) -> str:
    """Return name, or "stem (n).ext" if an earlier entry already took it."""
    candidate = name
    stem, ext = os.path.splitext(name)
    n = 1
    while candidate in used:
        candidate = f"{stem} ({n}){ext}"
        n += 1
    used.add(candidate)
    return candidate


def process_single_file(
    source: SourceFile,
    settings: TransformSettings,
    producer: ArchiveProducer,
    used_names: Set[str],
) -> Optional[str]:
    """
    Process a single file:
    - Recompress it if it is an eligible image
    - Fall back to the original bytes if recompression fails
    - Append the result to the archive

    Returns the entry name written. Raises EntrySourceError if the
    original cannot be read at all.
    """

    # 1. Eligible images are recompressed
    if should_transform(source.original_name):
        try:
            data = compress_to_webp(source.stored_path, settings)
        except TransformError as e:
            logger.warning(f"[WARN] {e}. Including as is.")
        else:
            name = unique_entry_name(transformed_name(source.original_name), used_names)
            producer.append_entry(name, data)
            return name

    # 2. Everything else (and failed transforms) goes in unmodified
    name = unique_entry_name(source.original_name, used_names)
    try:
        producer.append_entry(name, source.stored_path)
    except Exception:
        used_names.discard(name)
        raise
    return name

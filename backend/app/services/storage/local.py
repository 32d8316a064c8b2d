"""
Local disk storage for uploaded originals and produced archives.
"""

import os
import re
import shutil
from typing import BinaryIO, Optional

from backend.app.logging_config import get_logger
from backend.app.services.progress.models import SourceFile

logger = get_logger(__name__)

ARCHIVE_EXTENSION = ".zip"
DEFAULT_ARCHIVE_PREFIX = "compressed_images_"


def sanitize_label(label: Optional[str]) -> str:
    """Keep only characters that are safe in a file name."""
    if not label:
        return ""
    label = label.strip()
    if label.lower().endswith(ARCHIVE_EXTENSION):
        label = label[: -len(ARCHIVE_EXTENSION)]
    # Sanitize filename (remove any path characters)
    safe_name = "".join(c for c in label if c.isalnum() or c in ("_", "-", " "))
    return safe_name.strip()


def archive_name(batch_id: str, label: Optional[str] = None) -> str:
    """Name the client sees when downloading the archive."""
    safe_name = sanitize_label(label)
    if safe_name:
        return f"{safe_name}{ARCHIVE_EXTENSION}"
    return f"{DEFAULT_ARCHIVE_PREFIX}{batch_id}{ARCHIVE_EXTENSION}"


def safe_basename(filename: str) -> str:
    """Strip directories and characters that do not belong in a stored name."""
    base = os.path.basename((filename or "").replace("\\", "/"))
    base = re.sub(r"[^\w.\- ]", "_", base).strip(". ")
    return base or "file"


class LocalStorageService:
    """Intake area for uploads plus output area for archives."""

    def __init__(self, upload_dir: str = "data/uploads", output_dir: str = "data/output"):
        self.upload_dir = upload_dir
        self.output_dir = output_dir
        os.makedirs(self.upload_dir, exist_ok=True)
        os.makedirs(self.output_dir, exist_ok=True)

    def save_upload(self, batch_id: str, index: int, filename: str, stream: BinaryIO) -> SourceFile:
        """
        Persist one uploaded file into the intake area.

        Stored names are prefixed with the batch id and position, so two
        batches (or two files in one batch) with the same name never clash.
        """
        original_name = os.path.basename((filename or "").replace("\\", "/")) or f"file_{index}"
        stored_name = f"{batch_id}_{index:04d}_{safe_basename(original_name)}"
        stored_path = os.path.join(self.upload_dir, stored_name)

        with open(stored_path, "wb") as buffer:
            shutil.copyfileobj(stream, buffer)

        return SourceFile(
            original_name=original_name,
            stored_path=stored_path,
            size=os.path.getsize(stored_path),
        )

    def archive_path(self, batch_id: str) -> str:
        """On-disk location of a batch's archive (independent of its label)."""
        return os.path.join(self.output_dir, f"{batch_id}{ARCHIVE_EXTENSION}")

    @staticmethod
    def delete_file(path: str) -> bool:
        """Delete one file, best effort. Returns True if something was removed."""
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"[WARN] Could not delete {path}: {e}")
            return False

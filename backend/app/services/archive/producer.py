"""
ZIP archive producer.

Entries are appended one at a time, either from an in-memory buffer or
streamed from a file on disk. A source that cannot be read raises
EntrySourceError before anything is written for that entry, so the
caller can skip it and keep going.
"""

import os
import shutil
import zipfile
from typing import Union

from backend.app.core.exceptions import ArchiveError, EntrySourceError
from backend.app.logging_config import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024

EntrySource = Union[bytes, bytearray, memoryview, str, os.PathLike]


class ArchiveProducer:
    """Streaming writer for one batch archive."""

    def __init__(self, path: str, compresslevel: int = 9):
        self.path = path
        self.compresslevel = compresslevel
        self.entries: list[str] = []
        self._zip = None

    @classmethod
    def open(cls, path: str, compresslevel: int = 9) -> "ArchiveProducer":
        producer = cls(path, compresslevel)
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            producer._zip = zipfile.ZipFile(
                path,
                mode="w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=compresslevel,
            )
        except OSError as e:
            raise ArchiveError(f"Cannot create archive: {e}", {"path": path}) from e
        return producer

    @property
    def is_open(self) -> bool:
        return self._zip is not None

    def append_entry(self, name: str, source: EntrySource) -> None:
        """Write one entry under exactly the given name."""
        if self._zip is None:
            raise ArchiveError("Archive is not open", {"path": self.path})

        if isinstance(source, (bytes, bytearray, memoryview)):
            try:
                self._zip.writestr(name, bytes(source))
            except OSError as e:
                raise ArchiveError(f"Write failed for {name}: {e}", {"path": self.path}) from e
            self.entries.append(name)
            return

        # Open the source first so an unreadable file never leaves a half entry
        try:
            src = open(source, "rb")
        except OSError as e:
            raise EntrySourceError(name, str(e)) from e

        with src:
            try:
                with self._zip.open(name, mode="w", force_zip64=True) as dest:
                    shutil.copyfileobj(src, dest, CHUNK_SIZE)
            except OSError as e:
                raise ArchiveError(f"Write failed for {name}: {e}", {"path": self.path}) from e
        self.entries.append(name)

    def finalize(self) -> str:
        """Write the central directory; the file is complete afterwards."""
        if self._zip is None:
            raise ArchiveError("Archive is not open", {"path": self.path})

        zf, self._zip = self._zip, None
        try:
            zf.close()
        except OSError as e:
            raise ArchiveError(f"Cannot finalize archive: {e}", {"path": self.path}) from e

        logger.debug(f"Archive finalized: {self.path} ({len(self.entries)} entries)")
        return self.path

    def abort(self) -> None:
        """Close and delete a partial archive (best effort)."""
        zf, self._zip = self._zip, None
        if zf is not None:
            try:
                zf.close()
            except (OSError, ValueError) as e:
                logger.debug(f"Ignoring close error on aborted archive {self.path}: {e}")

        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[WARN] Could not delete partial archive {self.path}: {e}")

    def __enter__(self) -> "ArchiveProducer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.abort()
        elif self._zip is not None:
            self.finalize()

"""
Housekeeping for the intake and output areas.

sweep() empties a directory and runs at startup and shutdown.
age_sweep() removes anything older than a cutoff and runs periodically,
reclaiming files of batches that were never downloaded or cancelled.
"""

import asyncio
import os
import shutil
import time
from typing import Iterable, Optional

from backend.app.logging_config import get_logger

logger = get_logger(__name__)


def _remove_entry(entry: os.DirEntry) -> bool:
    try:
        if entry.is_dir(follow_symlinks=False):
            shutil.rmtree(entry.path)
        else:
            os.remove(entry.path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"[WARN] Sweep could not remove {entry.path}: {e}")
        return False


def sweep(directory: str) -> int:
    """Delete every entry in a directory. Returns the number removed."""
    if not os.path.isdir(directory):
        return 0

    removed = 0
    with os.scandir(directory) as entries:
        for entry in entries:
            if _remove_entry(entry):
                removed += 1

    if removed:
        logger.info(f"[SWEEP] Removed {removed} entries from {directory}")
    return removed


def age_sweep(directory: str, max_age_seconds: float, now: Optional[float] = None) -> int:
    """Delete entries whose last modification is older than max_age_seconds."""
    if not os.path.isdir(directory):
        return 0

    cutoff = (time.time() if now is None else now) - max_age_seconds
    removed = 0

    with os.scandir(directory) as entries:
        for entry in entries:
            try:
                mtime = entry.stat(follow_symlinks=False).st_mtime
            except FileNotFoundError:
                continue
            if mtime < cutoff and _remove_entry(entry):
                removed += 1

    if removed:
        logger.info(
            f"[SWEEP] Removed {removed} entries older than {max_age_seconds:.0f}s from {directory}"
        )
    return removed


class Housekeeper:
    """Runs age_sweep over a set of directories on a fixed interval."""

    def __init__(
        self,
        directories: Iterable[str],
        interval_seconds: float,
        max_age_seconds: float,
        orchestrator=None,
    ):
        self.directories = list(directories)
        self.interval_seconds = interval_seconds
        self.max_age_seconds = max_age_seconds
        # Optional: also drop registry entries of abandoned batches
        self.orchestrator = orchestrator
        self._task: Optional[asyncio.Task] = None

    def sweep_all(self) -> int:
        return sum(sweep(d) for d in self.directories)

    def age_sweep_all(self) -> int:
        if self.orchestrator is not None:
            self.orchestrator.prune_expired(self.max_age_seconds)
        return sum(age_sweep(d, self.max_age_seconds) for d in self.directories)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.age_sweep_all)
            except Exception as e:
                logger.error(f"[ERROR] Periodic sweep failed: {e}")

    def start(self) -> None:
        if self._task is None and self.interval_seconds > 0:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

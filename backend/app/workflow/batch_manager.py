"""
Batch orchestrator.

Creates batches, runs each one in its own worker process, feeds the
worker's signals into the registry and owns cancel/download cleanup.
A worker process can be terminated at any point, so any archive left
behind by a cancelled or crashed batch is treated as garbage.
"""

import multiprocessing
import os
import queue
import secrets
import threading
import time
from datetime import datetime, timezone
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple

from backend.app.core.exceptions import (
    BatchIdCollisionError,
    BatchNotFoundError,
    ValidationError,
)
from backend.app.logging_config import get_logger
from backend.app.services.progress.models import (
    BatchState,
    SourceFile,
    TransformSettings,
)
from backend.app.services.progress.tracker import BatchRegistry
from backend.app.services.storage.local import LocalStorageService, archive_name
from backend.app.workflow.worker import COMPLETE, ERROR, PROGRESS, BatchJob, worker_main

logger = get_logger(__name__)

# How often the listener wakes up to check on its worker
POLL_INTERVAL_SECONDS = 0.2


def new_batch_id() -> str:
    """Millisecond timestamp plus 64 random bits."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}"


def apply_message(registry: BatchRegistry, batch_id: str, message: dict) -> None:
    """Apply one worker signal to the registry."""
    kind = message.get("type")

    if kind == PROGRESS:
        registry.record_progress(batch_id, int(message.get("completed", 0)))
    elif kind == COMPLETE:
        if registry.record_complete(batch_id, message["output_name"]):
            logger.info(f"Batch {batch_id} completed. Zip file: {message.get('output_path')}")
    elif kind == ERROR:
        error = message.get("error") or "Unknown worker error"
        if registry.record_error(batch_id, error):
            logger.error(f"Worker error for batch {batch_id}: {error}")
    else:
        logger.warning(f"[WARN] Unknown worker message for batch {batch_id}: {message!r}")


def apply_exit(registry: BatchRegistry, batch_id: str, exitcode: Optional[int]) -> None:
    """
    Reconcile the registry once a worker process is gone.

    A batch still Processing at this point never got a terminal signal:
    either the process crashed (nonzero exit) or it exited without
    reporting. Both are Failed; an Error already recorded is kept.
    """
    view = registry.get(batch_id)
    if view is None or view.status.is_terminal:
        return

    if exitcode:
        message = f"Worker stopped with exit code {exitcode}"
    else:
        message = "Worker exited without reporting a result"

    if registry.record_failed(batch_id, message):
        logger.error(f"{message} for batch {batch_id}")


class BatchHandle:
    """Runtime resources of one batch (process, channel, listener)."""

    def __init__(
        self,
        batch_id: str,
        process,
        channel,
        input_files: List[SourceFile],
        output_path: str,
    ):
        self.batch_id = batch_id
        self.process = process
        self.channel = channel
        self.input_files = input_files
        self.output_path = output_path
        self.started_at = time.monotonic()
        self.cancelled = threading.Event()
        self.listener: Optional[threading.Thread] = None


class BatchOrchestrator:
    """Entry point for submit / cancel / download of batches."""

    def __init__(
        self,
        registry: BatchRegistry,
        storage: LocalStorageService,
        batch_timeout_seconds: float = 0,
        worker_join_timeout_seconds: float = 5,
        log_level: str = "INFO",
        mp_context=None,
    ):
        self.registry = registry
        self.storage = storage
        self.batch_timeout_seconds = batch_timeout_seconds
        self.worker_join_timeout_seconds = worker_join_timeout_seconds
        self.log_level = log_level
        # spawn: the API process runs threads, forking it is unsafe
        self._ctx = mp_context or multiprocessing.get_context("spawn")
        self._lock = threading.Lock()
        self._handles: Dict[str, BatchHandle] = {}

    # ==========================================
    # Submission
    # ==========================================
    def submit(
        self,
        uploads: Iterable[Tuple[str, BinaryIO]],
        settings: TransformSettings,
        output_label: Optional[str] = None,
    ) -> str:
        """
        Save uploads, register the batch and start its worker.
        Returns the batch id without waiting for any processing.
        """
        uploads = list(uploads)
        if not uploads:
            raise ValidationError("No files uploaded.")

        batch_id = new_batch_id()
        if batch_id in self.registry:
            raise BatchIdCollisionError(batch_id)

        saved: List[SourceFile] = []
        try:
            for index, (filename, stream) in enumerate(uploads):
                saved.append(self.storage.save_upload(batch_id, index, filename, stream))
        except Exception:
            self._discard_files(saved, None)
            raise

        output_name = archive_name(batch_id, output_label)
        output_path = self.storage.archive_path(batch_id)

        try:
            self.registry.create(batch_id, len(saved), saved)
        except BatchIdCollisionError:
            self._discard_files(saved, None)
            raise

        job = BatchJob(
            batch_id=batch_id,
            files=saved,
            settings=settings,
            output_path=output_path,
            output_name=output_name,
            log_level=self.log_level,
        )

        try:
            handle = self._start_worker(job)
        except Exception:
            logger.exception(f"[ERROR] Could not start worker for batch {batch_id}")
            self.registry.remove(batch_id)
            self._discard_files(saved, output_path)
            raise

        with self._lock:
            self._handles[batch_id] = handle

        handle.listener = threading.Thread(
            target=self._listen,
            args=(handle,),
            name=f"batch-listener-{batch_id}",
            daemon=True,
        )
        handle.listener.start()

        logger.info(
            f"Starting batch {batch_id} with {len(saved)} files "
            f"({settings.max_width}x{settings.max_height}, q={settings.quality})"
        )
        return batch_id

    def _start_worker(self, job: BatchJob) -> BatchHandle:
        channel = self._ctx.Queue()
        process = self._ctx.Process(
            target=worker_main,
            args=(job, channel),
            name=f"batch-worker-{job.batch_id}",
            daemon=True,
        )
        process.start()
        return BatchHandle(job.batch_id, process, channel, job.files, job.output_path)

    # ==========================================
    # Worker signal delivery
    # ==========================================
    def _listen(self, handle: BatchHandle) -> None:
        batch_id = handle.batch_id
        deadline = None
        if self.batch_timeout_seconds:
            deadline = handle.started_at + self.batch_timeout_seconds

        while not handle.cancelled.is_set():
            try:
                message = handle.channel.get(timeout=POLL_INTERVAL_SECONDS)
            except queue.Empty:
                if not handle.process.is_alive():
                    self._drain(handle)
                    break
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning(
                        f"[WARN] Batch {batch_id} exceeded {self.batch_timeout_seconds}s, cancelling"
                    )
                    try:
                        self.cancel(batch_id)
                    except BatchNotFoundError:
                        pass
                    return
                continue
            except (EOFError, OSError, ValueError):
                # Channel broken by a terminated worker
                break

            if handle.cancelled.is_set():
                return
            apply_message(self.registry, batch_id, message)

        if handle.cancelled.is_set():
            return

        handle.process.join(self.worker_join_timeout_seconds)
        apply_exit(self.registry, batch_id, handle.process.exitcode)

        view = self.registry.get(batch_id)
        if view is not None and view.status in (BatchState.ERROR, BatchState.FAILED):
            # Nothing usable will come out of this batch
            self._discard_files(view.input_files, handle.output_path)

    def _drain(self, handle: BatchHandle) -> None:
        """Deliver whatever the worker queued before it exited."""
        while True:
            try:
                message = handle.channel.get(timeout=POLL_INTERVAL_SECONDS)
            except (queue.Empty, EOFError, OSError, ValueError):
                return
            apply_message(self.registry, handle.batch_id, message)

    # ==========================================
    # Cancellation
    # ==========================================
    def cancel(self, batch_id: str) -> None:
        """
        Hard-stop a batch and remove every trace of it.

        Works whether the worker is still running or already finished;
        the archive is deleted even if a complete signal is in flight.
        """
        # Claim first: a late complete signal is ignored and a concurrent
        # cancel of the same batch gets not-found
        view = self.registry.claim_cancel(batch_id)
        if view is None:
            raise BatchNotFoundError(batch_id)

        with self._lock:
            handle = self._handles.pop(batch_id, None)

        output_path = self.storage.archive_path(batch_id)
        if handle is not None:
            handle.cancelled.set()
            self._stop_worker(handle)
            output_path = handle.output_path

        self._discard_files(view.input_files, output_path)
        self.registry.remove(batch_id)
        logger.info(f"[CANCELLED] Batch {batch_id} cleaned up")

    def _stop_worker(self, handle: BatchHandle) -> None:
        process = handle.process
        if process.is_alive():
            process.terminate()
            process.join(self.worker_join_timeout_seconds)
            if process.is_alive():
                logger.warning(f"[WARN] Worker for batch {handle.batch_id} ignored SIGTERM, killing")
                process.kill()
                process.join()

        listener = handle.listener
        if listener is not None and listener is not threading.current_thread():
            listener.join(self.worker_join_timeout_seconds)

    def _discard_files(self, input_files: Iterable[SourceFile], output_path: Optional[str]) -> None:
        for source in input_files:
            self.storage.delete_file(source.stored_path)
        if output_path:
            self.storage.delete_file(output_path)

    # ==========================================
    # Download
    # ==========================================
    def open_download(self, batch_id: str) -> Tuple[str, str]:
        """Return (path, download name) of a finished archive."""
        view = self.registry.get(batch_id)
        if view is None:
            raise BatchNotFoundError(batch_id)

        if view.cancel_requested:
            raise BatchNotFoundError(batch_id)

        if view.status is not BatchState.COMPLETE or not view.output_name:
            raise BatchNotFoundError(batch_id, "Zip file not found or compression not complete.")

        path = self.storage.archive_path(batch_id)
        if not os.path.exists(path):
            raise BatchNotFoundError(batch_id, "Zip file not found on server disk.")

        return path, view.output_name

    def finish_download(self, batch_id: str) -> None:
        """Forget a delivered batch and delete its archive."""
        self.registry.remove(batch_id)
        with self._lock:
            self._handles.pop(batch_id, None)
        self.storage.delete_file(self.storage.archive_path(batch_id))
        logger.info(f"[DOWNLOADED] Batch {batch_id} delivered and removed")

    # ==========================================
    # Housekeeping hooks
    # ==========================================
    def prune_expired(self, max_age_seconds: float) -> int:
        """Drop terminal batches nobody collected within max_age_seconds."""
        now = datetime.now(timezone.utc)
        pruned = 0

        for batch_id in self.registry.ids():
            view = self.registry.get(batch_id)
            if view is None or view.finished_at is None:
                continue
            # Age counts from the end of processing, like the archive mtime
            if (now - view.finished_at).total_seconds() <= max_age_seconds:
                continue
            try:
                self.cancel(batch_id)
                pruned += 1
            except BatchNotFoundError:
                pass

        if pruned:
            logger.info(f"[SWEEP] Pruned {pruned} abandoned batches")
        return pruned

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for h in self._handles.values() if h.process.is_alive())

    def shutdown(self) -> None:
        """Terminate every running worker (used on process exit)."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()

        for handle in handles:
            handle.cancelled.set()
            self._stop_worker(handle)

        if handles:
            logger.info(f"Stopped {len(handles)} batch workers")

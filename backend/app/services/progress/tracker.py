"""
In-memory batch registry.

The single source of truth for batch state. Callers never touch the
records directly: every read returns a BatchView snapshot and every
mutation goes through a record_* method. Terminal states are sticky, so
a late progress or complete signal can never overwrite Error, Failed or
Cancelled.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from backend.app.core.exceptions import BatchIdCollisionError
from backend.app.logging_config import get_logger
from backend.app.services.progress.models import BatchState, BatchView, SourceFile

logger = get_logger(__name__)


class _BatchRecord:
    __slots__ = (
        "batch_id", "status", "total", "completed", "input_files",
        "output_name", "error", "created_at", "finished_at",
        "cancel_claimed", "lock",
    )

    def __init__(self, batch_id: str, total: int, input_files: List[SourceFile]):
        self.batch_id = batch_id
        self.status = BatchState.PROCESSING
        self.total = total
        self.completed = 0
        self.input_files = list(input_files)
        self.output_name: Optional[str] = None
        self.error: Optional[str] = None
        self.created_at = datetime.now(timezone.utc)
        self.finished_at: Optional[datetime] = None
        self.cancel_claimed = False
        self.lock = threading.Lock()

    def view(self) -> BatchView:
        return BatchView(
            batch_id=self.batch_id,
            status=self.status,
            total=self.total,
            completed=self.completed,
            input_files=self.input_files,
            output_name=self.output_name,
            error=self.error,
            created_at=self.created_at,
            finished_at=self.finished_at,
            cancel_requested=self.cancel_claimed,
        )


class BatchRegistry:
    """Process-wide table of batch id -> batch state."""

    def __init__(self):
        self._lock = threading.Lock()
        self._batches: Dict[str, _BatchRecord] = {}

    def _record(self, batch_id: str) -> Optional[_BatchRecord]:
        with self._lock:
            return self._batches.get(batch_id)

    def create(self, batch_id: str, total: int, input_files: List[SourceFile]) -> BatchView:
        record = _BatchRecord(batch_id, total, input_files)
        with self._lock:
            if batch_id in self._batches:
                raise BatchIdCollisionError(batch_id)
            self._batches[batch_id] = record
        return record.view()

    def record_progress(self, batch_id: str, completed: int) -> bool:
        record = self._record(batch_id)
        if record is None:
            return False

        with record.lock:
            if record.status.is_terminal:
                return False
            # Never move backwards, never past total
            completed = min(max(completed, record.completed), record.total)
            record.completed = completed
        return True

    def record_complete(self, batch_id: str, output_name: str) -> bool:
        return self._finish(batch_id, BatchState.COMPLETE, output_name=output_name)

    def record_error(self, batch_id: str, message: str = None) -> bool:
        return self._finish(batch_id, BatchState.ERROR, error=message)

    def record_failed(self, batch_id: str, message: str = None) -> bool:
        # Only applies while still Processing, so a recorded Error wins
        return self._finish(batch_id, BatchState.FAILED, error=message)

    def record_cancelled(self, batch_id: str) -> bool:
        return self._finish(batch_id, BatchState.CANCELLED)

    def _finish(
        self,
        batch_id: str,
        status: BatchState,
        output_name: str = None,
        error: str = None,
    ) -> bool:
        record = self._record(batch_id)
        if record is None:
            return False

        with record.lock:
            if record.status.is_terminal:
                logger.debug(
                    f"Ignoring {status.value} for batch {batch_id}: already {record.status.value}"
                )
                return False
            record.status = status
            record.finished_at = datetime.now(timezone.utc)
            if status is BatchState.COMPLETE:
                record.output_name = output_name
                record.completed = record.total
            if error:
                record.error = error
        return True

    def claim_cancel(self, batch_id: str) -> Optional[BatchView]:
        """
        Claim the right to tear a batch down.

        Only the first caller gets a view back; later callers (and unknown
        ids) get None. A batch still Processing becomes Cancelled, a
        terminal one keeps its status.
        """
        record = self._record(batch_id)
        if record is None:
            return None

        with record.lock:
            if record.cancel_claimed:
                return None
            record.cancel_claimed = True
            if not record.status.is_terminal:
                record.status = BatchState.CANCELLED
                record.finished_at = datetime.now(timezone.utc)
            return record.view()

    def get(self, batch_id: str) -> Optional[BatchView]:
        record = self._record(batch_id)
        if record is None:
            return None
        with record.lock:
            return record.view()

    def remove(self, batch_id: str) -> Optional[BatchView]:
        with self._lock:
            record = self._batches.pop(batch_id, None)
        if record is None:
            return None
        with record.lock:
            return record.view()

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._batches)

    def __len__(self) -> int:
        with self._lock:
            return len(self._batches)

    def __contains__(self, batch_id: str) -> bool:
        with self._lock:
            return batch_id in self._batches

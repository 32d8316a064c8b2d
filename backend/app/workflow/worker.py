"""
Batch worker.

run_batch() drives one batch from first file to finalized archive and
reports through a channel (anything with a put() method):

    {"type": "progress", "completed": n}
    {"type": "complete", "output_path": ..., "output_name": ...}
    {"type": "error", "error": message}

worker_main() is the entry point of the dedicated worker process the
orchestrator spawns for each batch.
"""

import time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from backend.app.core.exceptions import EntrySourceError
from backend.app.logging_config import configure_logging, get_logger
from backend.app.services.archive import ArchiveProducer
from backend.app.services.progress.models import SourceFile, TransformSettings
from backend.app.services.storage.local import LocalStorageService
from backend.app.workflow.pipeline import process_single_file

logger = get_logger(__name__)

PROGRESS = "progress"
COMPLETE = "complete"
ERROR = "error"


class BatchJob(BaseModel):
    """Everything a worker needs to process one batch."""

    model_config = ConfigDict(frozen=True)

    batch_id: str
    files: List[SourceFile]
    settings: TransformSettings
    output_path: str
    output_name: str
    log_level: str = "INFO"


def run_batch(job: BatchJob, channel) -> Optional[str]:
    """
    Compress and archive every file of a batch, in submission order.

    Returns the archive path on success, None after an error signal.
    """
    start_time = time.time()
    total = len(job.files)
    completed = 0
    producer = None

    logger.info(f"[BATCH STARTED] {job.batch_id} | Total files: {total}")

    try:
        producer = ArchiveProducer.open(job.output_path)
        used_names = set()

        for i, source in enumerate(job.files, 1):
            try:
                name = process_single_file(source, job.settings, producer, used_names)
                logger.info(f"[OK] [{i}/{total}] {source.original_name} -> {name}")
            except EntrySourceError as e:
                # Skip the entry, keep the batch going
                logger.error(f"[ERROR] [{i}/{total}] Skipping {source.original_name}: {e}")

            completed += 1
            channel.put({"type": PROGRESS, "completed": completed})

            LocalStorageService.delete_file(source.stored_path)

        producer.finalize()

    except Exception as e:
        logger.exception(f"[BATCH FAILED] {job.batch_id}: {e}")
        if producer is not None:
            producer.abort()
        channel.put({"type": ERROR, "error": str(e)})
        return None

    elapsed = time.time() - start_time
    logger.info(
        f"[BATCH COMPLETED] {job.batch_id} | {len(producer.entries)} entries "
        f"| {elapsed:.2f}s | {job.output_name}"
    )
    channel.put({
        "type": COMPLETE,
        "output_path": job.output_path,
        "output_name": job.output_name,
    })
    return job.output_path


def worker_main(job: BatchJob, channel) -> None:
    """Process entry point; runs in a freshly spawned interpreter."""
    configure_logging(job.log_level)
    run_batch(job, channel)

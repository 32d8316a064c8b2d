from fastapi import APIRouter, Depends, HTTPException

from backend.app.api.deps import get_orchestrator
from backend.app.workflow.batch_manager import BatchOrchestrator

router = APIRouter(prefix="/progress", tags=["Progress"])


@router.get("/{batch_id}")
def get_batch_progress(
    batch_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
):
    progress = orchestrator.registry.get(batch_id)

    if progress is None:
        raise HTTPException(status_code=404, detail="Batch ID not found.")

    response = {
        "progress": progress.progress,
        "status": progress.status.value,
        "totalFiles": progress.total,
        "completedFiles": progress.completed,
    }
    if progress.error:
        response["error"] = progress.error
    return response

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from backend.app.api.deps import get_orchestrator
from backend.app.core.exceptions import BatchNotFoundError
from backend.app.workflow.batch_manager import BatchOrchestrator

router = APIRouter(tags=["Download"])


@router.get("/download/{batch_id}")
def download_archive(
    batch_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
):
    """
    Stream a finished archive.
    The archive and the batch are deleted once the response has been sent.
    """
    try:
        path, filename = orchestrator.open_download(batch_id)
    except BatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return FileResponse(
        path,
        media_type="application/zip",
        filename=filename,
        background=BackgroundTask(orchestrator.finish_download, batch_id),
    )


@router.post("/cleanup/{batch_id}")
def cleanup_batch(
    batch_id: str,
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
):
    """Stop a batch early (e.g. the client navigated away) and delete its files."""
    try:
        orchestrator.cancel(batch_id)
    except BatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return {"success": True}

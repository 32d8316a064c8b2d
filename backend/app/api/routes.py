import re
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from backend.app.core.exceptions import BatchIdCollisionError, ValidationError
from backend.app.api.deps import get_orchestrator
from backend.app.logging_config import get_logger
from backend.app.services.progress.models import TransformSettings
from backend.app.workflow.batch_manager import BatchOrchestrator

logger = get_logger(__name__)

router = APIRouter()

MAX_DIMENSION = 16384

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_int(value: Optional[str], default: int) -> int:
    """Leading-integer parse; missing, invalid or non-positive -> default."""
    if value is None:
        return default
    match = _LEADING_INT.match(str(value))
    if not match:
        return default
    parsed = int(match.group(1))
    return parsed if parsed > 0 else default


def build_transform_settings(
    max_width: Optional[str],
    max_height: Optional[str],
    quality: Optional[str],
    defaults: dict,
) -> TransformSettings:
    return TransformSettings(
        max_width=min(_parse_int(max_width, defaults["default_max_width"]), MAX_DIMENSION),
        max_height=min(_parse_int(max_height, defaults["default_max_height"]), MAX_DIMENSION),
        quality=min(_parse_int(quality, defaults["default_quality"]), 100),
    )


@router.post("/compress")
def compress_images(
    request: Request,
    images: Optional[List[UploadFile]] = File(None),
    maxWidth: Optional[str] = Form(None),
    maxHeight: Optional[str] = Form(None),
    quality: Optional[str] = Form(None),
    zipFolderName: Optional[str] = Form(None),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
):
    """
    Upload a batch of files and start compressing them in the background.
    Poll /progress/{batchId}, then fetch /download/{batchId}.
    """
    files = [f for f in (images or []) if f.filename]
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded.")

    settings = build_transform_settings(
        maxWidth, maxHeight, quality, request.app.state.settings
    )

    try:
        batch_id = orchestrator.submit(
            [(f.filename, f.file) for f in files],
            settings,
            output_label=zipFolderName,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except BatchIdCollisionError as e:
        logger.error(f"[ERROR] {e}")
        raise HTTPException(status_code=500, detail="Could not allocate a batch id.")
    finally:
        for f in files:
            f.file.close()

    return {"batchId": batch_id}


@router.get("/health")
def health(orchestrator: BatchOrchestrator = Depends(get_orchestrator)):
    return {
        "status": "ok",
        "activeBatches": orchestrator.active_count(),
    }

from backend.app.services.progress.models import (
    BatchState,
    BatchView,
    SourceFile,
    TransformSettings,
)
from backend.app.services.progress.tracker import BatchRegistry

__all__ = [
    "BatchState",
    "BatchView",
    "SourceFile",
    "TransformSettings",
    "BatchRegistry",
]

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BatchState(str, Enum):
    PROCESSING = "Processing"
    COMPLETE = "Complete"
    ERROR = "Error"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not BatchState.PROCESSING


class SourceFile(BaseModel):
    """One uploaded original, as placed in the intake area."""

    model_config = ConfigDict(frozen=True)

    original_name: str
    stored_path: str
    size: int = 0


class TransformSettings(BaseModel):
    """Per-batch resize/recompress settings."""

    model_config = ConfigDict(frozen=True)

    max_width: int = Field(default=1280, ge=1, le=16384)
    max_height: int = Field(default=1280, ge=1, le=16384)
    quality: int = Field(default=80, ge=1, le=100)


class BatchView(BaseModel):
    """Read-only snapshot of one registry entry."""

    model_config = ConfigDict(frozen=True)

    batch_id: str
    status: BatchState
    total: int
    completed: int
    input_files: List[SourceFile]
    output_name: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None
    cancel_requested: bool = False

    @property
    def progress(self) -> int:
        if not self.total:
            return 0
        # Half-up rounding: 2/3 -> 67, 1/8 -> 13
        return int(self.completed * 100 / self.total + 0.5)

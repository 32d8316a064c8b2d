"""
Exception hierarchy for the compressor service.

Every error carries a human-readable message plus an optional details
dict that ends up in the logs.
"""

from typing import Any


class CompressorError(Exception):
    """Base exception for all compressor errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(CompressorError):
    """Raised when a submission is rejected before any batch exists."""


class TransformError(CompressorError):
    """Raised when an image cannot be decoded, resized or re-encoded."""

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(
            f"Transform failed for {filename}: {reason}",
            {"filename": filename},
        )


class ArchiveError(CompressorError):
    """Raised when the archive itself cannot be created or closed."""


class EntrySourceError(CompressorError):
    """Raised when one entry's source cannot be read; the archive stays usable."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Cannot read source for entry {name}: {reason}", {"entry": name})


class BatchNotFoundError(CompressorError):
    """Raised when a batch id is unknown (or not in a usable state)."""

    def __init__(self, batch_id: str, reason: str = "Batch ID not found.") -> None:
        self.batch_id = batch_id
        super().__init__(reason, {"batch_id": batch_id})


class BatchIdCollisionError(CompressorError):
    """Raised when a freshly generated batch id is already registered."""

    def __init__(self, batch_id: str) -> None:
        super().__init__(f"Batch id collision: {batch_id}", {"batch_id": batch_id})

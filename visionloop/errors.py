"""
Error types raised across the vision and playback layers.
"""
from typing import Optional


class VisionLoopError(Exception):
    """Base class for all visionloop errors."""


class InitializationError(VisionLoopError):
    """A component was used before it was initialized, or failed to initialize."""


class RecognitionError(VisionLoopError):
    """OCR failed for one capture. Recoverable: pollers treat it as an empty tick."""


class ExecutionFailure(VisionLoopError):
    """A click/type/key primitive (or DOM operation) reported failure."""

    def __init__(self, reason: str, step_index: Optional[int] = None, row_index: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.step_index = step_index
        self.row_index = row_index

    def __str__(self) -> str:
        where = []
        if self.row_index is not None:
            where.append(f"row {self.row_index}")
        if self.step_index is not None:
            where.append(f"step {self.step_index}")
        if where:
            return f"{self.reason} ({', '.join(where)})"
        return self.reason


class PlaybackInProgressError(VisionLoopError):
    """play() was called while another session is active."""

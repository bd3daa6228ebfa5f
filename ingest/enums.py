"""
Centralized enums for status values used throughout the upload pipeline.
Using str-based enums so values serialize directly into logs and metrics labels.
"""

from enum import Enum
from typing import Optional

# Platform video_status values that mean "still working on it"
_IN_PROGRESS_STATUSES = frozenset(["processing", "uploading", "upload_complete", "pending", "in_progress"])


class ProcessingStatus(str, Enum):
    """Platform-side processing state of an uploaded video."""

    PENDING = "pending"
    READY = "ready"
    ERROR = "error"
    UNKNOWN = "unknown"  # Unrecognized status string, keep polling

    @classmethod
    def from_platform(cls, value: Optional[str]) -> "ProcessingStatus":
        """Map a raw ``video_status`` string to a ProcessingStatus."""
        if value == "ready":
            return cls.READY
        if value == "error":
            return cls.ERROR
        if value in _IN_PROGRESS_STATUSES:
            return cls.PENDING
        return cls.UNKNOWN


class PollResult(str, Enum):
    """How status polling ended (errors are raised, not returned)."""

    READY = "ready"
    STILL_PROCESSING = "still_processing"


class OutcomeKind(str, Enum):
    """Classification of one outer upload attempt."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class UploadPhase(str, Enum):
    """upload_phase values of the chunked ingestion endpoint."""

    START = "start"
    TRANSFER = "transfer"
    FINISH = "finish"

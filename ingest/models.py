"""Data model for a single video upload."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import config
from ingest.enums import OutcomeKind
from ingest.errors import UploadError, UploadValidationError


@dataclass(frozen=True)
class UploadRequest:
    """Immutable upload input: where to pull the video from and which ad account gets it."""

    source_url: str
    account_id: str

    def validate(self) -> None:
        """
        Reject unusable requests before any network call.

        Raises:
            UploadValidationError: If a field is empty or the URL is not HTTP(S)
        """
        if not self.source_url or not self.source_url.strip():
            raise UploadValidationError("Missing video_url or ad_account_id", details="video_url is empty")
        if not self.account_id or not self.account_id.strip():
            raise UploadValidationError("Missing video_url or ad_account_id", details="ad_account_id is empty")

        parsed = urlparse(self.source_url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise UploadValidationError(
                "Invalid video_url",
                details="video_url must be an absolute http(s) URL",
            )


@dataclass
class UploadSession:
    """
    Platform upload session for one attempt.

    ``cursor`` is only advanced by the transfer engine from platform
    acknowledgments. Never reuse a session for a second attempt.
    """

    session_id: str
    video_id: str
    cursor: int
    total_size: int

    @property
    def complete(self) -> bool:
        return self.cursor >= self.total_size


@dataclass(frozen=True)
class ChunkAck:
    """Platform acknowledgment of a transfer call."""

    next_offset: int
    end_offset: Optional[int] = None


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one negotiate -> transfer -> finalize -> poll attempt."""

    kind: OutcomeKind
    video_id: Optional[str] = None
    processing_complete: bool = False
    error: Optional[UploadError] = None

    @classmethod
    def success(cls, video_id: str, processing_complete: bool) -> "AttemptOutcome":
        return cls(OutcomeKind.SUCCESS, video_id=video_id, processing_complete=processing_complete)

    @classmethod
    def retryable(cls, error: UploadError) -> "AttemptOutcome":
        return cls(OutcomeKind.RETRYABLE, error=error)

    @classmethod
    def fatal(cls, error: UploadError) -> "AttemptOutcome":
        return cls(OutcomeKind.FATAL, error=error)


@dataclass(frozen=True)
class UploadResult:
    """Successful upload. processing_complete=False means "still processing"."""

    video_id: str
    processing_complete: bool
    attempts: int = 1


@dataclass(frozen=True)
class UploadPolicy:
    """Tunable limits and delays for an upload. Defaults come from config.py."""

    chunk_size: int = config.CHUNK_SIZE
    max_video_size: int = config.MAX_VIDEO_SIZE
    inter_chunk_delay: float = config.INTER_CHUNK_DELAY
    poll_interval: float = config.POLL_INTERVAL
    poll_max_attempts: int = config.POLL_MAX_ATTEMPTS
    max_attempts: int = config.MAX_UPLOAD_ATTEMPTS
    retry_backoff: float = config.RETRY_BACKOFF

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.poll_max_attempts < 1:
            raise ValueError(f"poll_max_attempts must be at least 1, got {self.poll_max_attempts}")

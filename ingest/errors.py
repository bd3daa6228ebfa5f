"""
Error taxonomy for the upload pipeline.

Every fault raised by an upload stage derives from UploadError. The
orchestrator only looks at ``retryable`` to decide whether a fresh attempt
is allowed: platform faults flagged transient and protocol violations.
Everything else is terminal.
"""

from typing import Any, Optional


class UploadError(Exception):
    """Base exception for upload pipeline failures."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def transient(self) -> bool:
        """Whether the platform flagged the fault as temporary."""
        return False

    @property
    def retryable(self) -> bool:
        """Whether a brand-new attempt (fresh session) may succeed."""
        return self.transient


class UploadValidationError(UploadError):
    """The inbound request is missing or has invalid fields."""


class SizeError(UploadError):
    """The source size cannot be used for an upload (pre-flight)."""


class SizeUnavailable(SizeError):
    """The source did not declare a usable Content-Length."""


class TooLarge(SizeError):
    """The source is larger than the configured ceiling."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            "Video too large",
            details=(
                f"Max allowed size is {limit / 1024 / 1024:.0f}MB. "
                f"Got {size / 1024 / 1024:.1f}MB"
            ),
        )


class PlatformError(UploadError):
    """
    Non-2xx or structured error response from the video platform.

    ``payload`` is the platform's ``error`` object when one was returned; its
    ``is_transient`` flag is the only thing that makes a fault retryable.
    status_code 0 means the request never got a response.
    """

    def __init__(self, status_code: int, message: str, payload: Optional[dict] = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"Platform error {status_code}: {message}", details=payload)

    @property
    def transient(self) -> bool:
        return bool(self.payload and self.payload.get("is_transient") is True)


class SourceFetchError(UploadError):
    """The source URL is unreachable or returned an unusable response."""


class SourceRangeMismatch(SourceFetchError):
    """The source ignored the Range header or answered with another range."""


class ProtocolViolation(UploadError):
    """
    The platform answered with something the upload protocol does not allow.

    Not transient, but the session state can no longer be trusted, so a new
    attempt with a fresh session is allowed within the attempt budget.
    """

    @property
    def retryable(self) -> bool:
        return True


class StalledTransfer(ProtocolViolation):
    """A transfer acknowledgment did not move the offset forward."""

    def __init__(self, offset: int, acked_offset: int):
        self.offset = offset
        self.acked_offset = acked_offset
        super().__init__(f"Transfer stalled at offset {offset} (platform acknowledged {acked_offset})")


class ProcessingFailure(UploadError):
    """The platform reported an ``error`` processing status."""


class UploadFailed(UploadError):
    """
    Terminal failure of a whole upload after classification.

    ``details`` carries the platform's structured error payload when the last
    fault had one, otherwise the lower-level fault message.
    """

    def __init__(self, last_error: UploadError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        payload = getattr(last_error, "payload", None)
        super().__init__(
            f"Upload failed after {attempts} attempt(s): {last_error.message}",
            details=payload if payload else last_error.message,
        )

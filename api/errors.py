"""
Error response helpers for the HTTP layer.

Upload failures are reported as ``{"error": ..., "details": ...}``. The
platform's structured error object is passed through as-is; free-text
details are truncated so stack-trace sized messages never reach clients.
"""
from typing import Any, Optional

from config import ERROR_DETAIL_MAX_LENGTH
from ingest.errors import SizeError, UploadError, UploadValidationError

GENERIC_UPLOAD_ERROR = "Video upload failed"


def truncate_error(message: Optional[str], max_length: int = ERROR_DETAIL_MAX_LENGTH) -> Optional[str]:
    """
    Truncate an error message to ``max_length`` characters.

    Args:
        message: Message to truncate (None passes through)
        max_length: Maximum length including the trailing ellipsis

    Returns:
        The message, shortened with "..." when it was too long
    """
    if message is None:
        return None
    if len(message) <= max_length:
        return message
    if max_length <= 3:
        return message[:max_length]
    return message[: max_length - 3] + "..."


def _details_for(exc: UploadError) -> Any:
    if isinstance(exc.details, dict):
        return exc.details
    if exc.details is not None:
        return truncate_error(str(exc.details))
    return truncate_error(exc.message)


def is_client_error(exc: UploadError) -> bool:
    """Validation and size rejections are the caller's fault (HTTP 400)."""
    return isinstance(exc, (UploadValidationError, SizeError))


def error_body(exc: UploadError) -> dict:
    """
    Build the client-facing body for a failed request.

    Client errors keep their own message; everything else is reported as a
    generic upload failure with the underlying details.
    """
    if is_client_error(exc):
        return {"error": exc.message, "details": _details_for(exc)}
    return {"error": GENERIC_UPLOAD_ERROR, "details": _details_for(exc)}

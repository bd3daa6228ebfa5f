"""
Tests for the error taxonomy and client-facing error bodies.
"""

from api.errors import GENERIC_UPLOAD_ERROR, error_body, is_client_error, truncate_error
from config import ERROR_DETAIL_MAX_LENGTH
from ingest.errors import (
    PlatformError,
    ProcessingFailure,
    ProtocolViolation,
    SizeUnavailable,
    SourceFetchError,
    StalledTransfer,
    TooLarge,
    UploadFailed,
    UploadValidationError,
)

MIB = 1024 * 1024


class TestTruncateError:
    def test_short_text_untouched(self):
        assert truncate_error("Short text", 50) == "Short text"

    def test_long_text_truncated_with_ellipsis(self):
        result = truncate_error("a" * 100, 50)
        assert len(result) == 50
        assert result == "a" * 47 + "..."

    def test_none_passes_through(self):
        assert truncate_error(None) is None

    def test_small_max_length(self):
        """No room for an ellipsis below four characters."""
        assert truncate_error("abcdefgh", 3) == "abc"

    def test_default_limit(self):
        result = truncate_error("x" * (ERROR_DETAIL_MAX_LENGTH + 100))
        assert len(result) == ERROR_DETAIL_MAX_LENGTH


class TestTransience:
    def test_only_platform_flag_is_transient(self):
        assert PlatformError(500, "x", {"is_transient": True}).transient is True
        assert PlatformError(500, "x", {"is_transient": False}).transient is False
        assert PlatformError(500, "x", None).transient is False
        assert PlatformError(0, "Connection error").transient is False

    def test_other_errors_never_transient(self):
        assert StalledTransfer(10, 10).transient is False
        assert ProcessingFailure("Facebook failed to process video").transient is False
        assert SourceFetchError("Unable to reach video source").transient is False
        assert TooLarge(300 * MIB, 250 * MIB).transient is False

    def test_retryable(self):
        """Transient platform faults and protocol violations allow a fresh attempt."""
        assert PlatformError(500, "x", {"is_transient": True}).retryable is True
        assert PlatformError(400, "x", {"is_transient": False}).retryable is False
        assert StalledTransfer(10, 10).retryable is True
        assert ProtocolViolation("Upload incomplete").retryable is True
        assert ProcessingFailure("Facebook failed to process video").retryable is False
        assert SourceFetchError("Unable to reach video source").retryable is False


class TestUploadFailed:
    def test_details_are_platform_payload(self):
        payload = {"message": "Invalid parameter", "code": 100, "is_transient": False}
        failure = UploadFailed(PlatformError(400, "Invalid parameter", payload), attempts=1)
        assert failure.details == payload
        assert failure.attempts == 1

    def test_details_fall_back_to_message(self):
        failure = UploadFailed(StalledTransfer(1000, 1000), attempts=1)
        assert failure.details == "Transfer stalled at offset 1000 (platform acknowledged 1000)"


class TestErrorBody:
    def test_too_large_keeps_message(self):
        body = error_body(TooLarge(300 * MIB, 250 * MIB))
        assert body == {"error": "Video too large", "details": "Max allowed size is 250MB. Got 300.0MB"}

    def test_client_errors(self):
        assert is_client_error(UploadValidationError("Invalid video_url"))
        assert is_client_error(SizeUnavailable("Unable to determine video file size"))
        assert not is_client_error(SourceFetchError("Unable to reach video source"))
        assert not is_client_error(UploadFailed(StalledTransfer(0, 0), attempts=1))

    def test_upload_failure_is_generic_with_payload(self):
        payload = {"message": "Please retry", "code": 2, "is_transient": True}
        body = error_body(UploadFailed(PlatformError(500, "Please retry", payload), attempts=2))
        assert body == {"error": GENERIC_UPLOAD_ERROR, "details": payload}

    def test_long_details_truncated(self):
        failure = UploadFailed(SourceFetchError("x" * 5000), attempts=1)
        body = error_body(failure)
        assert body["error"] == GENERIC_UPLOAD_ERROR
        assert len(body["details"]) == ERROR_DETAIL_MAX_LENGTH

"""
Alert system for upload outcomes.

Provides webhook notifications for:
- Uploads that failed after classification/retry
- Uploads whose processing was not confirmed within the poll budget

Includes rate limiting to prevent alert flooding. Alerts never raise into
the upload path.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Dict, Optional

import httpx

import config

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    """Types of alerts that can be sent."""

    UPLOAD_FAILED = "upload_failed"
    UPLOAD_STILL_PROCESSING = "upload_still_processing"


@dataclass
class AlertMetrics:
    """Tracks counters for alerting and rate limiting."""

    uploads_failed: int = 0
    uploads_still_processing: int = 0
    alerts_sent: int = 0
    alerts_rate_limited: int = 0
    alerts_failed: int = 0

    # Last alert timestamps by type (for rate limiting)
    last_alert_time: Dict[str, float] = field(default_factory=dict)

    # Failures per ad account for pattern detection, cleared every window
    account_failure_counts: Dict[str, int] = field(default_factory=dict)
    account_window_start: float = field(default_factory=time.time)

    def increment_failed(
        self,
        account_id: Optional[str] = None,
        window_seconds: Optional[int] = None,
        max_accounts: Optional[int] = None,
    ) -> int:
        """
        Increment uploads failed counter and track per-account failures.

        Per-account counts are dropped once the tracking window elapses, and
        at most ``max_accounts`` accounts are tracked (oldest evicted first).
        """
        if window_seconds is None:
            window_seconds = config.ALERT_ACCOUNT_WINDOW_SECONDS
        if max_accounts is None:
            max_accounts = config.ALERT_MAX_TRACKED_ACCOUNTS

        self.uploads_failed += 1
        if account_id is not None:
            now = time.time()
            if now - self.account_window_start >= window_seconds:
                self.account_failure_counts.clear()
                self.account_window_start = now
            if account_id not in self.account_failure_counts and len(self.account_failure_counts) >= max_accounts:
                del self.account_failure_counts[next(iter(self.account_failure_counts))]
            self.account_failure_counts[account_id] = self.account_failure_counts.get(account_id, 0) + 1
        return self.uploads_failed

    def increment_still_processing(self) -> int:
        self.uploads_still_processing += 1
        return self.uploads_still_processing

    def get_account_failure_count(self, account_id: str) -> int:
        return self.account_failure_counts.get(account_id, 0)

    def can_send_alert(self, alert_type: str, rate_limit_seconds: int = 300) -> bool:
        """Check if enough time has passed since the last alert of this type."""
        last_time = self.last_alert_time.get(alert_type)
        if last_time is None:
            return True
        return (time.time() - last_time) >= rate_limit_seconds

    def record_alert_sent(self, alert_type: str):
        self.last_alert_time[alert_type] = time.time()
        self.alerts_sent += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to a dictionary for reporting."""
        return {
            "uploads_failed": self.uploads_failed,
            "uploads_still_processing": self.uploads_still_processing,
            "alerts_sent": self.alerts_sent,
            "alerts_rate_limited": self.alerts_rate_limited,
            "alerts_failed": self.alerts_failed,
            "accounts_with_failures": len(self.account_failure_counts),
        }


# Global metrics instance
_metrics: Optional[AlertMetrics] = None


def get_metrics() -> AlertMetrics:
    """Get or create the global metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = AlertMetrics()
    return _metrics


def reset_metrics():
    """Reset metrics (for testing)."""
    global _metrics
    _metrics = AlertMetrics()


def send_alert_fire_and_forget(coro: Awaitable[Any]) -> None:
    """
    Schedule an alert coroutine as a background task.

    Failures are logged at debug level; the caller is never affected.
    """

    async def _safe_send():
        try:
            await coro
        except Exception as e:
            logger.debug(f"Failed to send alert (fire-and-forget): {e}")

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("Cannot send alert: no running event loop")
        coro.close()
        return
    loop.create_task(_safe_send())


async def send_webhook_alert(
    alert_type: AlertType,
    details: Dict[str, Any],
    force: bool = False,
) -> bool:
    """
    Send an alert to the configured webhook URL.

    Args:
        alert_type: Type of alert being sent
        details: Additional details about the alert
        force: If True, bypass rate limiting

    Returns:
        True if alert was sent successfully, False otherwise
    """
    webhook_url = config.ALERT_WEBHOOK_URL
    if not webhook_url:
        return False

    metrics = get_metrics()

    if not force and not metrics.can_send_alert(alert_type.value, config.ALERT_RATE_LIMIT_SECONDS):
        metrics.alerts_rate_limited += 1
        logger.debug(f"Alert {alert_type.value} rate limited")
        return False

    payload = {
        "event": alert_type.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details,
        "metrics": metrics.to_dict(),
    }

    try:
        async with httpx.AsyncClient(timeout=config.ALERT_WEBHOOK_TIMEOUT) as client:
            response = await client.post(webhook_url, json=payload)
            response.raise_for_status()

        metrics.record_alert_sent(alert_type.value)
        logger.info(f"Alert sent: {alert_type.value}")
        return True

    except httpx.TimeoutException:
        metrics.alerts_failed += 1
        logger.warning(f"Alert webhook timed out after {config.ALERT_WEBHOOK_TIMEOUT}s")
        return False
    except httpx.HTTPStatusError as e:
        metrics.alerts_failed += 1
        logger.warning(f"Alert webhook returned error: {e.response.status_code}")
        return False
    except httpx.RequestError as e:
        metrics.alerts_failed += 1
        logger.warning(f"Failed to send alert webhook: {e}")
        return False


async def alert_upload_failed(
    account_id: str,
    source_url: str,
    attempts: int,
    error: str,
    retryable: bool,
):
    """
    Send alert when an upload fails terminally.

    Args:
        account_id: Ad account the video was going to
        source_url: Source video URL
        attempts: Attempts made before giving up
        error: Last error message
        retryable: Whether the last error was retryable (attempt budget exhausted)
    """
    metrics = get_metrics()
    metrics.increment_failed(account_id)

    await send_webhook_alert(
        AlertType.UPLOAD_FAILED,
        {
            "account_id": account_id,
            "source_url": source_url,
            "attempts": attempts,
            "error": error[: config.ERROR_DETAIL_MAX_LENGTH] if error else None,
            "attempts_exhausted": retryable,
            "account_failure_count": metrics.get_account_failure_count(account_id),
        },
        force=True,  # Failures are always reported
    )


async def alert_upload_still_processing(account_id: str, video_id: str, poll_attempts: int):
    """Send (rate-limited) alert when processing was not confirmed in time."""
    get_metrics().increment_still_processing()

    await send_webhook_alert(
        AlertType.UPLOAD_STILL_PROCESSING,
        {
            "account_id": account_id,
            "video_id": video_id,
            "poll_attempts": poll_attempts,
        },
    )

import logging
import math
import os
from typing import Callable, Optional, TypeVar

# Configure logger for config module warnings
logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)


def _get_numeric_env(
    name: str,
    default: N,
    parse: Callable[[str], N],
    min_val: Optional[N] = None,
    max_val: Optional[N] = None,
) -> N:
    """Shared parsing for get_int_env/get_float_env.

    Falls back to the default (with a warning) on unparsable or out-of-range
    values. Range validation only applies to user-provided values.
    """
    value = os.getenv(name)
    if value is None:
        return default

    try:
        result = parse(value)
    except ValueError:
        logger.warning(f"Invalid {name}='{value}', using default {default}")
        return default

    if isinstance(result, float) and (math.isinf(result) or math.isnan(result)):
        logger.warning(f"Invalid {name}='{value}' (special float), using default {default}")
        return default

    if min_val is not None and result < min_val:
        logger.warning(f"{name}={result} is below minimum {min_val}, using default {default}")
        return default
    if max_val is not None and result > max_val:
        logger.warning(f"{name}={result} is above maximum {max_val}, using default {default}")
        return default

    return result


def get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """Get an integer from environment variable with error handling and validation.

    Args:
        name: Environment variable name
        default: Default value if env var is missing or invalid
        min_val: Optional minimum value (inclusive)
        max_val: Optional maximum value (inclusive)

    Returns:
        Parsed integer value, or default if parsing fails or value is out of range
    """
    return _get_numeric_env(name, default, int, min_val, max_val)


def get_float_env(
    name: str,
    default: float,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> float:
    """Get a float from environment variable with error handling and validation.

    Rejects inf/nan in addition to unparsable and out-of-range values.
    """
    return _get_numeric_env(name, default, float, min_val, max_val)


def get_bool_env(name: str, default: bool) -> bool:
    """Get a boolean flag; accepts true/1/yes and false/0/no (case-insensitive)."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("false", "0", "no", "")


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def get_log_level_env(name: str, default: str = "INFO") -> str:
    """Get a logging level name; unknown names fall back to the default with a warning."""
    value = os.getenv(name)
    if value is None:
        return default
    level = value.strip().upper()
    if level not in LOG_LEVELS:
        logger.warning(f"Invalid {name}='{value}' (expected one of {', '.join(LOG_LEVELS)}), using default {default}")
        return default
    return level


MIB = 1024 * 1024

# Graph API (ad video ingestion endpoint)
# The access token is read per request through get_access_token() so a
# missing token fails the request instead of the import.
GRAPH_API_VERSION = os.getenv("ADVIDEO_GRAPH_API_VERSION", "v19.0")
GRAPH_API_URL = os.getenv("ADVIDEO_GRAPH_API_URL", "https://graph.facebook.com").rstrip("/")


def get_access_token() -> str:
    """Return the platform access token (empty string when unset)."""
    return os.getenv("FACEBOOK_ACCESS_TOKEN", "")


# Upload policy
# Videos above this size are rejected before an upload session is opened
MAX_VIDEO_SIZE = get_int_env("ADVIDEO_MAX_VIDEO_SIZE", 250 * MIB, min_val=1)
# Byte range pulled from the source and pushed per transfer call
CHUNK_SIZE = get_int_env("ADVIDEO_CHUNK_SIZE", 4 * MIB, min_val=64 * 1024, max_val=1024 * MIB)
# Fixed throttle between transfer calls (seconds)
INTER_CHUNK_DELAY = get_float_env("ADVIDEO_INTER_CHUNK_DELAY", 0.3, min_val=0.0)

# Processing status polling
POLL_INTERVAL = get_float_env("ADVIDEO_POLL_INTERVAL", 5.0, min_val=0.0)
POLL_MAX_ATTEMPTS = get_int_env("ADVIDEO_POLL_MAX_ATTEMPTS", 10, min_val=1)

# Whole-upload retry (new session per attempt, fixed backoff, no jitter)
MAX_UPLOAD_ATTEMPTS = get_int_env("ADVIDEO_MAX_UPLOAD_ATTEMPTS", 2, min_val=1, max_val=10)
RETRY_BACKOFF = get_float_env("ADVIDEO_RETRY_BACKOFF", 5.0, min_val=0.0)

# Timeout presets (seconds)
TIMEOUT_SIZE_PROBE = get_float_env("ADVIDEO_TIMEOUT_SIZE_PROBE", 15.0, min_val=0.1)  # HEAD only
TIMEOUT_CHUNK_FETCH = get_float_env("ADVIDEO_TIMEOUT_CHUNK_FETCH", 120.0, min_val=0.1)
TIMEOUT_TRANSFER = get_float_env("ADVIDEO_TIMEOUT_TRANSFER", 120.0, min_val=0.1)
TIMEOUT_CONTROL = get_float_env("ADVIDEO_TIMEOUT_CONTROL", 60.0, min_val=0.1)  # start/finish
TIMEOUT_POLL = get_float_env("ADVIDEO_TIMEOUT_POLL", 30.0, min_val=0.1)

# HTTP connection pool for the shared outbound client
HTTP_MAX_CONNECTIONS = get_int_env("ADVIDEO_HTTP_MAX_CONNECTIONS", 20, min_val=1)
HTTP_MAX_KEEPALIVE = get_int_env("ADVIDEO_HTTP_MAX_KEEPALIVE", 10, min_val=0)

# Server
PORT = get_int_env("ADVIDEO_PORT", 3000, min_val=1, max_val=65535)
HOST = os.getenv("ADVIDEO_HOST", "0.0.0.0")
LOG_LEVEL = get_log_level_env("ADVIDEO_LOG_LEVEL", "INFO")

# Rate limiting for the inbound upload route
# Set to "0" or "false" to disable rate limiting entirely
RATE_LIMIT_ENABLED = get_bool_env("ADVIDEO_RATE_LIMIT_ENABLED", True)
RATE_LIMIT_UPLOAD = os.getenv("ADVIDEO_RATE_LIMIT_UPLOAD", "30/minute")
# Options: "memory://" (per-process), or a Redis URL like "redis://localhost:6379"
RATE_LIMIT_STORAGE_URL = os.getenv("ADVIDEO_RATE_LIMIT_STORAGE_URL", "memory://")

# Trusted proxy configuration for X-Forwarded-For header
_trusted_proxies_env = os.getenv("ADVIDEO_TRUSTED_PROXIES", "")
TRUSTED_PROXIES = set(ip.strip() for ip in _trusted_proxies_env.split(",") if ip.strip())

# Error Message Truncation Limits
ERROR_SUMMARY_MAX_LENGTH = get_int_env("ADVIDEO_ERROR_SUMMARY_MAX_LENGTH", 100, min_val=10)
ERROR_DETAIL_MAX_LENGTH = get_int_env("ADVIDEO_ERROR_DETAIL_MAX_LENGTH", 500, min_val=10)

# Alerting Configuration
# Webhook URL notified when uploads fail; leave empty to disable
ALERT_WEBHOOK_URL = os.getenv("ADVIDEO_ALERT_WEBHOOK_URL", "")
ALERT_WEBHOOK_TIMEOUT = get_int_env("ADVIDEO_ALERT_WEBHOOK_TIMEOUT", 10, min_val=1)
# Minimum interval between alerts of the same type (seconds)
ALERT_RATE_LIMIT_SECONDS = get_int_env("ADVIDEO_ALERT_RATE_LIMIT_SECONDS", 300, min_val=0)
# Per-account failure counts reported in alerts: reset window and size cap
ALERT_ACCOUNT_WINDOW_SECONDS = get_int_env("ADVIDEO_ALERT_ACCOUNT_WINDOW_SECONDS", 3600, min_val=1)
ALERT_MAX_TRACKED_ACCOUNTS = get_int_env("ADVIDEO_ALERT_MAX_TRACKED_ACCOUNTS", 1000, min_val=1)

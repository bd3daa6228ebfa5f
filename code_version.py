"""
Code version reported by /health and the advideo_info metric.

Set ADVIDEO_CODE_VERSION (short git commit hash) and ADVIDEO_BUILD_TIMESTAMP
during the container build; local runs fall back to "dev".
"""

import os

CODE_VERSION = os.environ.get("ADVIDEO_CODE_VERSION", "dev")

BUILD_TIMESTAMP = os.environ.get("ADVIDEO_BUILD_TIMESTAMP", "")


def get_version_info() -> dict:
    """Get full version information for debugging."""
    return {
        "code_version": CODE_VERSION,
        "build_timestamp": BUILD_TIMESTAMP or "unknown",
    }

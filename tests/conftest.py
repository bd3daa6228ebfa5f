"""
Pytest fixtures for advideo tests.

Provides an in-process fake of the source host and the Graph API ingestion
endpoint, served through httpx.MockTransport so the real client code runs
end to end without network access.
"""

import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest

from ingest.alerts import reset_metrics
from ingest.models import UploadPolicy

SOURCE_HOST = "cdn.example.com"
SOURCE_URL = f"https://{SOURCE_HOST}/videos/clip.mp4"
ACCOUNT_ID = "act_123456789"


def source_bytes(start: int, end: int) -> bytes:
    """Deterministic source content for the inclusive range start..end."""
    return bytes(i % 251 for i in range(start, end + 1))


def form_fields(request: httpx.Request) -> Dict[str, object]:
    """Decode urlencoded or multipart form bodies sent to the fake platform."""
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

    boundary = content_type.split("boundary=", 1)[1].encode()
    fields: Dict[str, object] = {}
    for part in request.content.split(b"--" + boundary):
        head, sep, body = part.partition(b"\r\n\r\n")
        if not sep:
            continue
        name = re.search(rb'name="([^"]+)"', head).group(1).decode()
        if body.endswith(b"\r\n"):
            body = body[:-2]
        fields[name] = body if b"filename=" in head else body.decode()
    return fields


def platform_error(status_code: int, message: str, is_transient: bool, code: int = 1) -> Tuple[int, dict]:
    return status_code, {
        "message": message,
        "type": "OAuthException",
        "code": code,
        "is_transient": is_transient,
        "fbtrace_id": "AbCdEf",
    }


class FakePlatform:
    """
    Scriptable source host plus ingestion endpoint.

    By default every chunk is acknowledged exactly and the first status check
    reports ``ready``.
    """

    def __init__(
        self,
        size: int,
        start_offset: int = 0,
        accept: Optional[int] = None,
        statuses: Optional[List[str]] = None,
    ):
        self.size = size
        self.start_offset = start_offset
        self.accept = accept
        self.statuses = list(statuses or ["ready"])
        self.content_length: Optional[str] = str(size)
        self.stall_at: Optional[int] = None
        self.stalls_remaining: Optional[int] = None
        self.start_errors: List[Tuple[int, dict]] = []
        self.transfer_errors: List[Tuple[int, dict]] = []
        self.finish_response: dict = {"success": True}

        self.phases: List[str] = []
        self.sessions = 0
        self.fetched_ranges: List[Tuple[int, int]] = []
        self.transfers: List[Tuple[str, int]] = []
        self.status_checks = 0
        self.access_tokens: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == SOURCE_HOST:
            return self._source(request)
        return self._graph(request)

    def _source(self, request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            headers = {"content-length": self.content_length} if self.content_length is not None else {}
            return httpx.Response(200, headers=headers)

        match = re.match(r"bytes=(\d+)-(\d+)", request.headers.get("range", ""))
        if not match:
            return httpx.Response(200, content=source_bytes(0, self.size - 1))
        start, end = int(match.group(1)), min(int(match.group(2)), self.size - 1)
        self.fetched_ranges.append((start, end))
        return httpx.Response(
            206,
            headers={"content-range": f"bytes {start}-{end}/{self.size}"},
            content=source_bytes(start, end),
        )

    def _graph(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            self.status_checks += 1
            self.access_tokens.append(request.url.params.get("access_token"))
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return httpx.Response(200, json={"status": {"video_status": status}, "id": request.url.path.rsplit("/", 1)[-1]})

        fields = form_fields(request)
        self.access_tokens.append(fields.get("access_token"))
        phase = fields["upload_phase"]
        self.phases.append(phase)

        if phase == "start":
            if self.start_errors:
                status_code, error = self.start_errors.pop(0)
                return httpx.Response(status_code, json={"error": error})
            self.sessions += 1
            return httpx.Response(
                200,
                json={
                    "upload_session_id": f"session-{self.sessions}",
                    "video_id": f"video-{self.sessions}",
                    "start_offset": str(self.start_offset),
                    "end_offset": str(min(self.start_offset + 1024, self.size)),
                },
            )

        if phase == "transfer":
            offset = int(fields["start_offset"])
            chunk = fields["video_file_chunk"]
            self.transfers.append((fields["upload_session_id"], offset))
            assert chunk == source_bytes(offset, offset + len(chunk) - 1)

            if self.transfer_errors:
                status_code, error = self.transfer_errors.pop(0)
                return httpx.Response(status_code, json={"error": error})
            if self.stall_at is not None and offset >= self.stall_at and self.stalls_remaining != 0:
                next_offset = offset
                if self.stalls_remaining is not None:
                    self.stalls_remaining -= 1
            else:
                next_offset = min(offset + min(len(chunk), self.accept or len(chunk)), self.size)
            return httpx.Response(
                200,
                json={"start_offset": str(next_offset), "end_offset": str(min(next_offset + len(chunk), self.size))},
            )

        if phase == "finish":
            return httpx.Response(200, json=self.finish_response)

        return httpx.Response(400, json={"error": {"message": f"Unknown phase {phase}", "code": 100}})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())


def fast_policy(**overrides) -> UploadPolicy:
    """Upload policy with small chunks and no delays."""
    values = {
        "chunk_size": 1000,
        "max_video_size": 250 * 1024 * 1024,
        "inter_chunk_delay": 0,
        "poll_interval": 0,
        "poll_max_attempts": 3,
        "max_attempts": 2,
        "retry_backoff": 0,
    }
    values.update(overrides)
    return UploadPolicy(**values)


@pytest.fixture(autouse=True)
def reset_alert_metrics():
    """Reset alert counters around each test."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def access_token(monkeypatch):
    monkeypatch.setenv("FACEBOOK_ACCESS_TOKEN", "test-token")
    return "test-token"

"""HTTP client for the Graph API ad-video chunked upload protocol."""

import logging
from typing import Any, Dict, Optional

import httpx

import config
from ingest.enums import ProcessingStatus, UploadPhase
from ingest.errors import PlatformError, ProtocolViolation
from ingest.http_client import ClientConfig
from ingest.models import ChunkAck

logger = logging.getLogger(__name__)


def normalize_account_id(account_id: str) -> str:
    """Return the ``act_``-prefixed ad account id the ingestion endpoint expects."""
    account_id = account_id.strip()
    if account_id.startswith("act_"):
        return account_id
    return f"act_{account_id}"


def _parse_offset(data: Dict[str, Any], key: str, required: bool = True) -> Optional[int]:
    """Offsets come back as decimal strings; anything else is a protocol violation."""
    value = data.get(key)
    if value is None:
        if required:
            raise ProtocolViolation("Unexpected response from video platform", details=f"Missing {key}")
        return None
    try:
        offset = int(value)
    except (TypeError, ValueError):
        raise ProtocolViolation(
            "Unexpected response from video platform",
            details=f"{key} is not an integer: {value!r}",
        )
    if offset < 0:
        raise ProtocolViolation("Unexpected response from video platform", details=f"Negative {key}: {offset}")
    return offset


class GraphVideoClient:
    """
    Client for the ``/{act_id}/advideos`` ingestion endpoint and video status.

    All calls raise PlatformError for non-2xx responses (with the platform's
    ``error`` object as payload) and for network failures (status_code 0).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        client_config: ClientConfig,
        access_token: str,
        base_url: str = config.GRAPH_API_URL,
        api_version: str = config.GRAPH_API_VERSION,
    ):
        """
        Initialize the Graph API client.

        Args:
            client: Shared pooled HTTP client (not owned, not closed here)
            client_config: Per-call timeouts
            access_token: Platform access token
            base_url: Graph API host (e.g., https://graph.facebook.com)
            api_version: Graph API version path segment (e.g., v19.0)
        """
        self.client = client
        self.client_config = client_config
        self.access_token = access_token
        self.base_url = f"{base_url.rstrip('/')}/{api_version}"

    def _advideos_url(self, account_id: str) -> str:
        return f"{self.base_url}/{normalize_account_id(account_id)}/advideos"

    async def _request(self, method: str, url: str, timeout: float, **kwargs) -> dict:
        """Make a platform request and return the decoded JSON body."""
        try:
            resp = await self.client.request(method, url, timeout=timeout, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            payload = None
            try:
                body = e.response.json()
                if isinstance(body, dict) and isinstance(body.get("error"), dict):
                    payload = body["error"]
            except ValueError:
                pass
            message = payload.get("message", str(e)) if payload else e.response.reason_phrase or str(e)
            raise PlatformError(e.response.status_code, message, payload)
        except httpx.TimeoutException as e:
            raise PlatformError(0, f"Timeout after {timeout}s: {e}")
        except httpx.RequestError as e:
            raise PlatformError(0, f"Connection error: {e}")

        try:
            data = resp.json()
        except ValueError:
            raise ProtocolViolation(
                "Unexpected response from video platform",
                details=f"Non-JSON body from {method} {url}",
            )
        if not isinstance(data, dict):
            raise ProtocolViolation("Unexpected response from video platform", details="Response is not an object")
        # Graph can answer 200 with an error object
        if isinstance(data.get("error"), dict):
            payload = data["error"]
            raise PlatformError(resp.status_code, payload.get("message", "Unknown platform error"), payload)
        return data

    async def start(self, account_id: str, file_size: int) -> Dict[str, Any]:
        """
        Open an upload session.

        Returns:
            Dict with upload_session_id, video_id and start_offset (int)
        """
        data = await self._request(
            "POST",
            self._advideos_url(account_id),
            timeout=self.client_config.control_timeout,
            data={
                "upload_phase": UploadPhase.START.value,
                "file_size": str(file_size),
                "access_token": self.access_token,
            },
        )
        session_id = data.get("upload_session_id")
        video_id = data.get("video_id")
        if not session_id or not video_id:
            raise ProtocolViolation(
                "Unexpected response from video platform",
                details="start response missing upload_session_id or video_id",
            )
        return {
            "upload_session_id": str(session_id),
            "video_id": str(video_id),
            "start_offset": _parse_offset(data, "start_offset"),
        }

    async def transfer(self, account_id: str, session_id: str, start_offset: int, chunk: bytes) -> ChunkAck:
        """
        Send one chunk as a multipart binary file part.

        Returns:
            ChunkAck whose next_offset is the platform's start_offset
        """
        data = await self._request(
            "POST",
            self._advideos_url(account_id),
            timeout=self.client_config.transfer_timeout,
            data={
                "upload_phase": UploadPhase.TRANSFER.value,
                "upload_session_id": session_id,
                "start_offset": str(start_offset),
                "access_token": self.access_token,
            },
            files={"video_file_chunk": ("chunk", chunk, "application/octet-stream")},
        )
        return ChunkAck(
            next_offset=_parse_offset(data, "start_offset"),
            end_offset=_parse_offset(data, "end_offset", required=False),
        )

    async def finish(self, account_id: str, session_id: str) -> None:
        """Close the upload session."""
        data = await self._request(
            "POST",
            self._advideos_url(account_id),
            timeout=self.client_config.control_timeout,
            data={
                "upload_phase": UploadPhase.FINISH.value,
                "upload_session_id": session_id,
                "access_token": self.access_token,
            },
        )
        if data.get("success") is False:
            raise ProtocolViolation("Video platform rejected upload completion", details=data)

    async def get_status(self, video_id: str) -> ProcessingStatus:
        """Fetch the processing status of an uploaded video."""
        data = await self._request(
            "GET",
            f"{self.base_url}/{video_id}",
            timeout=self.client_config.poll_timeout,
            params={"fields": "status", "access_token": self.access_token},
        )
        status = data.get("status")
        raw = status.get("video_status") if isinstance(status, dict) else None
        return ProcessingStatus.from_platform(raw)

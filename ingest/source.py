"""
Source video access: size probing and range-addressed chunk pulls.

The source is only ever read through HEAD and ranged GET requests so an
upload never holds more than one chunk in memory.
"""

import logging
import re

import httpx

from ingest.errors import SizeUnavailable, SourceFetchError, SourceRangeMismatch, TooLarge
from ingest.http_client import ClientConfig

logger = logging.getLogger(__name__)

# "bytes 0-1023/4096" or "bytes 0-1023/*"
_CONTENT_RANGE_RE = re.compile(r"^\s*bytes\s+(\d+)-(\d+)/(\d+|\*)\s*$", re.IGNORECASE)


class SizeProbe:
    """Determines the byte length of a source video without downloading it."""

    def __init__(self, client: httpx.AsyncClient, client_config: ClientConfig, max_size: int):
        self.client = client
        self.client_config = client_config
        self.max_size = max_size

    async def probe(self, source_url: str) -> int:
        """
        Issue a HEAD request and return the declared Content-Length.

        Raises:
            SizeUnavailable: Header missing, unparsable or not positive
            TooLarge: Declared size exceeds the configured ceiling
            SourceFetchError: Source unreachable or non-2xx
        """
        try:
            resp = await self.client.head(source_url, timeout=self.client_config.probe_timeout)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceFetchError(
                "Unable to read video source",
                details=f"HEAD {source_url} returned {e.response.status_code}",
            )
        except httpx.RequestError as e:
            raise SourceFetchError("Unable to reach video source", details=f"{type(e).__name__}: {e}")

        raw_length = resp.headers.get("content-length")
        try:
            size = int(raw_length) if raw_length is not None else 0
        except ValueError:
            size = 0

        if size <= 0:
            raise SizeUnavailable(
                "Unable to determine video file size",
                details=f"Content-Length header was {raw_length!r}",
            )

        if size > self.max_size:
            raise TooLarge(size, self.max_size)

        logger.debug(f"Source size {size} bytes for {source_url}")
        return size


class ChunkSource:
    """Pulls inclusive byte ranges of the source video on demand."""

    def __init__(self, client: httpx.AsyncClient, client_config: ClientConfig):
        self.client = client
        self.client_config = client_config

    async def fetch(self, source_url: str, start: int, end: int) -> bytes:
        """
        Fetch bytes ``start..end`` (inclusive) of the source.

        Raises:
            SourceRangeMismatch: Upstream ignored the range or served a different one
            SourceFetchError: Source unreachable or non-2xx
        """
        if start < 0 or end < start:
            raise ValueError(f"Invalid byte range {start}-{end}")

        expected_length = end - start + 1
        headers = {"Range": f"bytes={start}-{end}"}

        try:
            resp = await self.client.get(
                source_url,
                headers=headers,
                timeout=self.client_config.chunk_fetch_timeout,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceFetchError(
                "Unable to read video source",
                details=f"GET {source_url} range {start}-{end} returned {e.response.status_code}",
            )
        except httpx.RequestError as e:
            raise SourceFetchError("Unable to reach video source", details=f"{type(e).__name__}: {e}")

        if resp.status_code != 206:
            raise SourceRangeMismatch(
                "Video source does not support range requests",
                details=f"Expected 206 for range {start}-{end}, got {resp.status_code}",
            )

        content_range = resp.headers.get("content-range", "")
        match = _CONTENT_RANGE_RE.match(content_range)
        if not match or int(match.group(1)) != start or int(match.group(2)) != end:
            raise SourceRangeMismatch(
                "Video source returned a different byte range",
                details=f"Requested {start}-{end}, got Content-Range {content_range!r}",
            )

        data = resp.content
        if len(data) != expected_length:
            raise SourceRangeMismatch(
                "Video source returned a short or oversized range",
                details=f"Requested {expected_length} bytes, got {len(data)}",
            )

        return data

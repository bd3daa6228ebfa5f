"""Tests for ingest/source.py size probing and ranged chunk pulls."""

import httpx
import pytest

from conftest import SOURCE_URL, FakePlatform, source_bytes
from ingest.errors import SizeUnavailable, SourceFetchError, SourceRangeMismatch, TooLarge
from ingest.http_client import ClientConfig
from ingest.source import ChunkSource, SizeProbe

MIB = 1024 * 1024


class TestSizeProbe:
    """Tests for SizeProbe.probe()."""

    @pytest.mark.asyncio
    async def test_returns_content_length(self):
        platform = FakePlatform(size=5000)
        async with platform.client() as client:
            size = await SizeProbe(client, ClientConfig(), max_size=250 * MIB).probe(SOURCE_URL)
        assert size == 5000

    @pytest.mark.asyncio
    async def test_rejects_oversized_source(self):
        """A declared 300 MiB source is over the 250 MiB ceiling."""
        platform = FakePlatform(size=300 * MIB)
        async with platform.client() as client:
            with pytest.raises(TooLarge) as exc_info:
                await SizeProbe(client, ClientConfig(), max_size=250 * MIB).probe(SOURCE_URL)

        error = exc_info.value
        assert error.message == "Video too large"
        assert error.details == "Max allowed size is 250MB. Got 300.0MB"
        assert error.transient is False
        assert platform.fetched_ranges == []

    @pytest.mark.asyncio
    async def test_size_at_limit_accepted(self):
        platform = FakePlatform(size=250 * MIB)
        async with platform.client() as client:
            size = await SizeProbe(client, ClientConfig(), max_size=250 * MIB).probe(SOURCE_URL)
        assert size == 250 * MIB

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content_length", [None, "0", "-10", "lots"])
    async def test_unusable_content_length(self, content_length):
        platform = FakePlatform(size=5000)
        platform.content_length = content_length
        async with platform.client() as client:
            with pytest.raises(SizeUnavailable) as exc_info:
                await SizeProbe(client, ClientConfig(), max_size=250 * MIB).probe(SOURCE_URL)
        assert exc_info.value.message == "Unable to determine video file size"

    @pytest.mark.asyncio
    async def test_http_error_is_source_fetch_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(SourceFetchError) as exc_info:
                await SizeProbe(client, ClientConfig(), max_size=MIB).probe(SOURCE_URL)
        assert "404" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_connection_error_is_source_fetch_error(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(SourceFetchError) as exc_info:
                await SizeProbe(client, ClientConfig(), max_size=MIB).probe(SOURCE_URL)
        assert exc_info.value.message == "Unable to reach video source"


class TestChunkSource:
    """Tests for ChunkSource.fetch()."""

    @pytest.mark.asyncio
    async def test_fetches_inclusive_range(self):
        platform = FakePlatform(size=5000)
        async with platform.client() as client:
            data = await ChunkSource(client, ClientConfig()).fetch(SOURCE_URL, 1000, 1999)

        assert data == source_bytes(1000, 1999)
        assert len(data) == 1000
        assert platform.fetched_ranges == [(1000, 1999)]

    @pytest.mark.asyncio
    async def test_sends_range_header(self):
        seen = {}

        def handler(request):
            seen["range"] = request.headers.get("range")
            return httpx.Response(206, headers={"content-range": "bytes 10-19/100"}, content=b"x" * 10)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await ChunkSource(client, ClientConfig()).fetch(SOURCE_URL, 10, 19)

        assert seen["range"] == "bytes=10-19"

    @pytest.mark.asyncio
    async def test_full_body_response_rejected(self):
        """A 200 means the source ignored the Range header."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 100))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(SourceRangeMismatch):
                await ChunkSource(client, ClientConfig()).fetch(SOURCE_URL, 0, 9)

    @pytest.mark.asyncio
    async def test_different_range_rejected(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(206, headers={"content-range": "bytes 0-9/100"}, content=b"x" * 10)
        )
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(SourceRangeMismatch) as exc_info:
                await ChunkSource(client, ClientConfig()).fetch(SOURCE_URL, 10, 19)
        assert "bytes 0-9/100" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_short_body_rejected(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(206, headers={"content-range": "bytes 10-19/*"}, content=b"x" * 4)
        )
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(SourceRangeMismatch):
                await ChunkSource(client, ClientConfig()).fetch(SOURCE_URL, 10, 19)

    @pytest.mark.asyncio
    async def test_server_error_is_source_fetch_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(SourceFetchError) as exc_info:
                await ChunkSource(client, ClientConfig()).fetch(SOURCE_URL, 0, 9)
        assert not isinstance(exc_info.value, SourceRangeMismatch)
        assert exc_info.value.transient is False

    @pytest.mark.asyncio
    async def test_invalid_range_raises_value_error(self):
        async with FakePlatform(size=100).client() as client:
            with pytest.raises(ValueError):
                await ChunkSource(client, ClientConfig()).fetch(SOURCE_URL, 10, 5)

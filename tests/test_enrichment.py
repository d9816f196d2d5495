"""Tests for IPFS metadata enrichment."""

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from core.errors import FetchError
from enrichment.metadata import MetadataFetcher, gateway_url
from models.events import TokenMetadata


def make_fetcher(handler, **kwargs) -> MetadataFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MetadataFetcher(http_client=client, **kwargs)


class RecordingHandler:
    """MockTransport handler that replays a list of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class TestGatewayUrl:
    """Tests for URI to gateway mapping."""

    def test_default_gateway(self):
        assert gateway_url("https://ipfs.io/ipfs/QmABC") == "https://ipfs.io/ipfs/QmABC"

    def test_custom_gateway(self):
        url = gateway_url("https://ipfs.io/ipfs/QmABC/meta.json", "https://gw.example/ipfs/")
        assert url == "https://gw.example/ipfs/QmABC/meta.json"

    def test_gateway_without_trailing_slash(self):
        assert gateway_url("https://ipfs.io/ipfs/QmABC", "https://gw.example/ipfs") == "https://gw.example/ipfs/QmABC"

    def test_suffix_after_first_marker(self):
        url = gateway_url("https://ipfs.io/ipfs/QmA/ipfs.io/ipfs/QmB")
        assert url == "https://ipfs.io/ipfs/QmA/ipfs.io/ipfs/QmB"

    def test_missing_marker(self):
        with pytest.raises(FetchError) as exc_info:
            gateway_url("https://cf-ipfs.com/ipfs/QmABC")
        assert exc_info.value.retryable is False

    def test_empty_suffix(self):
        with pytest.raises(FetchError):
            gateway_url("https://ipfs.io/ipfs/")

    def test_non_string(self):
        with pytest.raises(FetchError):
            gateway_url(None)


class TestMetadataFetcher:
    """Tests for MetadataFetcher."""

    @pytest.mark.asyncio
    async def test_description_only_document(self):
        """Test a partial document only fills the fields it has."""
        handler = RecordingHandler(httpx.Response(200, json={"description": "X"}))
        fetcher = make_fetcher(handler)

        metadata = await fetcher.fetch("https://ipfs.io/ipfs/QmHash")

        assert metadata == TokenMetadata(description="X")
        assert len(handler.requests) == 1
        assert str(handler.requests[0].url) == "https://ipfs.io/ipfs/QmHash"
        assert fetcher.get_stats() == {"fetched": 1, "errors": 0}

    @pytest.mark.asyncio
    async def test_full_document(self):
        handler = RecordingHandler(httpx.Response(200, json={
            "name": "Pixel Dragons",
            "description": "Dragons",
            "twitter": "https://x.com/px",
            "telegram": "https://t.me/px",
            "website": "https://px.example",
            "image": "https://ipfs.io/ipfs/QmImg",
        }))
        fetcher = make_fetcher(handler, gateway="https://gw.example/ipfs/")

        metadata = await fetcher.fetch("https://ipfs.io/ipfs/QmHash")

        assert metadata.twitter == "https://x.com/px"
        assert metadata.image == "https://ipfs.io/ipfs/QmImg"
        assert handler.requests[0].url.host == "gw.example"

    @pytest.mark.asyncio
    async def test_missing_marker_issues_no_request(self):
        """Test a URI without the IPFS marker fails before any request."""
        handler = RecordingHandler(httpx.Response(200, json={}))
        fetcher = make_fetcher(handler)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(FetchError):
                await fetcher.fetch("https://arweave.net/abc")

        assert handler.requests == []
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_errors_retried(self):
        handler = RecordingHandler(
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json={"image": "img"}),
        )
        fetcher = make_fetcher(handler)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            metadata = await fetcher.fetch("https://ipfs.io/ipfs/QmHash")

        assert metadata.image == "img"
        assert len(handler.requests) == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        handler = RecordingHandler(httpx.Response(500))
        fetcher = make_fetcher(handler, max_retries=3)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch("https://ipfs.io/ipfs/QmHash")

        assert exc_info.value.uri == "https://ipfs.io/ipfs/QmHash"
        assert len(handler.requests) == 3
        assert fetcher.get_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_invalid_json_retried(self):
        handler = RecordingHandler(httpx.Response(200, text="<html>gateway busy</html>"))
        fetcher = make_fetcher(handler, max_retries=2)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(FetchError):
                await fetcher.fetch("https://ipfs.io/ipfs/QmHash")

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_non_object_document_not_retried(self):
        handler = RecordingHandler(httpx.Response(200, json=["a", "b"]))
        fetcher = make_fetcher(handler)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(FetchError):
                await fetcher.fetch("https://ipfs.io/ipfs/QmHash")

        assert len(handler.requests) == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_started(self):
        fetcher = MetadataFetcher()
        with pytest.raises(FetchError, match="not started"):
            await fetcher.fetch("https://ipfs.io/ipfs/QmHash")

    @pytest.mark.asyncio
    async def test_start_stop_owned_client(self):
        fetcher = MetadataFetcher(timeout=1.0)
        await fetcher.start()
        assert fetcher._http_client is not None
        await fetcher.stop()
        assert fetcher._http_client is None

    @pytest.mark.asyncio
    async def test_unparseable_url_not_retried(self):
        handler = RecordingHandler(httpx.Response(200, json={}))
        fetcher = make_fetcher(handler)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch("https://ipfs.io/ipfs/Qm\x00bad")

        assert exc_info.value.retryable is False
        assert handler.requests == []
        sleep.assert_not_awaited()

"""Integration tests for the per-frame ingest pipeline."""

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from core.errors import WriteError
from core.monitoring import MetricsCollector
from core.pipeline import IngestPipeline
from enrichment.metadata import MetadataFetcher
from models.events import METADATA_PLACEHOLDER
from storage.gateway import INSERT_CREATION, INSERT_MIGRATION, INSERT_TRADE, PersistenceGateway
from stream.subscriptions import SubscriptionManager


class FakeBackend:
    """Records procedure calls; optionally fails chosen procedures."""

    def __init__(self, failures=None):
        self.calls = []
        self.failures = failures or {}

    async def start(self):
        pass

    async def stop(self):
        pass

    async def call(self, procedure, params):
        self.calls.append((procedure, params))
        error = self.failures.get(procedure)
        if error is not None:
            raise error
        return None

    def params_for(self, procedure):
        return [params for proc, params in self.calls if proc == procedure]


class Harness:
    """Pipeline wired to a fake backend, mock IPFS gateway and mock socket."""

    def __init__(self, metadata_response=None, failures=None, filter_spam_names=False):
        self.ipfs_requests = []
        self.metadata_response = metadata_response or httpx.Response(200, json={})
        self.backend = FakeBackend(failures)
        self.metrics = MetricsCollector()
        self.send = AsyncMock()
        self.subscriptions = SubscriptionManager()
        self.subscriptions.attach(self.send)
        self.fetcher = MetadataFetcher(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self._ipfs)),
        )
        self.pipeline = IngestPipeline(
            PersistenceGateway(self.backend, metrics=self.metrics),
            self.subscriptions,
            fetcher=self.fetcher,
            metrics=self.metrics,
            filter_spam_names=filter_spam_names,
        )

    def _ipfs(self, request):
        self.ipfs_requests.append(request)
        return self.metadata_response


CREATE_FRAME = {
    "signature": "5createSig",
    "mint": "MintPixel111111111111111111111111111111111",
    "traderPublicKey": "Trader111",
    "txType": "create",
    "initialBuy": 5000000,
    "solAmount": 0.2,
    "bondingCurveKey": "Curve111",
    "vTokensInBondingCurve": 1.07e9,
    "vSolInBondingCurve": 30.2,
    "marketCapSol": 28.1,
    "name": "Pixel Dragons",
    "symbol": "PXD",
    "uri": "https://ipfs.io/ipfs/QmPixel",
}


class TestIngestPipeline:
    """End-to-end tests for IngestPipeline.handle_frame."""

    @pytest.mark.asyncio
    async def test_create_frame_enriched_written_and_subscribed(self):
        """Test a create frame with metadata produces an enriched creation, a trade and subscriptions."""
        harness = Harness(httpx.Response(200, json={"description": "Dragons", "twitter": "https://x.com/px"}))

        classified = await harness.pipeline.handle_frame(CREATE_FRAME)

        assert classified.creation is not None and classified.trade is not None
        assert str(harness.ipfs_requests[0].url) == "https://ipfs.io/ipfs/QmPixel"

        [creation] = harness.backend.params_for(INSERT_CREATION)
        assert creation["p_mint_address"] == CREATE_FRAME["mint"]
        assert creation["p_description"] == "Dragons"
        assert creation["p_twitter"] == "https://x.com/px"
        assert creation["p_telegram"] == METADATA_PLACEHOLDER
        assert creation["p_website"] == METADATA_PLACEHOLDER
        assert creation["p_image"] == METADATA_PLACEHOLDER

        [trade] = harness.backend.params_for(INSERT_TRADE)
        assert trade["p_signature"] == "5createSig"
        assert trade["p_tx_type"] == "create"

        assert [c.args[0] for c in harness.send.await_args_list] == [
            '{"method": "subscribeTokenTrade", "keys": ["MintPixel111111111111111111111111111111111"]}',
            '{"method": "subscribeRaydiumLiquidity", "keys": ["MintPixel111111111111111111111111111111111"]}',
        ]
        summary = harness.metrics.get_summary()
        assert summary["records_written"] == 2
        assert summary["metadata_fetched"] == 1
        assert summary["subscribed_mints"] == 1

    @pytest.mark.asyncio
    async def test_announcement_without_uri(self):
        """Test name+mint only gives one creation write and no metadata request."""
        harness = Harness()

        await harness.pipeline.handle_frame({"name": "Foo", "mint": "M1"})

        assert [proc for proc, _ in harness.backend.calls] == [INSERT_CREATION]
        assert harness.ipfs_requests == []
        params = harness.backend.calls[0][1]
        assert params["p_symbol"] == "UNKNOWN"
        assert params["p_description"] == METADATA_PLACEHOLDER

    @pytest.mark.asyncio
    async def test_trade_frame(self):
        harness = Harness()

        await harness.pipeline.handle_frame({"signature": "S1", "txType": "buy", "mint": "M1"})

        assert [proc for proc, _ in harness.backend.calls] == [INSERT_TRADE]
        params = harness.backend.calls[0][1]
        assert params["p_initial_buy"] == 0
        assert params["p_token_amount"] == 0
        assert params["p_new_token_balance"] == 0
        harness.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_raydium_frame(self):
        harness = Harness()
        frame = {"signature": "S9", "mint": "M1", "txType": "addLiquidity", "pool": "raydium", "price": 0.01}

        await harness.pipeline.handle_frame(frame)

        procedures = sorted(proc for proc, _ in harness.backend.calls)
        assert procedures == sorted([INSERT_MIGRATION, INSERT_TRADE])
        [migration] = harness.backend.params_for(INSERT_MIGRATION)
        assert migration["p_pool"] == "raydium"
        assert migration["p_price"] == 0.01

    @pytest.mark.asyncio
    async def test_unmatched_frame_writes_nothing(self):
        harness = Harness()

        classified = await harness.pipeline.handle_frame({"message": "Successfully subscribed to token creation events."})

        assert classified.is_empty
        assert harness.backend.calls == []

    @pytest.mark.asyncio
    async def test_metadata_failure_writes_defaults(self):
        """Test a failing metadata fetch still writes the creation with placeholders."""
        harness = Harness(httpx.Response(500))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            await harness.pipeline.handle_frame(CREATE_FRAME)

        assert len(harness.ipfs_requests) == 3
        [creation] = harness.backend.params_for(INSERT_CREATION)
        assert creation["p_description"] == METADATA_PLACEHOLDER
        assert harness.metrics.get_summary()["metadata_failed"] == 1
        assert harness.subscriptions.is_subscribed(CREATE_FRAME["mint"])

    @pytest.mark.asyncio
    async def test_non_ipfs_uri_skips_fetch(self):
        harness = Harness()
        frame = dict(CREATE_FRAME, uri="https://arweave.net/meta.json")

        await harness.pipeline.handle_frame(frame)

        assert harness.ipfs_requests == []
        assert len(harness.backend.params_for(INSERT_CREATION)) == 1

    @pytest.mark.asyncio
    async def test_creation_failure_does_not_block_trade(self):
        """Test a rejected creation write leaves the trade write and subscription intact."""
        harness = Harness(failures={INSERT_CREATION: WriteError("duplicate key", transient=False)})

        await harness.pipeline.handle_frame(CREATE_FRAME)

        assert len(harness.backend.params_for(INSERT_CREATION)) == 1
        assert len(harness.backend.params_for(INSERT_TRADE)) == 1
        assert harness.send.await_count == 2
        summary = harness.metrics.get_summary()
        assert summary["records_written"] == 1
        assert summary["records_failed"] == 1

    @pytest.mark.asyncio
    async def test_spam_filter_skips_creation(self):
        harness = Harness(filter_spam_names=True)
        frame = dict(CREATE_FRAME, name="Free Airdrop Coin")

        await harness.pipeline.handle_frame(frame)

        assert harness.backend.params_for(INSERT_CREATION) == []
        assert len(harness.backend.params_for(INSERT_TRADE)) == 1
        assert harness.ipfs_requests == []
        harness.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_repeated_creation_subscribes_once(self):
        harness = Harness()

        await harness.pipeline.handle_frame({"name": "Foo", "mint": "M1"})
        await harness.pipeline.handle_frame({"name": "Foo", "mint": "M1"})

        assert len(harness.backend.params_for(INSERT_CREATION)) == 2
        assert harness.send.await_count == 2

    @pytest.mark.asyncio
    async def test_subscription_failure_recorded(self):
        harness = Harness()
        harness.subscriptions.detach()

        await harness.pipeline.handle_frame({"name": "Foo", "mint": "M1"})

        assert len(harness.backend.params_for(INSERT_CREATION)) == 1
        assert harness.metrics.get_summary()["frame_errors"] == 1

    @pytest.mark.asyncio
    async def test_unparseable_uri_still_written(self):
        """Test a URI httpx cannot parse falls back to placeholders."""
        harness = Harness()
        frame = dict(CREATE_FRAME, uri="https://ipfs.io/ipfs/Qm\x00bad")

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await harness.pipeline.handle_frame(frame)

        assert harness.ipfs_requests == []
        sleep.assert_not_awaited()
        [creation] = harness.backend.params_for(INSERT_CREATION)
        assert creation["p_description"] == METADATA_PLACEHOLDER
        assert harness.subscriptions.is_subscribed(CREATE_FRAME["mint"])
        summary = harness.metrics.get_summary()
        assert summary["metadata_failed"] == 1
        assert summary["frame_errors"] == 0

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_still_written(self):
        harness = Harness()

        with patch.object(harness.fetcher, "fetch", new=AsyncMock(side_effect=RuntimeError("boom"))):
            await harness.pipeline.handle_frame(CREATE_FRAME)

        assert len(harness.backend.params_for(INSERT_CREATION)) == 1
        assert harness.send.await_count == 2
        assert harness.metrics.get_summary()["metadata_failed"] == 1

    @pytest.mark.asyncio
    async def test_numeric_mint_written_and_subscribed(self):
        """Test a non-string mint is written and subscribed as text."""
        harness = Harness()

        await harness.pipeline.handle_frame({"name": "Foo", "mint": 12345})

        [creation] = harness.backend.params_for(INSERT_CREATION)
        assert creation["p_mint_address"] == "12345"
        assert [c.args[0] for c in harness.send.await_args_list] == [
            '{"method": "subscribeTokenTrade", "keys": ["12345"]}',
            '{"method": "subscribeRaydiumLiquidity", "keys": ["12345"]}',
        ]
        summary = harness.metrics.get_summary()
        assert summary["records_written"] == 1
        assert summary["frame_errors"] == 0

"""Per-frame ingest pipeline: classify, enrich, persist, subscribe."""

import asyncio
import logging
from typing import Any, Dict, Optional

from core.errors import FetchError
from core.validation import is_valid_token_name
from enrichment.metadata import MetadataFetcher
from models.events import TokenCreationEvent
from storage.gateway import PersistenceGateway
from stream.classifier import ClassifiedFrame, classify_frame
from stream.subscriptions import SubscriptionManager
from .monitoring import MetricsCollector

logger = logging.getLogger(__name__)


class IngestPipeline:
    """
    Handles one decoded feed frame at a time.

    A frame may match several record shapes. The creation path, the
    migration write and the trade write run concurrently and each has its
    own error handling, so one failing never blocks the others.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        subscriptions: SubscriptionManager,
        fetcher: Optional[MetadataFetcher] = None,
        metrics: Optional[MetricsCollector] = None,
        filter_spam_names: bool = False,
    ):
        self.gateway = gateway
        self.subscriptions = subscriptions
        self.fetcher = fetcher
        self.metrics = metrics
        self.filter_spam_names = filter_spam_names

    async def handle_frame(self, frame: Dict[str, Any]) -> ClassifiedFrame:
        """Classify `frame` and run every matching write path."""
        classified = classify_frame(frame)
        if classified.is_empty:
            logger.debug(f"Frame matched no record shape: {list(frame)[:5]}")
            return classified

        paths = []
        if classified.creation is not None:
            paths.append(self._guarded("creation", self._handle_creation(classified.creation)))
        if classified.migration is not None:
            logger.info(f"Raydium liquidity detected for {str(classified.migration.mint_address)[:8]}")
            paths.append(self._guarded("migration", self.gateway.insert_migration(classified.migration)))
        if classified.trade is not None:
            logger.debug(f"Trade detected: {classified.trade.tx_type} {str(classified.trade.mint_address)[:8]}")
            paths.append(self._guarded("trade", self.gateway.insert_trade(classified.trade)))

        await asyncio.gather(*paths)
        return classified

    async def _guarded(self, name: str, coro):
        try:
            await coro
        except Exception as e:
            logger.error(f"Error in {name} path: {e}")
            if self.metrics:
                self.metrics.record_frame_error()

    async def enrich(self, token: TokenCreationEvent) -> TokenCreationEvent:
        """
        Merge off-chain metadata into `token`, best effort.

        Returns the token unchanged when there is no URI or the fetch fails.
        """
        if not token.uri or self.fetcher is None:
            logger.debug(f"No metadata URI for {str(token.mint_address)[:8]}")
            return token

        try:
            metadata = await self.fetcher.fetch(token.uri)
        except FetchError as e:
            logger.warning(f"Metadata fetch failed for {str(token.mint_address)[:8]}: {e}")
            if self.metrics:
                self.metrics.record_fetch(ok=False)
            return token
        except Exception as e:
            logger.warning(f"Unexpected metadata error for {str(token.mint_address)[:8]}: {type(e).__name__}: {e}")
            if self.metrics:
                self.metrics.record_fetch(ok=False)
            return token

        if self.metrics:
            self.metrics.record_fetch(ok=True)
        return token.with_metadata(metadata)

    async def _handle_creation(self, token: TokenCreationEvent):
        if self.filter_spam_names and not is_valid_token_name(token.name):
            logger.info(f"Skipping spam-looking token {token.name!r} ({str(token.mint_address)[:8]})")
            return

        logger.info(f"New token detected: {token.name} ({token.symbol})")
        enriched = await self.enrich(token)
        await self.gateway.insert_creation(enriched)

        await self.subscriptions.subscribe_token(token.mint_address)
        if self.metrics:
            self.metrics.set_subscribed_mints(len(self.subscriptions))

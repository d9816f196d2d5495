"""Persistence gateway for the three record kinds."""

import logging
from typing import Any, Dict, Optional

from core.errors import WriteError
from core.monitoring import MetricsCollector
from core.retry import retry
from models.events import MigrationEvent, RecordKind, TokenCreationEvent, TradeEvent
from .backend import RpcBackend

logger = logging.getLogger(__name__)

INSERT_CREATION = "insert_token_with_prefix"
INSERT_MIGRATION = "insert_migrating_with_prefix"
INSERT_TRADE = "insert_trade_with_prefix"


def is_transient(error: BaseException) -> bool:
    """Only transient write failures are retried."""
    return isinstance(error, WriteError) and error.transient


class PersistenceGateway:
    """
    Writes normalized records through the backend procedures.

    Transient failures are retried with the standard backoff policy;
    permanent rejections (constraint violations, bad input) are not.
    Failures are logged and reported as False, never raised.
    """

    def __init__(
        self,
        backend: RpcBackend,
        metrics: Optional[MetricsCollector] = None,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 10.0,
    ):
        self.backend = backend
        self.metrics = metrics
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay

    async def _write(self, kind: RecordKind, procedure: str, params: Dict[str, Any]) -> bool:
        mint = params.get("p_mint_address") or "?"
        try:
            await retry(
                lambda: self.backend.call(procedure, params),
                max_retries=self.max_retries,
                initial_delay=self.initial_delay,
                max_delay=self.max_delay,
                should_retry=is_transient,
            )
        except WriteError as e:
            logger.error(f"Error inserting {kind.value} for {str(mint)[:8]}: {e.message}")
            self._record(kind, ok=False)
            return False
        except Exception as e:
            logger.error(f"Unexpected error inserting {kind.value} for {str(mint)[:8]}: {e}")
            self._record(kind, ok=False)
            return False

        logger.info(f"Inserted {kind.value} for {str(mint)[:8]}")
        self._record(kind, ok=True)
        return True

    def _record(self, kind: RecordKind, ok: bool):
        if self.metrics:
            self.metrics.record_write(kind.value, ok)

    async def insert_creation(self, record: TokenCreationEvent) -> bool:
        """Write a token creation record."""
        return await self._write(RecordKind.CREATION, INSERT_CREATION, record.to_rpc_params())

    async def insert_migration(self, record: MigrationEvent) -> bool:
        """Write a Raydium migration record."""
        return await self._write(RecordKind.MIGRATION, INSERT_MIGRATION, record.to_rpc_params())

    async def insert_trade(self, record: TradeEvent) -> bool:
        """Write a trade record."""
        return await self._write(RecordKind.TRADE, INSERT_TRADE, record.to_rpc_params())

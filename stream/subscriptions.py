"""PumpPortal subscription protocol."""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from core.batch import process_batch

logger = logging.getLogger(__name__)

SUBSCRIBE_NEW_TOKEN = "subscribeNewToken"
SUBSCRIBE_TOKEN_TRADE = "subscribeTokenTrade"
SUBSCRIBE_RAYDIUM_LIQUIDITY = "subscribeRaydiumLiquidity"

SendFn = Callable[[str], Awaitable[Any]]


def control_frame(method: str, keys: Optional[List[str]] = None) -> str:
    """Encode a subscription request."""
    payload: Dict[str, Any] = {"method": method}
    if keys is not None:
        payload["keys"] = keys
    return json.dumps(payload)


class SubscriptionManager:
    """
    Tracks and issues feed subscriptions.

    One new-token subscription per connection, plus trade and Raydium
    liquidity subscriptions for every mint observed. Subscriptions are
    never retracted; the mint set only grows. Requests are fire-and-forget,
    no acknowledgement is awaited.
    """

    def __init__(
        self,
        replay_chunk_size: int = 50,
        replay_batch_size: int = 5,
        replay_batch_delay: float = 0.2,
    ):
        self.replay_chunk_size = replay_chunk_size
        self.replay_batch_size = replay_batch_size
        self.replay_batch_delay = replay_batch_delay
        self._send: Optional[SendFn] = None
        self._mints: Set[str] = set()

        # Stats
        self._frames_sent = 0

    def attach(self, send: SendFn):
        """Bind to the send coroutine of the live connection."""
        self._send = send

    def detach(self):
        """Forget the connection; the mint set is kept for replay."""
        self._send = None

    @property
    def subscribed_mints(self) -> Set[str]:
        return set(self._mints)

    def __len__(self) -> int:
        return len(self._mints)

    def is_subscribed(self, mint: str) -> bool:
        return mint in self._mints

    async def _send_frame(self, frame: str):
        if self._send is None:
            raise RuntimeError("Subscription manager is not attached to a connection")
        await self._send(frame)
        self._frames_sent += 1

    async def subscribe_new_tokens(self):
        """Subscribe to new token announcements."""
        logger.info("Subscribing to new token events...")
        await self._send_frame(control_frame(SUBSCRIBE_NEW_TOKEN))

    async def subscribe_token(self, mint: str) -> bool:
        """
        Subscribe to trades and Raydium liquidity for `mint`.

        Returns False if the mint was already subscribed.
        """
        if mint in self._mints:
            return False

        self._mints.add(mint)
        await self._send_frame(control_frame(SUBSCRIBE_TOKEN_TRADE, [mint]))
        await self._send_frame(control_frame(SUBSCRIBE_RAYDIUM_LIQUIDITY, [mint]))
        logger.info(f"Subscribed to trades and Raydium liquidity for {str(mint)[:8]}")
        return True

    async def replay(self):
        """Re-issue every subscription after a reconnect."""
        await self.subscribe_new_tokens()

        mints = sorted(self._mints)
        if not mints:
            return

        chunks = [
            mints[i:i + self.replay_chunk_size]
            for i in range(0, len(mints), self.replay_chunk_size)
        ]
        frames = []
        for chunk in chunks:
            frames.append(control_frame(SUBSCRIBE_TOKEN_TRADE, chunk))
            frames.append(control_frame(SUBSCRIBE_RAYDIUM_LIQUIDITY, chunk))

        logger.info(f"Replaying subscriptions for {len(mints)} mints in {len(frames)} frames")
        await process_batch(
            frames,
            self.replay_batch_size,
            self._send_frame,
            delay=self.replay_batch_delay,
        )

    def get_stats(self) -> dict:
        """Get subscription statistics."""
        return {
            "subscribed_mints": len(self._mints),
            "frames_sent": self._frames_sent,
            "attached": self._send is not None,
        }

"""PumpPortal websocket supervisor."""

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Set

import websockets

from core.errors import FeedConnectionError, RetryExhaustedError
from core.retry import compute_delay
from .classifier import decode_frame
from .subscriptions import SubscriptionManager

if TYPE_CHECKING:
    from core.pipeline import IngestPipeline
    from core.monitoring import MetricsCollector

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class ReconnectPolicy(str, Enum):
    """What the supervisor does when the feed drops."""
    TERMINATE = "terminate"
    RECONNECT = "reconnect"


class FeedSupervisor:
    """
    Owns the feed socket lifecycle.

    On open it subscribes to new tokens (or replays every accumulated
    subscription after a reconnect). Frames are read in arrival order and
    each one is handed to the pipeline as its own task, so a slow write
    never holds up the next frame. Errors while handling a frame are logged
    and never close the connection.

    When the socket closes, TERMINATE raises FeedConnectionError and
    RECONNECT retries with exponential backoff until
    `max_reconnect_attempts` consecutive failures.
    """

    def __init__(
        self,
        url: str,
        pipeline: "IngestPipeline",
        subscriptions: SubscriptionManager,
        policy: ReconnectPolicy = ReconnectPolicy.TERMINATE,
        max_reconnect_attempts: int = 10,
        reconnect_initial_delay: float = 1.0,
        reconnect_max_delay: float = 60.0,
        metrics: Optional["MetricsCollector"] = None,
        connect: Callable[..., Any] = websockets.connect,
        connect_kwargs: Optional[Dict[str, Any]] = None,
    ):
        self.url = url
        self.pipeline = pipeline
        self.subscriptions = subscriptions
        self.policy = ReconnectPolicy(policy)
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_initial_delay = reconnect_initial_delay
        self.reconnect_max_delay = reconnect_max_delay
        self.metrics = metrics
        self._connect = connect
        self.connect_kwargs = connect_kwargs if connect_kwargs is not None else {
            "ping_interval": 20,
            "ping_timeout": 20,
            "close_timeout": 10,
            "max_size": 2 ** 23,
        }

        self.state = ConnectionState.DISCONNECTED
        self._ws = None
        self._running = False
        self._failures = 0
        self._inflight: Set[asyncio.Task] = set()

        # Stats
        self._connections = 0
        self._frames = 0
        self._start_time = 0.0

    async def run(self):
        """
        Connect and consume the feed until stopped.

        Raises:
            FeedConnectionError: the feed dropped under TERMINATE
            RetryExhaustedError: reconnects kept failing under RECONNECT
        """
        self._running = True
        self._start_time = time.time()

        while self._running:
            last_error: Optional[BaseException] = None
            try:
                await self._run_connection()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                logger.error(f"Feed connection error: {type(e).__name__}: {e}")
            finally:
                self._ws = None
                self.state = ConnectionState.DISCONNECTED
                self.subscriptions.detach()

            if not self._running:
                break

            logger.warning("Feed connection closed")

            if self.policy == ReconnectPolicy.TERMINATE:
                raise FeedConnectionError("Feed connection closed") from last_error

            self._failures += 1
            if self._failures > self.max_reconnect_attempts:
                raise RetryExhaustedError(
                    f"Feed unreachable after {self.max_reconnect_attempts} reconnect attempts",
                    attempts=self.max_reconnect_attempts,
                    last_error=last_error,
                ) from last_error

            delay = compute_delay(
                self._failures, self.reconnect_initial_delay, self.reconnect_max_delay
            )
            logger.info(
                f"Reconnecting in {delay:.1f}s "
                f"(attempt {self._failures} of {self.max_reconnect_attempts})"
            )
            if self.metrics:
                self.metrics.record_reconnect()
            await asyncio.sleep(delay)

    async def _run_connection(self):
        logger.info(f"Connecting to {self.url}...")
        async with self._connect(self.url, **self.connect_kwargs) as ws:
            self._ws = ws
            self.state = ConnectionState.CONNECTED
            self._failures = 0
            logger.info("Feed connection opened")

            self.subscriptions.attach(ws.send)
            if self._connections == 0:
                await self.subscriptions.subscribe_new_tokens()
            else:
                await self.subscriptions.replay()
            self._connections += 1

            async for raw in ws:
                if not self._running:
                    break
                self._dispatch(raw)

    def _dispatch(self, raw):
        frame = decode_frame(raw)
        if frame is None:
            return

        self._frames += 1
        if self.metrics:
            self.metrics.record_frame()

        task = asyncio.create_task(self._handle(frame))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        if self.metrics:
            self.metrics.set_inflight_frames(len(self._inflight))

    async def _handle(self, frame: dict):
        try:
            await self.pipeline.handle_frame(frame)
        except Exception as e:
            logger.error(f"Error processing message: {e}")
            if self.metrics:
                self.metrics.record_frame_error()

    async def drain(self):
        """Wait for every in-flight frame to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def stop(self):
        """Stop reading, close the socket and finish in-flight frames."""
        self._running = False
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug(f"Error closing feed socket: {e}")
        await self.drain()
        logger.info("Feed supervisor stopped")

    def get_stats(self) -> dict:
        """Get feed statistics."""
        uptime = time.time() - self._start_time if self._start_time > 0 else 0
        return {
            "state": self.state.value,
            "connections": self._connections,
            "frames": self._frames,
            "frames_per_second": self._frames / uptime if uptime > 0 else 0,
            "inflight": len(self._inflight),
            "policy": self.policy.value,
        }

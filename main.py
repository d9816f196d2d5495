"""
Mintwatch: PumpPortal token and trade ingester.

Main entry point for the application.
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

from config.settings import Settings, get_settings
from core.errors import ConfigurationError, FeedConnectionError, RetryExhaustedError
from core.monitoring import MetricsCollector
from core.pipeline import IngestPipeline
from enrichment.metadata import MetadataFetcher
from storage.backend import PostgresRpcClient, RpcBackend, SupabaseRpcClient
from storage.gateway import PersistenceGateway
from stream.feed import FeedSupervisor, ReconnectPolicy
from stream.subscriptions import SubscriptionManager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

logger = logging.getLogger("mintwatch")


def build_backend(settings: Settings) -> RpcBackend:
    """Create the backend client selected by BACKEND."""
    if settings.backend == "postgres":
        if not settings.postgres_url:
            raise ConfigurationError("POSTGRES_URL is required when BACKEND=postgres")
        return PostgresRpcClient(settings.postgres_url, timeout=settings.backend_timeout_seconds)
    return SupabaseRpcClient(
        settings.supabase_url,
        settings.supabase_service_role_key,
        timeout=settings.backend_timeout_seconds,
    )


class Application:
    """Main application class wiring the ingest components together."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.metrics: Optional[MetricsCollector] = None
        self.backend: Optional[RpcBackend] = None
        self.fetcher: Optional[MetadataFetcher] = None
        self.gateway: Optional[PersistenceGateway] = None
        self.subscriptions: Optional[SubscriptionManager] = None
        self.pipeline: Optional[IngestPipeline] = None
        self.supervisor: Optional[FeedSupervisor] = None

        # Tasks
        self._tasks = []

    async def start(self):
        """Create and start all components."""
        s = self.settings
        logger.info(f"Starting Mintwatch (backend={s.backend}, on disconnect: {s.reconnect_policy})...")

        self.metrics = MetricsCollector()

        logger.info("Initializing backend client...")
        self.backend = build_backend(s)
        await self.backend.start()

        logger.info("Initializing metadata fetcher...")
        self.fetcher = MetadataFetcher(
            gateway=s.ipfs_gateway,
            timeout=s.metadata_timeout_seconds,
            max_retries=s.retry_max_attempts,
            initial_delay=s.retry_initial_delay_seconds,
            max_delay=s.retry_max_delay_seconds,
        )
        await self.fetcher.start()

        self.gateway = PersistenceGateway(
            self.backend,
            metrics=self.metrics,
            max_retries=s.retry_max_attempts,
            initial_delay=s.retry_initial_delay_seconds,
            max_delay=s.retry_max_delay_seconds,
        )
        self.subscriptions = SubscriptionManager(
            replay_chunk_size=s.replay_chunk_size,
            replay_batch_size=s.replay_batch_size,
            replay_batch_delay=s.replay_batch_delay_seconds,
        )
        self.pipeline = IngestPipeline(
            self.gateway,
            self.subscriptions,
            fetcher=self.fetcher,
            metrics=self.metrics,
            filter_spam_names=s.filter_spam_names,
        )
        self.supervisor = FeedSupervisor(
            s.feed_url,
            self.pipeline,
            self.subscriptions,
            policy=ReconnectPolicy(s.reconnect_policy),
            max_reconnect_attempts=s.reconnect_max_attempts,
            reconnect_initial_delay=s.retry_initial_delay_seconds,
            reconnect_max_delay=s.retry_max_delay_seconds,
            metrics=self.metrics,
        )

        self._running = True
        logger.info("Mintwatch started successfully!")

    async def stop(self):
        """Stop all components gracefully."""
        logger.info("Stopping Mintwatch...")
        self._running = False
        self._shutdown_event.set()

        if self.supervisor:
            await self.supervisor.stop()

        for task in self._tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Task ended with error during shutdown: {e}")

        if self.fetcher:
            await self.fetcher.stop()

        if self.backend:
            await self.backend.stop()

        if self.metrics:
            self._log_stats()

        logger.info("Mintwatch stopped.")

    async def run(self):
        """
        Run until the feed ends or a shutdown is requested.

        Raises:
            FeedConnectionError / RetryExhaustedError from the supervisor
        """
        feed_task = asyncio.create_task(self.supervisor.run())
        self._tasks = [asyncio.create_task(self._run_stats_loop())]
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        done, _ = await asyncio.wait(
            {feed_task, shutdown_task},
            return_when=asyncio.FIRST_COMPLETED,
        )

        if feed_task in done:
            shutdown_task.cancel()
            # Surfaces FeedConnectionError / RetryExhaustedError
            feed_task.result()
        else:
            await self.supervisor.stop()
            feed_task.cancel()
            try:
                await feed_task
            except asyncio.CancelledError:
                pass

    async def _run_stats_loop(self):
        """Log a stats line periodically."""
        while self._running:
            try:
                await asyncio.sleep(self.settings.stats_interval_seconds)
                self._log_stats()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Stats loop error: {e}")

    def _log_stats(self):
        if self.supervisor:
            self.metrics.set_inflight_frames(self.supervisor.get_stats()["inflight"])
        summary = self.metrics.get_summary()
        logger.info(
            f"Stats: {summary['frames_per_second']:.1f} frames/s, "
            f"{summary['records_written']} written, "
            f"{summary['records_failed']} failed, "
            f"{summary['subscribed_mints']} mints subscribed, "
            f"{summary['reconnects']} reconnects, "
            f"up {summary['uptime_human']}"
        )


def setup_signal_handlers(app: Application):
    """Setup cross-platform signal handlers for graceful shutdown."""
    def handler(signum, frame):
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, initiating graceful shutdown...")
        try:
            loop = asyncio.get_running_loop()
            loop.call_soon_threadsafe(app._shutdown_event.set)
        except RuntimeError:
            # No running loop yet
            pass

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)

    if hasattr(signal, 'SIGBREAK'):
        signal.signal(signal.SIGBREAK, handler)


async def main(settings: Settings) -> int:
    """Main entry point.

    Returns:
        Process exit code: 0 after a graceful shutdown, 1 when the feed
        terminated.
    """
    app = Application(settings)
    setup_signal_handlers(app)

    try:
        await app.start()
        await app.run()
        return 0
    except (FeedConnectionError, RetryExhaustedError) as e:
        logger.error(f"Feed terminated: {e}")
        return 1
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise
    finally:
        await app.stop()


def cli():
    """Parse arguments, load settings and run until the feed ends."""
    import argparse

    parser = argparse.ArgumentParser(description="Mintwatch - PumpPortal token and trade ingester")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--reconnect",
        action="store_true",
        help="Reconnect with backoff when the feed drops instead of exiting"
    )
    parser.add_argument(
        "--backend",
        choices=["supabase", "postgres"],
        default=None,
        help="Override the BACKEND setting"
    )

    args = parser.parse_args()

    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    overrides = {}
    if args.reconnect:
        overrides["reconnect_policy"] = "reconnect"
    if args.backend:
        overrides["backend"] = args.backend
    if overrides:
        settings = settings.model_copy(update=overrides)

    logging.getLogger().setLevel(logging.DEBUG if args.debug else settings.log_level.upper())

    sys.exit(asyncio.run(main(settings)))


if __name__ == "__main__":
    cli()

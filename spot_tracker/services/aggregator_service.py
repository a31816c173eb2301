"""
Aggregator service - polls upstream spot feeds into the spot store.

Runs one loop per enabled feed plus an independent expiry sweep loop,
all sharing one HTTP client and one database pool.

Features:
- Fixed-period polling (next tick is interval minus cycle time)
- Per-record isolation: bad records and failed upserts are skipped
- Loop isolation: a failing cycle never stops its loop or its siblings
- Graceful shutdown
- Metrics collection
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from spot_tracker.config.settings import get_settings
from spot_tracker.ingestion.http_client import HTTPClient, RetryConfig
from spot_tracker.ingestion.normalizers import normalize_batch
from spot_tracker.ingestion.upstream import UpstreamFeed, feeds_from_settings, fetch_records
from spot_tracker.observability.logging import bind_context
from spot_tracker.observability.metrics import get_metrics
from spot_tracker.observability.tracing import get_tracer, traced
from spot_tracker.spots.errors import StoreError
from spot_tracker.spots.service import SpotService

logger = structlog.get_logger(__name__)

SWEEP = "sweep"


@dataclass
class CycleResult:
    """Outcome of one fetch-normalize-upsert cycle for a feed."""

    source: str
    fetched: int = 0
    upserted: int = 0
    parse_failures: int = 0
    store_failures: int = 0
    elapsed_seconds: float = 0.0

    @property
    def skipped(self) -> int:
        return self.parse_failures + self.store_failures


@dataclass
class RunOnceResult:
    """Per-feed cycle results and sweep count from ``run_once``."""

    cycles: dict[str, CycleResult] = field(default_factory=dict)
    failed_sources: list[str] = field(default_factory=list)
    swept: int = 0


class AggregatorService:
    """
    Service that keeps the spot store fed from upstream feeds.

    Usage:
        service = AggregatorService(spot_service)
        await service.start()  # Runs until stopped
    """

    def __init__(
        self,
        spot_service: SpotService,
        feeds: list[UpstreamFeed] | None = None,
        http_client: HTTPClient | None = None,
        sweep_interval_seconds: float | None = None,
    ):
        """
        Initialize aggregator service.

        Args:
            spot_service: Store facade used for upserts and sweeps
            feeds: Feeds to poll (default: the enabled feeds from settings)
            http_client: Shared HTTP client (default: one owned by this service)
            sweep_interval_seconds: Period of the expiry sweep loop
        """
        settings = get_settings()

        self._spots = spot_service
        self._feeds = feeds if feeds is not None else feeds_from_settings(settings)
        self._sweep_interval = (
            sweep_interval_seconds
            if sweep_interval_seconds is not None
            else settings.sweep_interval_seconds
        )

        self._owns_client = http_client is None
        self._http = http_client or HTTPClient(
            retry_config=RetryConfig(
                max_retries=settings.max_http_retries,
                max_backoff_seconds=settings.max_backoff_seconds,
            ),
            timeout=settings.http_timeout_seconds,
        )

        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._metrics = get_metrics()
        self._tracer = get_tracer("spot-tracker.aggregator")

        logger.info(
            "Aggregator service initialized",
            sources=[f.source.value for f in self._feeds],
            sweep_interval=self._sweep_interval,
        )

    @property
    def feeds(self) -> list[UpstreamFeed]:
        return list(self._feeds)

    @property
    def is_running(self) -> bool:
        """Check if service is running."""
        return self._running

    async def start(self) -> None:
        """
        Start every feed loop and the sweep loop.

        Runs until stop() is called.
        """
        self._running = True
        logger.info("Starting aggregator service")

        await self._open_client()

        try:
            self._tasks = [
                asyncio.create_task(
                    self._run_feed(feed),
                    name=f"aggregator_{feed.source.value}",
                )
                for feed in self._feeds
            ]
            self._tasks.append(
                asyncio.create_task(self._run_sweep(), name="aggregator_sweep")
            )

            await asyncio.gather(*self._tasks, return_exceptions=True)

        except asyncio.CancelledError:
            logger.info("Aggregator service cancelled")
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Stop all loops. Upserts already committed are unaffected."""
        logger.info("Stopping aggregator service")
        self._running = False

        for task in self._tasks:
            task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _open_client(self) -> None:
        if self._owns_client and not self._http.is_open:
            await self._http.__aenter__()

    async def _close_client(self) -> None:
        if self._owns_client and self._http.is_open:
            await self._http.__aexit__(None, None, None)

    async def _cleanup(self) -> None:
        """Clean up resources."""
        self._running = False
        await self._close_client()
        self._tasks.clear()
        logger.info("Aggregator service cleaned up")

    async def poll_feed(self, feed: UpstreamFeed) -> CycleResult:
        """
        Run one fetch-normalize-upsert cycle for a feed.

        Raises:
            UpstreamFetchError: If the feed could not be fetched at all
        """
        source = feed.source.value
        start_time = time.monotonic()
        result = CycleResult(source=source)

        with traced(self._tracer, f"{source}.fetch", {"spot.source": source}):
            records = await fetch_records(self._http, feed)
        result.fetched = len(records)

        spots, failures = normalize_batch(feed.source, records)
        result.parse_failures = len(failures)
        for failure in failures:
            logger.warning(
                "Skipping unparseable spot",
                source=source,
                external_id=failure.external_id,
                reason=failure.reason,
            )
        if failures:
            self._metrics.record_parse_failure(feed.source, len(failures))

        for spot in spots:
            try:
                await self._spots.upsert_spot(spot)
                result.upserted += 1
            except StoreError as e:
                result.store_failures += 1
                logger.warning(
                    "Spot upsert failed",
                    source=source,
                    external_id=spot.external_id,
                    callsign=spot.callsign,
                    error=str(e.cause),
                )
                self._metrics.record_error(feed.source, "store_failure")

        result.elapsed_seconds = time.monotonic() - start_time
        self._metrics.record_fetch(feed.source, result.fetched, result.elapsed_seconds)
        self._metrics.record_upserted(feed.source, result.upserted)
        return result

    async def _run_feed(self, feed: UpstreamFeed) -> None:
        """Poll one feed on a fixed period until stopped."""
        source = feed.source.value
        bind_context(aggregator=source)
        logger.info("Starting aggregator", source=source, interval=feed.interval_seconds)

        while self._running:
            start_time = time.monotonic()

            try:
                result = await self.poll_feed(feed)
                self._metrics.set_aggregator_health(feed.source, True)
                logger.info(
                    "Aggregator cycle completed",
                    source=source,
                    fetched=result.fetched,
                    upserted=result.upserted,
                    skipped=result.skipped,
                    elapsed_seconds=round(result.elapsed_seconds, 2),
                )
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(
                    "Aggregator error",
                    source=source,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self._metrics.record_error(feed.source, type(e).__name__)
                self._metrics.set_aggregator_health(feed.source, False)

            elapsed = time.monotonic() - start_time
            await asyncio.sleep(max(0.0, feed.interval_seconds - elapsed))

        logger.info("Aggregator stopped", source=source)

    async def sweep(self) -> int:
        """Remove expired spots once. Returns rows removed."""
        removed = await self._spots.delete_expired_spots()
        if removed:
            logger.info("Expired spots swept", removed=removed)
        return removed

    async def _run_sweep(self) -> None:
        """Sweep expired spots on a fixed period until stopped."""
        logger.info("Starting sweep loop", interval=self._sweep_interval)

        while self._running:
            start_time = time.monotonic()

            try:
                await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(
                    "Sweep error",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self._metrics.record_error(SWEEP, type(e).__name__)

            elapsed = time.monotonic() - start_time
            await asyncio.sleep(max(0.0, self._sweep_interval - elapsed))

        logger.info("Sweep loop stopped")

    async def run_once(self) -> RunOnceResult:
        """
        Run one cycle for every feed, then one sweep.

        Useful for testing or manual triggers. Feed failures are logged and
        reported in ``failed_sources``; they do not stop other feeds.
        """
        outcome = RunOnceResult()

        await self._open_client()
        try:
            for feed in self._feeds:
                try:
                    outcome.cycles[feed.source.value] = await self.poll_feed(feed)
                except Exception as e:
                    logger.error(
                        "Aggregator error in run_once",
                        source=feed.source.value,
                        error=str(e),
                    )
                    self._metrics.record_error(feed.source, type(e).__name__)
                    outcome.failed_sources.append(feed.source.value)

            try:
                outcome.swept = await self.sweep()
            except StoreError as e:
                logger.error("Sweep error in run_once", error=str(e))
                self._metrics.record_error(SWEEP, type(e).__name__)
        finally:
            await self._close_client()

        return outcome

    async def health_check(self) -> dict[str, Any]:
        """
        Check health of the aggregator service.

        Returns:
            Dictionary with health status
        """
        task_states = {
            task.get_name(): not task.done() for task in self._tasks
        }
        return {
            "running": self._running,
            "sources": [f.source.value for f in self._feeds],
            "tasks": task_states,
            "active_tasks": sum(task_states.values()),
        }

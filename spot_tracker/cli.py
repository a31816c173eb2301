"""
Command-line interface for spot-tracker.

Provides commands to run the aggregator and API, initialize the
database, and run one-off maintenance.

Usage:
    spot-tracker aggregate  # Poll upstream feeds and sweep expired spots
    spot-tracker serve      # Run the API server
    spot-tracker run-once   # One poll of every feed plus one sweep
    spot-tracker sweep      # Delete expired spots
    spot-tracker init-db    # Create tables and seed programs
    spot-tracker health     # Check service health
"""

import asyncio
import signal
import sys

import click

from spot_tracker.config.settings import get_settings
from spot_tracker.observability.logging import setup_logging
from spot_tracker.observability.metrics import get_metrics

SOURCE_CHOICES = ["pota", "rbn", "sota"]


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Spot Tracker - live activation spots from POTA, RBN and SOTA."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()

    settings = get_settings()
    if settings.tracing_enabled:
        from spot_tracker.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


async def _prepare_schema(db) -> int:
    """Create programs and spots tables, seeding programs when empty.

    Returns the number of programs in the table afterwards.
    """
    from spot_tracker.programs.service import ProgramCatalog
    from spot_tracker.spots.repository import SpotRepository

    catalog = ProgramCatalog(db)
    await catalog.repository.create_table()
    await SpotRepository(db).create_tables()
    await catalog.ensure_seeded()
    return await catalog.repository.count()


def _select_feeds(sources: tuple[str, ...], enabled_only: bool = True):
    """Feeds named on the command line, or every configured feed otherwise.

    With no sources given, ``enabled_only`` limits the result to feeds whose
    ``*_AGGREGATOR_ENABLED`` flag is set.
    """
    from spot_tracker.ingestion.upstream import feeds_from_settings

    settings = get_settings()
    if not sources:
        return feeds_from_settings(settings, enabled_only=enabled_only)
    return [
        feed
        for feed in feeds_from_settings(settings, enabled_only=False)
        if feed.source.value in sources
    ]


@main.command()
@click.option(
    "--source",
    "sources",
    multiple=True,
    type=click.Choice(SOURCE_CHOICES),
    help="Feed to poll (can repeat; default: feeds enabled in settings)",
)
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def aggregate(sources: tuple[str, ...], metrics: bool) -> None:
    """Run the aggregator: poll feeds and sweep expired spots."""
    from spot_tracker.services.aggregator_service import AggregatorService
    from spot_tracker.spots.service import SpotService
    from spot_tracker.storage.database import Database

    feeds = _select_feeds(sources)
    if not sources and not get_settings().any_aggregator_enabled:
        click.echo(
            click.style(
                "No feeds enabled; only the expiry sweep will run. "
                "Set POTA_AGGREGATOR_ENABLED etc. or pass --source.",
                fg="yellow",
            )
        )

    async def run():
        async with Database() as db:
            await _prepare_schema(db)
            service = AggregatorService(SpotService(db), feeds=feeds)

            if metrics:
                get_metrics().start_server()

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

            await service.start()

    asyncio.run(run())


@main.command("run-once")
@click.option(
    "--source",
    "sources",
    multiple=True,
    type=click.Choice(SOURCE_CHOICES),
    help="Feed to poll (can repeat; default: all feeds)",
)
def run_once(sources: tuple[str, ...]) -> None:
    """Poll each feed once, then sweep expired spots."""
    from spot_tracker.services.aggregator_service import AggregatorService
    from spot_tracker.spots.service import SpotService
    from spot_tracker.storage.database import Database

    feeds = _select_feeds(sources, enabled_only=False)

    async def run():
        async with Database() as db:
            await _prepare_schema(db)
            service = AggregatorService(SpotService(db), feeds=feeds)
            outcome = await service.run_once()

        click.echo("\nRun-once Results:")
        click.echo("-" * 40)
        for source, cycle in outcome.cycles.items():
            click.echo(
                f"  {source}: fetched={cycle.fetched} upserted={cycle.upserted} "
                f"skipped={cycle.skipped} ({cycle.elapsed_seconds:.2f}s)"
            )
        for source in outcome.failed_sources:
            click.echo(click.style(f"  {source}: fetch failed", fg="red"))
        click.echo(f"  swept: {outcome.swept}")
        click.echo("-" * 40)

        if outcome.failed_sources:
            sys.exit(1)

    asyncio.run(run())


@main.command()
def sweep() -> None:
    """Delete all expired spots."""
    from spot_tracker.spots.service import SpotService
    from spot_tracker.storage.database import Database

    async def run():
        async with Database() as db:
            removed = await SpotService(db).delete_expired_spots()
        click.echo(f"Deleted {removed} expired spots")

    asyncio.run(run())


@main.command("init-db")
@click.option("--reseed", is_flag=True, help="Re-apply the bundled program seed")
def init_db(reseed: bool) -> None:
    """Create the programs and spots tables and seed programs."""
    from spot_tracker.programs.service import ProgramCatalog
    from spot_tracker.storage.database import Database

    async def run():
        async with Database() as db:
            count = await _prepare_schema(db)
            if reseed:
                count = await ProgramCatalog(db).seed_from_json()

        click.echo(f"Database initialized successfully ({count} programs)")

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            from spot_tracker.storage.database import Database
            async with Database() as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["pota_enabled"] = settings.pota_aggregator_enabled
        results["rbn_enabled"] = settings.rbn_aggregator_enabled
        results["sota_enabled"] = settings.sota_aggregator_enabled

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))

        click.echo("-" * 40)

        if results["postgres"]:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the spots API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "spot_tracker.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()

"""
Spots facade: the operations callers outside the core use.

Composes the QueryEngine, SelfSpotGate and SpotRepository, and converts
unexpected database failures into ``StoreError`` so callers only ever
see ``SpotError`` subclasses.
"""

import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
import structlog

from spot_tracker.observability.metrics import get_metrics
from spot_tracker.programs.schemas import Program
from spot_tracker.programs.service import ProgramCatalog
from spot_tracker.spots.config import SpotsConfig
from spot_tracker.spots.errors import ProgramNotFoundError, SpotError, StoreError
from spot_tracker.spots.gate import SelfSpotGate
from spot_tracker.spots.query import QueryEngine
from spot_tracker.spots.repository import SpotRepository
from spot_tracker.spots.schemas import NormalizedSpot, Spot, SpotFilters, SpotPage
from spot_tracker.storage.database import Database

logger = structlog.get_logger(__name__)

# Failures that mean the store itself is unhealthy, as opposed to a rejected request
_STORE_FAILURES = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class SpotService:
    """
    Entry point for listing, submitting and deleting spots.

    Usage:
        service = SpotService(database)
        page = await service.list_spots(SpotFilters(program="pota"), limit=50)
        spot = await service.insert_self_spot(
            owner, "K1ABC", "pota", 14062.0, "CW", reference="US-0001"
        )
    """

    def __init__(
        self,
        database: Database,
        config: SpotsConfig | None = None,
        catalog: ProgramCatalog | None = None,
    ) -> None:
        self._config = config or SpotsConfig()
        self._repo = SpotRepository(database, self._config)
        self._catalog = catalog or ProgramCatalog(database, self._config)
        self._query = QueryEngine(self._repo, self._config)
        self._gate = SelfSpotGate(self._catalog, self._config)

    @property
    def repository(self) -> SpotRepository:
        """Access the underlying repository for direct DB operations."""
        return self._repo

    @asynccontextmanager
    async def _store_operation(self, operation: str) -> AsyncIterator[None]:
        """Time a store call and translate database failures into StoreError."""
        start = time.perf_counter()
        try:
            yield
        except SpotError:
            raise
        except _STORE_FAILURES as e:
            logger.error(
                "spot_store_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreError(operation, e) from e
        finally:
            get_metrics().record_storage_latency(operation, time.perf_counter() - start)

    async def list_spots(
        self,
        filters: SpotFilters | None = None,
        max_age_minutes: int | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> SpotPage:
        """List active spots, newest first. See ``QueryEngine.list``."""
        async with self._store_operation("list"):
            return await self._query.list(filters, max_age_minutes, limit, cursor)

    async def insert_self_spot(
        self,
        owner: uuid.UUID,
        callsign: str,
        program_slug: str,
        frequency_khz: float,
        mode: str,
        reference: str | None = None,
        comments: str | None = None,
    ) -> Spot:
        """
        Submit a self-spot on behalf of ``owner``.

        Raises:
            ProgramNotFoundError: Unknown or inactive program
            CapabilityNotSupportedError: Program does not accept self-spots
            DuplicateSelfSpotError: Owner already has a live self-spot for the program
            StoreError: Database failure
        """
        try:
            async with self._store_operation("insert_self_spot"):
                await self._gate.check(program_slug)
                spot = await self._repo.insert_self_spot(
                    owner,
                    callsign,
                    program_slug,
                    frequency_khz,
                    mode,
                    reference=reference,
                    comments=comments,
                )
        except SpotError as e:
            if not isinstance(e, StoreError):
                logger.info(
                    "self_spot_rejected",
                    program=program_slug,
                    participant_id=str(owner),
                    reason=e.code,
                )
            raise

        get_metrics().record_self_spot(program_slug)
        logger.info(
            "self_spot_created",
            spot_id=str(spot.id),
            program=program_slug,
            callsign=callsign,
        )
        return spot

    async def get_spot(self, spot_id: uuid.UUID) -> Spot | None:
        """Return the spot if it exists and is still active."""
        async with self._store_operation("get"):
            return await self._repo.get(spot_id)

    async def list_programs(self) -> tuple[list[Program], int]:
        """Active programs in display order plus the catalog version."""
        async with self._store_operation("list_programs"):
            programs = await self._catalog.list_active()
            version = await self._catalog.version()
        return programs, version

    async def get_program(self, slug: str) -> Program:
        """
        Look up an active program by slug.

        Raises:
            ProgramNotFoundError: Unknown or inactive program
            StoreError: Database failure
        """
        async with self._store_operation("get_program"):
            program = await self._catalog.get(slug)
        if program is None:
            raise ProgramNotFoundError(slug)
        return program

    async def delete_own_spot(self, spot_id: uuid.UUID, owner: uuid.UUID) -> bool:
        """Delete a spot only if ``owner`` submitted it."""
        async with self._store_operation("delete_own"):
            deleted = await self._repo.delete_own(spot_id, owner)
        if deleted:
            logger.info("spot_deleted", spot_id=str(spot_id), participant_id=str(owner))
        return deleted

    async def admin_delete_spot(self, spot_id: uuid.UUID) -> bool:
        """Delete any spot regardless of owner."""
        async with self._store_operation("admin_delete"):
            deleted = await self._repo.admin_delete(spot_id)
        if deleted:
            logger.info("spot_admin_deleted", spot_id=str(spot_id))
        return deleted

    async def delete_expired_spots(self) -> int:
        """Remove every expired spot. Returns how many were removed."""
        async with self._store_operation("sweep"):
            removed = await self._repo.sweep()
        get_metrics().record_sweep(removed)
        return removed

    async def upsert_spot(self, spot: NormalizedSpot) -> Spot:
        """Store one normalized upstream spot."""
        async with self._store_operation("upsert"):
            return await self._repo.upsert(spot)

"""Program catalog with caching and seed support."""

import json
import logging
import time
from pathlib import Path

from spot_tracker.programs.repository import ProgramsRepository
from spot_tracker.programs.schemas import Program
from spot_tracker.spots.config import SpotsConfig
from spot_tracker.storage.database import Database

logger = logging.getLogger(__name__)

_SEED_FILE = Path(__file__).parent / "data" / "seed_programs.json"


def _parse_seed_entry(entry: dict) -> Program:
    """Convert a JSON seed entry to a Program dataclass."""
    return Program(
        slug=entry["slug"],
        name=entry["name"],
        short_name=entry["short_name"],
        icon=entry["icon"],
        reference_label=entry["reference_label"],
        website=entry.get("website"),
        reference_format=entry.get("reference_format"),
        reference_example=entry.get("reference_example"),
        capabilities=list(entry.get("capabilities", [])),
        sort_order=entry.get("sort_order", 0),
        is_active=entry.get("is_active", True),
    )


class ProgramCatalog:
    """Cached program lookups with seed support.

    Self-spot submissions look their program up on every request; the
    TTL cache keeps that off the database. Misses are cached too, so an
    unknown slug does not cost a round-trip each time.
    """

    def __init__(
        self,
        database: Database,
        config: SpotsConfig | None = None,
    ) -> None:
        self._config = config or SpotsConfig()
        self._repo = ProgramsRepository(database)
        self._cache: dict[str, tuple[Program | None, float]] = {}

    @property
    def repository(self) -> ProgramsRepository:
        """Access the underlying repository for direct DB operations."""
        return self._repo

    async def get(self, slug: str) -> Program | None:
        """Get an active program by slug (cached)."""
        now = time.monotonic()
        ttl = self._config.program_cache_ttl_seconds

        cached = self._cache.get(slug)
        if cached is not None and (now - cached[1]) < ttl:
            return cached[0]

        program = await self._repo.get_by_slug(slug)
        if ttl > 0:
            self._cache[slug] = (program, now)
        return program

    async def list_active(self) -> list[Program]:
        """Every active program in display order. Not cached."""
        return await self._repo.list_active()

    async def version(self) -> int:
        return await self._repo.get_version()

    def invalidate_cache(self) -> None:
        """Force-clear the cache so next access hits the DB."""
        self._cache.clear()

    # ── Seed ────────────────────────────────────────────────────

    async def seed_from_json(self, path: Path | None = None) -> int:
        """Load programs from a JSON file into the database.

        Returns the number of programs upserted.
        """
        seed_path = path or _SEED_FILE
        with open(seed_path) as f:
            entries = json.load(f)

        programs = [_parse_seed_entry(e) for e in entries]
        count = await self._repo.bulk_upsert(programs)
        self.invalidate_cache()
        logger.info("Seeded %d programs from %s", count, seed_path)
        return count

    async def ensure_seeded(self) -> None:
        """Seed from the bundled JSON if the table is empty."""
        existing = await self._repo.count()
        if existing > 0:
            logger.debug("Programs table has %d rows, skipping seed", existing)
            return

        logger.info("Programs table empty, seeding from default JSON")
        await self.seed_from_json()

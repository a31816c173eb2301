"""
Database repository for the spots table.

All atomicity lives in PostgreSQL: upstream re-ingestion is an
``ON CONFLICT`` upsert on the ``(source, external_id)`` partial unique
index, and the one-live-self-spot rule is a partial unique index on
``(submitted_by, program_slug)`` for ``source = 'self'`` rows.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from spot_tracker.spots.config import SpotsConfig
from spot_tracker.spots.errors import DuplicateSelfSpotError
from spot_tracker.spots.schemas import NormalizedSpot, Spot, SpotFilters, SpotSource
from spot_tracker.storage.database import Database, rows_affected

logger = logging.getLogger(__name__)

# Enum creation is guarded because CREATE TYPE has no IF NOT EXISTS
_CREATE_TABLE_SQL = """
DO $$
BEGIN
    IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'spot_source') THEN
        CREATE TYPE spot_source AS ENUM ('pota', 'rbn', 'sota', 'self', 'other');
    END IF;
END
$$;

CREATE TABLE IF NOT EXISTS spots (
    id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    callsign        TEXT NOT NULL,
    program_slug    TEXT REFERENCES programs(slug) ON DELETE SET NULL,
    source          spot_source NOT NULL,
    external_id     TEXT,

    frequency_khz   DOUBLE PRECISION NOT NULL,
    mode            TEXT NOT NULL,
    reference       TEXT,
    reference_name  TEXT,

    spotter         TEXT,
    spotter_grid    TEXT,
    location_desc   TEXT,
    country_code    TEXT,
    state_abbr      TEXT,
    comments        TEXT,
    snr             SMALLINT,
    wpm             SMALLINT,

    submitted_by    UUID,
    spotted_at      TIMESTAMPTZ NOT NULL,
    expires_at      TIMESTAMPTZ NOT NULL,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),

    CONSTRAINT spots_expiry_after_spotted CHECK (expires_at > spotted_at)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_spots_external_id
    ON spots(source, external_id) WHERE external_id IS NOT NULL;
CREATE UNIQUE INDEX IF NOT EXISTS idx_spots_self_owner_program
    ON spots(submitted_by, program_slug) WHERE source = 'self';
CREATE INDEX IF NOT EXISTS idx_spots_program_expires
    ON spots(program_slug, expires_at DESC);
CREATE INDEX IF NOT EXISTS idx_spots_callsign_expires
    ON spots(callsign, expires_at DESC);
CREATE INDEX IF NOT EXISTS idx_spots_expires_at
    ON spots(expires_at);
CREATE INDEX IF NOT EXISTS idx_spots_spotted_at
    ON spots(spotted_at DESC);
"""

# Mutable fields only: identity columns and spotted_at keep their first values
_UPSERT_SQL = """
INSERT INTO spots (
    callsign, program_slug, source, external_id,
    frequency_khz, mode, reference, reference_name,
    spotter, spotter_grid, location_desc, country_code, state_abbr,
    comments, snr, wpm, spotted_at, expires_at
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17, $18)
ON CONFLICT (source, external_id) WHERE external_id IS NOT NULL
DO UPDATE SET
    frequency_khz = EXCLUDED.frequency_khz,
    mode = EXCLUDED.mode,
    reference = EXCLUDED.reference,
    reference_name = EXCLUDED.reference_name,
    comments = EXCLUDED.comments,
    updated_at = NOW()
RETURNING *
"""

_PURGE_EXPIRED_SELF_SPOT_SQL = """
DELETE FROM spots
WHERE submitted_by = $1
  AND program_slug = $2
  AND source = 'self'
  AND expires_at <= NOW()
"""

_INSERT_SELF_SPOT_SQL = """
INSERT INTO spots (
    callsign, program_slug, source, frequency_khz, mode,
    reference, comments, submitted_by, spotted_at, expires_at
)
VALUES ($1, $2, 'self', $3, $4, $5, $6, $7, NOW(), NOW() + make_interval(mins => $8))
ON CONFLICT (submitted_by, program_slug) WHERE source = 'self'
DO NOTHING
RETURNING *
"""

_LIST_SQL = """
SELECT * FROM spots
WHERE expires_at > NOW()
  AND spotted_at >= NOW() - make_interval(mins => $1)
  AND ($2::text IS NULL OR program_slug = $2)
  AND ($3::text IS NULL OR callsign = $3)
  AND ($4::spot_source IS NULL OR source = $4)
  AND ($5::text IS NULL OR mode = $5)
  AND ($6::text IS NULL OR state_abbr = $6)
  AND ($7::timestamptz IS NULL OR spotted_at < $7)
ORDER BY spotted_at DESC
LIMIT $8
"""


@dataclass
class ListSpotsParams:
    """Pre-validated listing parameters; bounds are enforced by QueryEngine."""

    filters: SpotFilters = field(default_factory=SpotFilters)
    max_age_minutes: int = 30
    limit: int = 100
    cursor: datetime | None = None


def _record_to_spot(record) -> Spot:
    """Convert an asyncpg Record to a Spot dataclass."""
    return Spot(
        id=record["id"],
        callsign=record["callsign"],
        program_slug=record["program_slug"],
        source=SpotSource(record["source"]),
        external_id=record["external_id"],
        frequency_khz=record["frequency_khz"],
        mode=record["mode"],
        reference=record["reference"],
        reference_name=record["reference_name"],
        spotter=record["spotter"],
        spotter_grid=record["spotter_grid"],
        location_desc=record["location_desc"],
        country_code=record["country_code"],
        state_abbr=record["state_abbr"],
        comments=record["comments"],
        snr=record["snr"],
        wpm=record["wpm"],
        submitted_by=record["submitted_by"],
        spotted_at=record["spotted_at"],
        expires_at=record["expires_at"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


class SpotRepository:
    """Persistence for spots: upserts, self-spots, reads and deletes."""

    def __init__(self, database: Database, config: SpotsConfig | None = None) -> None:
        self._db = database
        self._config = config or SpotsConfig()

    async def create_tables(self) -> None:
        """Create the spot_source enum, spots table and indexes (idempotent).

        The programs table must exist first.
        """
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Spots table ensured")

    async def upsert(self, spot: NormalizedSpot) -> Spot:
        """Insert an upstream spot, or refresh the mutable fields of the existing row."""
        row = await self._db.fetchrow(
            _UPSERT_SQL,
            spot.callsign,
            spot.program_slug,
            spot.source.value,
            spot.external_id,
            spot.frequency_khz,
            spot.mode,
            spot.reference,
            spot.reference_name,
            spot.spotter,
            spot.spotter_grid,
            spot.location_desc,
            spot.country_code,
            spot.state_abbr,
            spot.comments,
            spot.snr,
            spot.wpm,
            spot.spotted_at,
            spot.expires_at,
        )
        return _record_to_spot(row)

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
        Insert a self-spot for ``owner``.

        The owner's expired self-spot for the program (if any) is purged in
        the same transaction so the unique index only blocks a live one.

        Raises:
            DuplicateSelfSpotError: If an unexpired self-spot already exists
        """
        async with self._db.transaction() as conn:
            await conn.execute(_PURGE_EXPIRED_SELF_SPOT_SQL, owner, program_slug)
            row = await conn.fetchrow(
                _INSERT_SELF_SPOT_SQL,
                callsign,
                program_slug,
                frequency_khz,
                mode,
                reference,
                comments,
                owner,
                self._config.self_spot_ttl_minutes,
            )

        if row is None:
            raise DuplicateSelfSpotError(owner, program_slug)
        return _record_to_spot(row)

    async def get(self, spot_id: uuid.UUID) -> Spot | None:
        """Fetch an active spot by id."""
        row = await self._db.fetchrow(
            "SELECT * FROM spots WHERE id = $1 AND expires_at > NOW()",
            spot_id,
        )
        return _record_to_spot(row) if row else None

    async def delete_own(self, spot_id: uuid.UUID, owner: uuid.UUID) -> bool:
        """Delete a spot the owner submitted. Returns True if a row was removed."""
        status = await self._db.execute(
            "DELETE FROM spots WHERE id = $1 AND submitted_by = $2",
            spot_id,
            owner,
        )
        return rows_affected(status) > 0

    async def admin_delete(self, spot_id: uuid.UUID) -> bool:
        """Delete any spot by id. Returns True if a row was removed."""
        status = await self._db.execute("DELETE FROM spots WHERE id = $1", spot_id)
        return rows_affected(status) > 0

    async def sweep(self) -> int:
        """Delete every spot whose expiry has passed. Returns rows removed."""
        status = await self._db.execute("DELETE FROM spots WHERE expires_at <= NOW()")
        return rows_affected(status)

    async def list(self, params: ListSpotsParams) -> list[Spot]:
        """
        Active spots matching ``params``, newest first.

        Returns up to ``params.limit`` rows; callers wanting a lookahead
        row ask for one more.
        """
        filters = params.filters
        rows = await self._db.fetch(
            _LIST_SQL,
            params.max_age_minutes,
            filters.program,
            filters.callsign,
            filters.source.value if filters.source else None,
            filters.mode,
            filters.state,
            params.cursor,
            params.limit,
        )
        return [_record_to_spot(r) for r in rows]

    async def count_active(self) -> int:
        return await self._db.fetchval("SELECT COUNT(*) FROM spots WHERE expires_at > NOW()")

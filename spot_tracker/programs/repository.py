"""Database repository for the programs table."""

import logging

from spot_tracker.programs.schemas import Program
from spot_tracker.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS programs (
    slug              TEXT PRIMARY KEY,
    name              TEXT NOT NULL,
    short_name        TEXT NOT NULL,
    icon              TEXT NOT NULL,
    website           TEXT,
    reference_label   TEXT NOT NULL,
    reference_format  TEXT,
    reference_example TEXT,
    capabilities      TEXT[] NOT NULL DEFAULT '{}',
    sort_order        INT NOT NULL DEFAULT 0,
    is_active         BOOLEAN NOT NULL DEFAULT TRUE,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_UPSERT_SQL = """
INSERT INTO programs (
    slug, name, short_name, icon, website, reference_label,
    reference_format, reference_example, capabilities, sort_order, is_active
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
ON CONFLICT (slug) DO UPDATE SET
    name = EXCLUDED.name,
    short_name = EXCLUDED.short_name,
    icon = EXCLUDED.icon,
    website = EXCLUDED.website,
    reference_label = EXCLUDED.reference_label,
    reference_format = EXCLUDED.reference_format,
    reference_example = EXCLUDED.reference_example,
    capabilities = EXCLUDED.capabilities,
    sort_order = EXCLUDED.sort_order,
    is_active = EXCLUDED.is_active,
    updated_at = NOW()
"""


def _record_to_program(record) -> Program:
    """Convert an asyncpg Record to a Program dataclass."""
    return Program(
        slug=record["slug"],
        name=record["name"],
        short_name=record["short_name"],
        icon=record["icon"],
        website=record["website"],
        reference_label=record["reference_label"],
        reference_format=record["reference_format"],
        reference_example=record["reference_example"],
        capabilities=list(record["capabilities"] or []),
        sort_order=record["sort_order"],
        is_active=record["is_active"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


def _program_args(program: Program) -> tuple:
    return (
        program.slug,
        program.name,
        program.short_name,
        program.icon,
        program.website,
        program.reference_label,
        program.reference_format,
        program.reference_example,
        list(program.capabilities),
        program.sort_order,
        program.is_active,
    )


class ProgramsRepository:
    """Read access to programs, plus upserts for seeding."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the programs table (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Programs table ensured")

    async def upsert(self, program: Program) -> None:
        await self._db.execute(_UPSERT_SQL, *_program_args(program))

    async def bulk_upsert(self, programs: list[Program]) -> int:
        """Insert or update several programs in one transaction.

        Returns the number of programs processed.
        """
        if not programs:
            return 0

        async with self._db.transaction() as conn:
            await conn.executemany(_UPSERT_SQL, [_program_args(p) for p in programs])

        logger.info("Bulk upserted %d programs", len(programs))
        return len(programs)

    async def get_by_slug(self, slug: str, active_only: bool = True) -> Program | None:
        """Fetch one program by slug; inactive programs are hidden by default."""
        sql = "SELECT * FROM programs WHERE slug = $1"
        if active_only:
            sql += " AND is_active = TRUE"
        row = await self._db.fetchrow(sql, slug)
        return _record_to_program(row) if row else None

    async def list_active(self) -> list[Program]:
        rows = await self._db.fetch(
            "SELECT * FROM programs WHERE is_active = TRUE ORDER BY sort_order, slug"
        )
        return [_record_to_program(r) for r in rows]

    async def count(self) -> int:
        """Count total programs in the table."""
        return await self._db.fetchval("SELECT COUNT(*) FROM programs")

    async def get_version(self) -> int:
        """Epoch seconds of the newest active program change, 0 when none.

        Clients compare it with their cached copy to decide whether to refetch.
        """
        version = await self._db.fetchval(
            "SELECT EXTRACT(EPOCH FROM MAX(updated_at))::bigint "
            "FROM programs WHERE is_active = TRUE"
        )
        return version or 0

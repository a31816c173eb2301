"""Storage layer: asyncpg pool management."""

from spot_tracker.storage.database import Database, rows_affected

__all__ = ["Database", "rows_affected"]

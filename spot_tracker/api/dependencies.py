"""
Dependency injection for FastAPI endpoints.
"""

from spot_tracker.spots.config import SpotsConfig
from spot_tracker.spots.service import SpotService
from spot_tracker.storage.database import Database

# Global service instances (initialized on first request)
_database: Database | None = None
_spot_service: SpotService | None = None


async def get_database() -> Database:
    """Get the shared database connection pool."""
    global _database

    if _database is None:
        _database = Database()
        await _database.connect()

    return _database


async def get_spot_service() -> SpotService:
    """
    Get spot service instance.

    Shares the database pool with every other dependency.
    """
    global _spot_service

    if _spot_service is None:
        database = await get_database()
        _spot_service = SpotService(database, SpotsConfig())

    return _spot_service


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _database, _spot_service

    _spot_service = None

    if _database is not None:
        await _database.close()
        _database = None

"""Tests for database helpers."""

import pytest

from spot_tracker.storage.database import Database, rows_affected


class TestRowsAffected:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("DELETE 3", 3),
            ("DELETE 0", 0),
            ("INSERT 0 1", 1),
            ("UPDATE 12", 12),
            ("CREATE TABLE", 0),
            ("", 0),
            (None, 0),
        ],
    )
    def test_parses_status(self, status, expected):
        assert rows_affected(status) == expected


class TestDatabase:
    def test_pool_requires_connect(self):
        db = Database("postgresql://localhost/unused")

        assert db.is_connected is False
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.pool

    @pytest.mark.asyncio
    async def test_health_check_false_when_not_connected(self):
        db = Database("postgresql://localhost/unused")

        assert await db.health_check() is False

"""Tests for QueryEngine pagination and clamping."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from spot_tracker.spots.config import SpotsConfig
from spot_tracker.spots.errors import InvalidCursorError
from spot_tracker.spots.query import QueryEngine, clamp, format_cursor, parse_cursor
from spot_tracker.spots.repository import ListSpotsParams, SpotRepository
from spot_tracker.spots.schemas import SpotFilters

NOON = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_repo() -> AsyncMock:
    repo = AsyncMock(spec=SpotRepository)
    repo.list = AsyncMock(return_value=[])
    return repo


def _spots(spot_factory, count: int):
    """Spots one minute apart, newest first."""
    return [spot_factory(spotted_at=NOON - timedelta(minutes=i)) for i in range(count)]


def _params(mock_repo: AsyncMock) -> ListSpotsParams:
    return mock_repo.list.call_args[0][0]


class TestClamp:
    def test_default(self):
        assert clamp(None, 100, 1, 250) == 100

    @pytest.mark.parametrize(
        ("value", "expected"), [(0, 1), (-3, 1), (1, 1), (250, 250), (1000, 250)]
    )
    def test_bounds(self, value, expected):
        assert clamp(value, 100, 1, 250) == expected


class TestCursor:
    def test_roundtrip_is_rfc3339_utc(self):
        cursor = format_cursor(NOON)

        assert cursor == "2024-01-01T12:00:00+00:00"
        assert parse_cursor(cursor) == NOON

    def test_z_suffix_accepted(self):
        assert parse_cursor("2024-01-01T12:00:00Z") == NOON

    def test_offset_converted(self):
        assert parse_cursor("2024-01-01T07:00:00-05:00") == NOON

    @pytest.mark.parametrize("bad", ["not-a-date", "", "12345abc"])
    def test_invalid(self, bad):
        with pytest.raises(InvalidCursorError) as exc_info:
            parse_cursor(bad)
        assert exc_info.value.code == "invalid_cursor"


class TestQueryEngineList:
    @pytest.mark.asyncio
    async def test_defaults(self, mock_repo: AsyncMock) -> None:
        await QueryEngine(mock_repo).list()

        params = _params(mock_repo)
        assert params.limit == 101
        assert params.max_age_minutes == 30
        assert params.cursor is None
        assert params.filters == SpotFilters()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("limit", "fetched"), [(0, 2), (5000, 251), (10, 11)])
    async def test_limit_clamped_and_one_extra_fetched(
        self, mock_repo: AsyncMock, limit: int, fetched: int
    ) -> None:
        await QueryEngine(mock_repo).list(limit=limit)

        assert _params(mock_repo).limit == fetched

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("age", "expected"), [(0, 1), (5000, 1440), (90, 90)])
    async def test_max_age_clamped(self, mock_repo: AsyncMock, age: int, expected: int) -> None:
        await QueryEngine(mock_repo).list(max_age_minutes=age)

        assert _params(mock_repo).max_age_minutes == expected

    @pytest.mark.asyncio
    async def test_bounds_follow_config(self, mock_repo: AsyncMock) -> None:
        config = SpotsConfig(default_limit=20, max_limit=50)

        await QueryEngine(mock_repo, config).list(limit=80)

        assert _params(mock_repo).limit == 51

    @pytest.mark.asyncio
    async def test_has_more_when_extra_row(self, mock_repo: AsyncMock, spot_factory) -> None:
        mock_repo.list.return_value = _spots(spot_factory, 4)

        page = await QueryEngine(mock_repo).list(limit=3)

        assert len(page.spots) == 3
        assert page.has_more is True
        assert page.next_cursor == format_cursor(page.spots[-1].spotted_at)
        assert page.next_cursor == "2024-01-01T11:58:00+00:00"

    @pytest.mark.asyncio
    async def test_last_page(self, mock_repo: AsyncMock, spot_factory) -> None:
        mock_repo.list.return_value = _spots(spot_factory, 3)

        page = await QueryEngine(mock_repo).list(limit=3)

        assert len(page.spots) == 3
        assert page.has_more is False
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_empty(self, mock_repo: AsyncMock) -> None:
        page = await QueryEngine(mock_repo).list()

        assert page.spots == []
        assert page.has_more is False
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_cursor_passed_as_datetime(self, mock_repo: AsyncMock) -> None:
        await QueryEngine(mock_repo).list(cursor="2024-01-01T12:00:00+00:00")

        assert _params(mock_repo).cursor == NOON

    @pytest.mark.asyncio
    async def test_invalid_cursor_never_reaches_store(self, mock_repo: AsyncMock) -> None:
        with pytest.raises(InvalidCursorError):
            await QueryEngine(mock_repo).list(cursor="garbage")

        mock_repo.list.assert_not_called()

    @pytest.mark.asyncio
    async def test_pages_enumerate_every_row_once(self, mock_repo: AsyncMock, spot_factory) -> None:
        """Following next_cursor walks the whole result set in descending order."""
        rows = _spots(spot_factory, 7)

        async def fake_list(params: ListSpotsParams):
            visible = [r for r in rows if params.cursor is None or r.spotted_at < params.cursor]
            return visible[: params.limit]

        mock_repo.list.side_effect = fake_list
        engine = QueryEngine(mock_repo)

        seen = []
        cursor = None
        while True:
            page = await engine.list(limit=3, cursor=cursor)
            seen.extend(page.spots)
            if not page.has_more:
                break
            cursor = page.next_cursor

        assert [s.spotted_at for s in seen] == [r.spotted_at for r in rows]
        assert all(a.spotted_at > b.spotted_at for a, b in zip(seen, seen[1:]))

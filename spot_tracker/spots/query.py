"""
Cursor-paginated listing of active spots.

The cursor is the ``spotted_at`` of the last row on the previous page,
serialized as RFC 3339. Pages are ordered newest first and the next page
continues strictly below the cursor.
"""

from datetime import datetime, timezone

from spot_tracker.spots.config import SpotsConfig
from spot_tracker.spots.errors import InvalidCursorError
from spot_tracker.spots.repository import ListSpotsParams, SpotRepository
from spot_tracker.spots.schemas import SpotFilters, SpotPage


def clamp(value: int | None, default: int, lower: int, upper: int) -> int:
    """Clamp ``value`` into [lower, upper], substituting ``default`` for None."""
    if value is None:
        return default
    return max(lower, min(upper, value))


def parse_cursor(cursor: str) -> datetime:
    """
    Parse an RFC 3339 cursor into an aware UTC datetime.

    Raises:
        InvalidCursorError: If the cursor is not a timestamp
    """
    try:
        parsed = datetime.fromisoformat(cursor.strip())
    except (ValueError, AttributeError) as e:
        raise InvalidCursorError(cursor) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_cursor(spotted_at: datetime) -> str:
    """Serialize a cursor as RFC 3339 in UTC."""
    return spotted_at.astimezone(timezone.utc).isoformat()


class QueryEngine:
    """Clamps listing parameters and assembles pages from the repository."""

    def __init__(self, repository: SpotRepository, config: SpotsConfig | None = None) -> None:
        self._repo = repository
        self._config = config or SpotsConfig()

    def resolve_limit(self, limit: int | None) -> int:
        c = self._config
        return clamp(limit, c.default_limit, c.min_limit, c.max_limit)

    def resolve_max_age(self, max_age_minutes: int | None) -> int:
        c = self._config
        return clamp(
            max_age_minutes,
            c.default_max_age_minutes,
            c.min_max_age_minutes,
            c.max_max_age_minutes,
        )

    async def list(
        self,
        filters: SpotFilters | None = None,
        max_age_minutes: int | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> SpotPage:
        """
        List one page of active spots.

        Args:
            filters: Equality filters (None fields match anything)
            max_age_minutes: Oldest spotted_at to include, clamped
            limit: Page size, clamped
            cursor: ``next_cursor`` from the previous page

        Raises:
            InvalidCursorError: If ``cursor`` does not parse
        """
        page_size = self.resolve_limit(limit)
        params = ListSpotsParams(
            filters=filters or SpotFilters(),
            max_age_minutes=self.resolve_max_age(max_age_minutes),
            # One extra row tells us whether another page exists
            limit=page_size + 1,
            cursor=parse_cursor(cursor) if cursor else None,
        )

        rows = await self._repo.list(params)
        has_more = len(rows) > page_size
        spots = rows[:page_size]

        next_cursor = None
        if has_more and spots:
            next_cursor = format_cursor(spots[-1].spotted_at)

        return SpotPage(spots=spots, has_more=has_more, next_cursor=next_cursor)

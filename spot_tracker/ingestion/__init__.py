"""Upstream ingestion - HTTP transport, feed fetching and normalization."""

from spot_tracker.ingestion.normalizers import (
    NORMALIZERS,
    ParseFailure,
    normalize,
    normalize_batch,
)
from spot_tracker.ingestion.upstream import (
    UpstreamFeed,
    UpstreamFetchError,
    feeds_from_settings,
    fetch_records,
)

__all__ = [
    "NORMALIZERS",
    "ParseFailure",
    "normalize",
    "normalize_batch",
    "UpstreamFeed",
    "UpstreamFetchError",
    "feeds_from_settings",
    "fetch_records",
]

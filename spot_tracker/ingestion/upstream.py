"""
Upstream feed definitions and fetching.

Each feed is polled with a plain GET. POTA and SOTA answer with a bare
JSON array; RBN wraps its records as ``{"spots": [...]}``. Fetching only
unwraps the envelope; mapping individual records is the normalizers' job.
"""

import logging
from dataclasses import dataclass
from typing import Any

from spot_tracker.config.settings import Settings
from spot_tracker.ingestion.http_client import HTTPClient, HTTPClientError
from spot_tracker.spots.schemas import SpotSource

logger = logging.getLogger(__name__)


class UpstreamFetchError(Exception):
    """A feed could not be fetched or its response was not the expected shape."""

    def __init__(self, source: SpotSource, message: str):
        super().__init__(f"{source.value}: {message}")
        self.source = source


@dataclass(frozen=True)
class UpstreamFeed:
    """One polled feed: where to fetch it and how often."""

    source: SpotSource
    url: str
    interval_seconds: float
    envelope_key: str | None = None


def feeds_from_settings(settings: Settings, enabled_only: bool = True) -> list[UpstreamFeed]:
    """Build the feed list from settings, skipping disabled feeds by default."""
    feeds = [
        (
            settings.pota_aggregator_enabled,
            UpstreamFeed(
                SpotSource.POTA,
                settings.pota_spots_url,
                settings.pota_poll_interval_seconds,
            ),
        ),
        (
            settings.rbn_aggregator_enabled,
            UpstreamFeed(
                SpotSource.RBN,
                settings.rbn_spots_url,
                settings.rbn_poll_interval_seconds,
                envelope_key="spots",
            ),
        ),
        (
            settings.sota_aggregator_enabled,
            UpstreamFeed(
                SpotSource.SOTA,
                settings.sota_spots_url,
                settings.sota_poll_interval_seconds,
            ),
        ),
    ]
    return [feed for enabled, feed in feeds if enabled or not enabled_only]


def extract_records(feed: UpstreamFeed, payload: Any) -> list[dict[str, Any]]:
    """
    Pull the list of raw records out of a decoded response body.

    Raises:
        UpstreamFetchError: If the payload is not the shape the feed uses
    """
    if feed.envelope_key is not None:
        if not isinstance(payload, dict) or feed.envelope_key not in payload:
            raise UpstreamFetchError(
                feed.source, f"response is missing the {feed.envelope_key!r} envelope"
            )
        payload = payload[feed.envelope_key]

    if not isinstance(payload, list):
        raise UpstreamFetchError(
            feed.source, f"expected a list of records, got {type(payload).__name__}"
        )
    return payload


async def fetch_records(client: HTTPClient, feed: UpstreamFeed) -> list[dict[str, Any]]:
    """
    Fetch one poll's worth of raw records from a feed.

    Raises:
        UpstreamFetchError: On transport failure, non-2xx status or bad JSON
    """
    try:
        response = await client.get(feed.url)
    except HTTPClientError as e:
        raise UpstreamFetchError(feed.source, str(e)) from e

    try:
        payload = response.json()
    except ValueError as e:
        raise UpstreamFetchError(feed.source, f"response is not valid JSON: {e}") from e

    records = extract_records(feed, payload)
    logger.debug("Fetched %d raw records from %s", len(records), feed.source.value)
    return records

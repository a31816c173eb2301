"""
Per-source mapping of raw upstream records onto ``NormalizedSpot``.

Each feed gets one plain function keyed by its ``SpotSource`` tag in
``NORMALIZERS``. A function either returns a valid ``NormalizedSpot`` or
raises; ``normalize`` turns the exception into a ``ParseFailure`` so a
single bad record never aborts the rest of its batch.

Upstream quirks handled here:
- POTA reports kHz as a string and a naive UTC ``spotTime``.
- RBN reports kHz as a number and an offset-aware ``timestamp``.
- SOTA reports MHz as a string; its ``callsign`` field is the *spotter*,
  the activator lives in ``activatorCallsign``.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from spot_tracker.spots.schemas import NormalizedSpot, SpotSource

RawRecord = dict[str, Any]

POTA_DEFAULT_TTL = timedelta(minutes=30)
RBN_TTL = timedelta(minutes=10)
SOTA_TTL = timedelta(minutes=30)


@dataclass(frozen=True)
class ParseFailure:
    """A raw record that could not be normalized."""

    source: SpotSource
    external_id: str | None
    reason: str


def parse_utc(value: Any) -> datetime:
    """
    Parse an ISO 8601 timestamp as UTC.

    Naive values are interpreted as UTC (never local time); aware values
    are converted to UTC.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"timestamp must be a non-empty string, got {value!r}")
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _required(raw: RawRecord, key: str) -> Any:
    if raw.get(key) is None:
        raise KeyError(key)
    return raw[key]


def split_location(location_desc: str | None) -> tuple[str | None, str | None]:
    """Split e.g. ``"US-WY"`` on its first ``-`` into (country, subdivision)."""
    if not location_desc:
        return None, None
    country, _, state = location_desc.partition("-")
    return country or None, state or None


def normalize_pota(raw: RawRecord) -> NormalizedSpot:
    spotted_at = parse_utc(_required(raw, "spotTime"))

    expire = _optional_int(raw.get("expire"))
    ttl = timedelta(seconds=expire) if expire and expire > 0 else POTA_DEFAULT_TTL

    location_desc = _optional_text(raw.get("locationDesc"))
    country_code, state_abbr = split_location(location_desc)

    return NormalizedSpot(
        source=SpotSource.POTA,
        external_id=str(_required(raw, "spotId")),
        callsign=_required(raw, "activator"),
        program_slug="pota",
        frequency_khz=float(_required(raw, "frequency")),
        mode=_required(raw, "mode"),
        reference=_optional_text(raw.get("reference")),
        reference_name=_optional_text(raw.get("parkName")),
        spotter=_optional_text(raw.get("spotter")),
        location_desc=location_desc,
        country_code=country_code,
        state_abbr=state_abbr,
        comments=_optional_text(raw.get("comments")),
        spotted_at=spotted_at,
        expires_at=spotted_at + ttl,
    )


def normalize_rbn(raw: RawRecord) -> NormalizedSpot:
    spotted_at = parse_utc(_required(raw, "timestamp"))
    frequency = _required(raw, "frequency")
    if isinstance(frequency, bool):
        raise TypeError("frequency must be a number")

    return NormalizedSpot(
        source=SpotSource.RBN,
        external_id=str(_required(raw, "id")),
        callsign=_required(raw, "callsign"),
        frequency_khz=float(frequency),
        mode=_required(raw, "mode"),
        spotter=_optional_text(raw.get("spotter")),
        snr=_optional_int(raw.get("snr")),
        wpm=_optional_int(raw.get("speed")),
        spotted_at=spotted_at,
        expires_at=spotted_at + RBN_TTL,
    )


def normalize_sota(raw: RawRecord) -> NormalizedSpot:
    spotted_at = parse_utc(_required(raw, "timeStamp"))
    frequency_mhz = float(_required(raw, "frequency"))
    reference = f"{_required(raw, 'associationCode')}/{_required(raw, 'summitCode')}"

    return NormalizedSpot(
        source=SpotSource.SOTA,
        external_id=str(_required(raw, "id")),
        callsign=_required(raw, "activatorCallsign"),
        program_slug="sota",
        # Round to Hz so "14.285" lands on 14285.0, not 14284.999999999998
        frequency_khz=round(frequency_mhz * 1000, 3),
        mode=_required(raw, "mode"),
        reference=reference,
        reference_name=_optional_text(raw.get("summitDetails")),
        spotter=_optional_text(raw.get("callsign")),
        comments=_optional_text(raw.get("comments")),
        spotted_at=spotted_at,
        expires_at=spotted_at + SOTA_TTL,
    )


NORMALIZERS: dict[SpotSource, Callable[[RawRecord], NormalizedSpot]] = {
    SpotSource.POTA: normalize_pota,
    SpotSource.RBN: normalize_rbn,
    SpotSource.SOTA: normalize_sota,
}

# Field carrying the upstream record id, used to label failures
_ID_FIELDS = {
    SpotSource.POTA: "spotId",
    SpotSource.RBN: "id",
    SpotSource.SOTA: "id",
}


def normalize(source: SpotSource, raw: RawRecord) -> NormalizedSpot | ParseFailure:
    """
    Normalize one raw record from ``source``.

    Returns:
        The canonical spot, or a ParseFailure describing why it was rejected
    """
    if not source.is_upstream:
        raise ValueError(f"Source {source.value!r} is not a polled feed")

    external_id: str | None = None
    if isinstance(raw, dict) and raw.get(_ID_FIELDS[source]) is not None:
        external_id = str(raw[_ID_FIELDS[source]])

    if not isinstance(raw, dict):
        return ParseFailure(source, external_id, f"expected an object, got {type(raw).__name__}")

    try:
        return NORMALIZERS[source](raw)
    except ValidationError as e:
        reason = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
            for err in e.errors()
        )
        return ParseFailure(source, external_id, reason)
    except KeyError as e:
        return ParseFailure(source, external_id, f"missing field {e.args[0]!r}")
    except (ValueError, TypeError, OverflowError) as e:
        return ParseFailure(source, external_id, str(e))


def normalize_batch(
    source: SpotSource,
    records: Iterable[RawRecord],
) -> tuple[list[NormalizedSpot], list[ParseFailure]]:
    """Normalize a whole poll response, partitioning successes and failures."""
    spots: list[NormalizedSpot] = []
    failures: list[ParseFailure] = []
    for raw in records:
        result = normalize(source, raw)
        if isinstance(result, ParseFailure):
            failures.append(result)
        else:
            spots.append(result)
    return spots, failures

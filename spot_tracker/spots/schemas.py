"""
Canonical spot schema for the spot-tracker pipeline.

Every upstream normalizer MUST output a ``NormalizedSpot``: one unit system
(kHz), one clock (timezone-aware UTC) and one shape regardless of which
feed produced it. ``Spot`` maps 1:1 to a row of the ``spots`` table.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class SpotSource(str, Enum):
    """Where a spot came from. Values match the ``spot_source`` postgres enum."""

    POTA = "pota"
    RBN = "rbn"
    SOTA = "sota"
    SELF = "self"
    OTHER = "other"

    @property
    def is_upstream(self) -> bool:
        """True for sources polled from a third-party feed."""
        return self in (SpotSource.POTA, SpotSource.RBN, SpotSource.SOTA)


class NormalizedSpot(BaseModel):
    """
    CANONICAL SPOT SCHEMA

    Output of every upstream normalizer and input to ``SpotRepository.upsert``.
    ``external_id`` is the upstream record id and, together with ``source``,
    the conflict key for idempotent re-ingestion.
    """

    # Identity
    source: SpotSource = Field(..., description="Upstream feed")
    external_id: str = Field(..., min_length=1, description="Upstream record id")

    # Content
    callsign: str = Field(..., min_length=1, description="Activating station")
    program_slug: str | None = Field(default=None, description="Award program")
    frequency_khz: float = Field(..., gt=0, description="Frequency in kHz")
    mode: str = Field(..., min_length=1)
    reference: str | None = Field(default=None, description="Park/summit reference")
    reference_name: str | None = None
    spotter: str | None = None
    spotter_grid: str | None = None
    location_desc: str | None = None
    country_code: str | None = None
    state_abbr: str | None = Field(default=None, description="Subdivision code")
    comments: str | None = None
    snr: int | None = Field(default=None, description="Signal quality (dB)")
    wpm: int | None = Field(default=None, description="CW speed")

    # Time
    spotted_at: datetime = Field(..., description="UTC event time")
    expires_at: datetime = Field(..., description="UTC liveness deadline")

    @field_validator("callsign", "mode")
    @classmethod
    def strip_required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("callsign")
    @classmethod
    def upper_callsign(cls, v: str) -> str:
        return v.upper()

    @field_validator("spotted_at", "expires_at")
    @classmethod
    def require_utc(cls, v: datetime) -> datetime:
        """Reject naive datetimes; normalizers own the UTC interpretation."""
        if v.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware")
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def expires_after_spotted(self) -> "NormalizedSpot":
        if self.expires_at <= self.spotted_at:
            raise ValueError("expires_at must be later than spotted_at")
        return self


@dataclass
class Spot:
    """A persisted spot from the spots table.

    Attributes:
        id: DB-generated UUID.
        callsign: Activating station.
        source: Upstream feed or ``self``.
        frequency_khz: Frequency in kHz.
        mode: Operating mode (SSB, CW, FT8, ...).
        spotted_at: Event time (upstream-reported or submission time).
        expires_at: Liveness deadline; the spot is active while in the future.
        external_id: Upstream record id, None for self-spots.
        submitted_by: Participant who submitted a self-spot.
    """

    callsign: str
    source: SpotSource
    frequency_khz: float
    mode: str
    spotted_at: datetime
    expires_at: datetime
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    program_slug: str | None = None
    external_id: str | None = None
    reference: str | None = None
    reference_name: str | None = None
    spotter: str | None = None
    spotter_grid: str | None = None
    location_desc: str | None = None
    country_code: str | None = None
    state_abbr: str | None = None
    comments: str | None = None
    snr: int | None = None
    wpm: int | None = None
    submitted_by: uuid.UUID | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def is_active(self, now: datetime | None = None) -> bool:
        """A spot is active until its expiry passes."""
        return self.expires_at > (now or _utc_now())


@dataclass
class SpotFilters:
    """Equality filters for listing spots. None means "any"."""

    program: str | None = None
    callsign: str | None = None
    source: SpotSource | None = None
    mode: str | None = None
    state: str | None = None


@dataclass
class SpotPage:
    """One page of a cursor-paginated spot listing."""

    spots: list[Spot]
    has_more: bool
    next_cursor: str | None = None


@dataclass(frozen=True)
class Participant:
    """Authenticated identity handed to the core by the auth layer."""

    participant_id: uuid.UUID
    callsign: str

"""
Request and response models for the spots API.
"""

from pydantic import BaseModel, Field

from spot_tracker.programs.schemas import Program
from spot_tracker.spots.schemas import Spot


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Stable machine-readable error code",
    )


class ComponentHealth(BaseModel):
    """Health status of a single infrastructure component."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None, description="Check latency")
    details: dict | None = None


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Overall status: healthy or unhealthy")
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    version: str = Field(default="0.1.0")


class SpotItem(BaseModel):
    """A spot as returned to clients. Fields with no value are omitted."""

    id: str
    callsign: str
    program_slug: str | None = None
    source: str
    frequency_khz: float
    mode: str
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
    spotted_at: str = Field(..., description="RFC 3339 UTC timestamp")
    expires_at: str = Field(..., description="RFC 3339 UTC timestamp")

    @classmethod
    def from_spot(cls, spot: Spot) -> "SpotItem":
        return cls(
            id=str(spot.id),
            callsign=spot.callsign,
            program_slug=spot.program_slug,
            source=spot.source.value,
            frequency_khz=spot.frequency_khz,
            mode=spot.mode,
            reference=spot.reference,
            reference_name=spot.reference_name,
            spotter=spot.spotter,
            spotter_grid=spot.spotter_grid,
            location_desc=spot.location_desc,
            country_code=spot.country_code,
            state_abbr=spot.state_abbr,
            comments=spot.comments,
            snr=spot.snr,
            wpm=spot.wpm,
            spotted_at=spot.spotted_at.isoformat(),
            expires_at=spot.expires_at.isoformat(),
        )


class SpotsPagination(BaseModel):
    has_more: bool
    next_cursor: str | None = Field(
        default=None,
        description="Pass as ?cursor= to fetch the next page",
    )


class SpotsListResponse(BaseModel):
    """Response model for listing spots."""

    spots: list[SpotItem]
    pagination: SpotsPagination


class CreateSelfSpotRequest(BaseModel):
    """Request model for submitting a self-spot."""

    program_slug: str = Field(..., min_length=1, description="Program to spot under")
    frequency_khz: float = Field(..., gt=0, description="Frequency in kHz")
    mode: str = Field(..., min_length=1, max_length=32)
    reference: str | None = Field(default=None, max_length=64)
    comments: str | None = Field(default=None, max_length=500)


class ProgramItem(BaseModel):
    """An award program as shown to clients."""

    slug: str
    name: str
    short_name: str
    icon: str
    website: str | None = None
    reference_label: str
    reference_format: str | None = None
    reference_example: str | None = None
    capabilities: list[str] = Field(default_factory=list)
    sort_order: int = 0

    @classmethod
    def from_program(cls, program: Program) -> "ProgramItem":
        return cls(
            slug=program.slug,
            name=program.name,
            short_name=program.short_name,
            icon=program.icon,
            website=program.website,
            reference_label=program.reference_label,
            reference_format=program.reference_format,
            reference_example=program.reference_example,
            capabilities=list(program.capabilities),
            sort_order=program.sort_order,
        )


class ProgramListResponse(BaseModel):
    """Response model for listing programs."""

    programs: list[ProgramItem]
    version: int = Field(
        ...,
        description="Epoch seconds of the newest program change; refetch when it moves",
    )

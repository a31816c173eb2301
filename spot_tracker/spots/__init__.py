"""Spots core - canonical schema, store, listing and self-spot submission."""

from spot_tracker.spots.config import SpotsConfig
from spot_tracker.spots.errors import (
    CapabilityNotSupportedError,
    DuplicateSelfSpotError,
    InvalidCursorError,
    ProgramNotFoundError,
    SpotError,
    SpotNotFoundError,
    StoreError,
)
from spot_tracker.spots.schemas import (
    NormalizedSpot,
    Participant,
    Spot,
    SpotFilters,
    SpotPage,
    SpotSource,
)

__all__ = [
    "SpotsConfig",
    "SpotError",
    "DuplicateSelfSpotError",
    "ProgramNotFoundError",
    "CapabilityNotSupportedError",
    "SpotNotFoundError",
    "InvalidCursorError",
    "StoreError",
    "NormalizedSpot",
    "Participant",
    "Spot",
    "SpotFilters",
    "SpotPage",
    "SpotSource",
]

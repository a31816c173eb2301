"""Spots core configuration.

Controls liveness windows, listing bounds and program lookups. All
settings can be overridden via ``SPOTS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SpotsConfig(BaseSettings):
    """Configuration for spot lifecycle and listing."""

    model_config = SettingsConfigDict(
        env_prefix="SPOTS_",
        case_sensitive=False,
        extra="ignore",
    )

    self_spot_ttl_minutes: int = Field(
        default=30,
        ge=1,
        description="Liveness window of a self-spot from submission time",
    )

    default_limit: int = Field(default=100, ge=1)
    min_limit: int = Field(default=1, ge=1)
    max_limit: int = Field(default=250, ge=1)

    default_max_age_minutes: int = Field(default=30, ge=1)
    min_max_age_minutes: int = Field(default=1, ge=1)
    max_max_age_minutes: int = Field(
        default=1440,
        ge=1,
        description="Oldest spotted_at a listing may reach back to",
    )

    program_cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="TTL for in-memory program lookups (0 = no caching)",
    )
    self_spot_capability: str = Field(
        default="selfSpot",
        description="Capability flag a program must advertise to accept self-spots",
    )

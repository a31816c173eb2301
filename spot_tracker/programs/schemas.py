"""Data models for the programs module."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Program:
    """An award program (POTA, SOTA, ...) a spot can belong to.

    Capabilities are free-form feature flags such as ``selfSpot`` or
    ``browseSpots``; the spots core only ever asks whether one is present.
    """

    slug: str
    name: str
    short_name: str
    icon: str
    reference_label: str
    website: str | None = None
    reference_format: str | None = None
    reference_example: str | None = None
    capabilities: list[str] = field(default_factory=list)
    sort_order: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

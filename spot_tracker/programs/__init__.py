"""Programs module - award program registry consulted by self-spotting."""

from spot_tracker.programs.repository import ProgramsRepository
from spot_tracker.programs.schemas import Program
from spot_tracker.programs.service import ProgramCatalog

__all__ = ["Program", "ProgramsRepository", "ProgramCatalog"]

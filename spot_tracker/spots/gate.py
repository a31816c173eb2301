"""Program checks applied before a self-spot reaches the store."""

from spot_tracker.programs.schemas import Program
from spot_tracker.programs.service import ProgramCatalog
from spot_tracker.spots.config import SpotsConfig
from spot_tracker.spots.errors import CapabilityNotSupportedError, ProgramNotFoundError


class SelfSpotGate:
    """
    Rejects self-spots for unknown programs or programs without self-spotting.

    This only validates the program. Whether the participant already has a
    live self-spot is decided atomically by the store.
    """

    def __init__(self, catalog: ProgramCatalog, config: SpotsConfig | None = None) -> None:
        self._catalog = catalog
        self._capability = (config or SpotsConfig()).self_spot_capability

    async def check(self, program_slug: str) -> Program:
        """
        Return the program if it accepts self-spots.

        Raises:
            ProgramNotFoundError: Unknown or inactive program
            CapabilityNotSupportedError: Program lacks the self-spot capability
        """
        program = await self._catalog.get(program_slug)
        if program is None or not program.is_active:
            raise ProgramNotFoundError(program_slug)
        if not program.has_capability(self._capability):
            raise CapabilityNotSupportedError(self._capability, program_slug)
        return program

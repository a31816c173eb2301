"""
Caller-facing errors for the spots core.

Every error carries a stable machine-readable ``code`` and the HTTP status
the API adapter answers with. Handlers match on ``code``, never on message
text.
"""

import uuid


class SpotError(Exception):
    """Base exception for spot operations."""

    code: str = "spot_error"
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DuplicateSelfSpotError(SpotError):
    """The participant already has an unexpired self-spot for this program."""

    code = "self_spot_exists"
    status_code = 409

    def __init__(self, participant_id: uuid.UUID, program_slug: str):
        super().__init__(
            f"An active self-spot already exists for program {program_slug!r}"
        )
        self.participant_id = participant_id
        self.program_slug = program_slug


class ProgramNotFoundError(SpotError):
    """The referenced program does not exist (or is inactive)."""

    code = "program_not_found"
    status_code = 404

    def __init__(self, program_slug: str):
        super().__init__(f"Program {program_slug!r} not found")
        self.program_slug = program_slug


class CapabilityNotSupportedError(SpotError):
    """The program exists but does not advertise the required capability."""

    code = "capability_not_supported"
    status_code = 422

    def __init__(self, capability: str, program_slug: str):
        super().__init__(
            f"Program {program_slug!r} does not support {capability!r}"
        )
        self.capability = capability
        self.program_slug = program_slug


class SpotNotFoundError(SpotError):
    """No spot was found (or removed) for the given id."""

    code = "spot_not_found"
    status_code = 404

    def __init__(self, spot_id: uuid.UUID):
        super().__init__(f"Spot {spot_id} not found")
        self.spot_id = spot_id


class InvalidCursorError(SpotError):
    """The pagination cursor is not an RFC 3339 timestamp."""

    code = "invalid_cursor"
    status_code = 422

    def __init__(self, cursor: str):
        super().__init__(f"Invalid cursor {cursor!r}: expected an RFC 3339 timestamp")
        self.cursor = cursor


class StoreError(SpotError):
    """Persistence failure other than the expected uniqueness rejections."""

    code = "store_failure"
    status_code = 503

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"Spot store failed during {operation}: {cause}")
        self.operation = operation
        self.cause = cause

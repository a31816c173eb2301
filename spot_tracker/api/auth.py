"""
API authentication.

Admin endpoints use the X-API-KEY header. Participant identity is
established upstream of this service and forwarded as X-Participant-ID
and X-Callsign headers.
"""

import uuid

from fastapi import Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from spot_tracker.config.settings import get_settings
from spot_tracker.spots.schemas import Participant

# API key header scheme
api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Verify API key from X-API-KEY header.

    Returns:
        The validated API key

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = get_settings()

    # If no API keys configured, allow all requests (dev mode)
    if not settings.api_keys:
        return "dev-mode"

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    valid_keys = [k.strip() for k in settings.api_keys.split(",") if k.strip()]
    if not valid_keys or api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key


async def get_current_participant(
    participant_id: str | None = Header(default=None, alias="X-Participant-ID"),
    callsign: str | None = Header(default=None, alias="X-Callsign"),
) -> Participant:
    """
    Resolve the authenticated participant from forwarded identity headers.

    Raises:
        HTTPException: 401 if either header is missing or malformed
    """
    if not participant_id or not callsign or not callsign.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing participant identity. Provide X-Participant-ID and X-Callsign headers.",
        )

    try:
        parsed_id = uuid.UUID(participant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-Participant-ID header",
        )

    return Participant(participant_id=parsed_id, callsign=callsign.strip().upper())

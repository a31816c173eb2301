"""Spot endpoints: listing, self-spot submission and deletion."""

import time
import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from spot_tracker.api.auth import get_current_participant, verify_api_key
from spot_tracker.api.dependencies import get_spot_service
from spot_tracker.api.models import (
    CreateSelfSpotRequest,
    ErrorResponse,
    SpotItem,
    SpotsListResponse,
    SpotsPagination,
)
from spot_tracker.spots.errors import SpotError, SpotNotFoundError
from spot_tracker.spots.schemas import Participant, SpotFilters, SpotSource
from spot_tracker.spots.service import SpotService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/spots",
    response_model=SpotsListResponse,
    response_model_exclude_none=True,
    responses={
        422: {"model": ErrorResponse, "description": "Invalid cursor or parameters"},
        503: {"model": ErrorResponse, "description": "Spot store unavailable"},
    },
    summary="List active spots",
    description=(
        "List unexpired spots newest first. Out-of-range limit and "
        "max_age_minutes values are clamped rather than rejected."
    ),
)
async def list_spots(
    program: str | None = Query(default=None, description="Program slug"),
    callsign: str | None = Query(default=None),
    source: SpotSource | None = Query(default=None),
    mode: str | None = Query(default=None),
    state: str | None = Query(default=None, description="Subdivision code, e.g. WY"),
    max_age_minutes: int | None = Query(default=None, description="1-1440, default 30"),
    limit: int | None = Query(default=None, description="1-250, default 100"),
    cursor: str | None = Query(default=None, description="next_cursor from the previous page"),
    spot_service: SpotService = Depends(get_spot_service),
) -> SpotsListResponse:
    start_time = time.perf_counter()

    filters = SpotFilters(
        program=program,
        callsign=callsign.upper() if callsign else None,
        source=source,
        mode=mode,
        state=state,
    )

    try:
        page = await spot_service.list_spots(filters, max_age_minutes, limit, cursor)
    except SpotError:
        raise
    except Exception as e:
        logger.error("list_spots_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list spots",
        )

    logger.debug(
        "Spots listed",
        count=len(page.spots),
        has_more=page.has_more,
        latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )

    return SpotsListResponse(
        spots=[SpotItem.from_spot(s) for s in page.spots],
        pagination=SpotsPagination(has_more=page.has_more, next_cursor=page.next_cursor),
    )


@router.get(
    "/spots/{spot_id}",
    response_model=SpotItem,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse, "description": "Spot not found or expired"}},
    summary="Get spot",
)
async def get_spot(
    spot_id: uuid.UUID,
    spot_service: SpotService = Depends(get_spot_service),
) -> SpotItem:
    spot = await spot_service.get_spot(spot_id)
    if spot is None:
        raise SpotNotFoundError(spot_id)
    return SpotItem.from_spot(spot)


@router.post(
    "/spots",
    response_model=SpotItem,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse, "description": "Missing participant identity"},
        404: {"model": ErrorResponse, "description": "Program not found"},
        409: {"model": ErrorResponse, "description": "Active self-spot already exists"},
        422: {"model": ErrorResponse, "description": "Program does not accept self-spots"},
    },
    summary="Submit a self-spot",
    description=(
        "Announce your own activation. One unexpired self-spot per "
        "participant and program; it expires after 30 minutes."
    ),
)
async def create_self_spot(
    request: CreateSelfSpotRequest,
    participant: Participant = Depends(get_current_participant),
    spot_service: SpotService = Depends(get_spot_service),
) -> SpotItem:
    spot = await spot_service.insert_self_spot(
        participant.participant_id,
        participant.callsign,
        request.program_slug,
        request.frequency_khz,
        request.mode.strip().upper(),
        reference=request.reference,
        comments=request.comments,
    )
    return SpotItem.from_spot(spot)


@router.delete(
    "/spots/{spot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        401: {"model": ErrorResponse, "description": "Missing participant identity"},
        404: {"model": ErrorResponse, "description": "No spot of yours with this id"},
    },
    summary="Delete your own spot",
)
async def delete_own_spot(
    spot_id: uuid.UUID,
    participant: Participant = Depends(get_current_participant),
    spot_service: SpotService = Depends(get_spot_service),
) -> Response:
    deleted = await spot_service.delete_own_spot(spot_id, participant.participant_id)
    if not deleted:
        raise SpotNotFoundError(spot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/admin/spots/{spot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Spot not found"},
    },
    summary="Delete any spot (admin)",
)
async def admin_delete_spot(
    spot_id: uuid.UUID,
    api_key: str = Depends(verify_api_key),
    spot_service: SpotService = Depends(get_spot_service),
) -> Response:
    deleted = await spot_service.admin_delete_spot(spot_id)
    if not deleted:
        raise SpotNotFoundError(spot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

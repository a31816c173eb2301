"""Program catalog endpoints."""

from fastapi import APIRouter, Depends

from spot_tracker.api.dependencies import get_spot_service
from spot_tracker.api.models import ErrorResponse, ProgramItem, ProgramListResponse
from spot_tracker.spots.service import SpotService

router = APIRouter()


@router.get(
    "/programs",
    response_model=ProgramListResponse,
    responses={503: {"model": ErrorResponse, "description": "Spot store unavailable"}},
    summary="List active programs",
    description="Active award programs in display order, with a version for client caching.",
)
async def list_programs(
    spot_service: SpotService = Depends(get_spot_service),
) -> ProgramListResponse:
    programs, version = await spot_service.list_programs()
    return ProgramListResponse(
        programs=[ProgramItem.from_program(p) for p in programs],
        version=version,
    )


@router.get(
    "/programs/{slug}",
    response_model=ProgramItem,
    responses={
        404: {"model": ErrorResponse, "description": "Program not found"},
        503: {"model": ErrorResponse, "description": "Spot store unavailable"},
    },
    summary="Get a program",
)
async def get_program(
    slug: str,
    spot_service: SpotService = Depends(get_spot_service),
) -> ProgramItem:
    return ProgramItem.from_program(await spot_service.get_program(slug))

"""Schedule seat map endpoints."""

from fastapi import APIRouter, HTTPException

from railnet.api.v1.dependencies import BookingServiceDep
from railnet.exceptions import RailnetError
from railnet.schemas.ticket import SeatMapResponse

router = APIRouter()


@router.get(
    "/{schedule_id}/compartments/{compartment_id}/seats",
    response_model=SeatMapResponse,
    summary="Get compartment seat map",
)
async def get_seat_map(
    schedule_id: int,
    compartment_id: int,
    booking_service: BookingServiceDep,
) -> SeatMapResponse:
    """Get capacity and occupied seats of a compartment on a schedule."""
    try:
        return await booking_service.get_seat_map(schedule_id, compartment_id)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

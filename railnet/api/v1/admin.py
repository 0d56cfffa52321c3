"""Admin endpoints for booking reclamation."""

from fastapi import APIRouter, HTTPException

from railnet.api.v1.dependencies import AdminUser, ReclamationServiceDep
from railnet.exceptions import RailnetError
from railnet.schemas.cleanup import PendingBookingStats, SweepResult
from railnet.schemas.ticket import TicketResponse

router = APIRouter()


@router.post(
    "/cleanup",
    response_model=SweepResult,
    summary="Run reclamation sweep",
)
async def run_cleanup(
    admin: AdminUser,
    reclamation_service: ReclamationServiceDep,
    expiry_minutes: int | None = None,
) -> SweepResult:
    """Expire stale pending bookings now instead of waiting for the next tick."""
    return await reclamation_service.sweep(expiry_minutes)


@router.get(
    "/cleanup/stats",
    response_model=PendingBookingStats,
    summary="Pending booking stats",
)
async def cleanup_stats(
    admin: AdminUser,
    reclamation_service: ReclamationServiceDep,
) -> PendingBookingStats:
    """Get counts of bookings awaiting payment."""
    return await reclamation_service.get_pending_stats()


@router.post(
    "/tickets/{ticket_id}/expire",
    response_model=TicketResponse,
    summary="Expire ticket",
)
async def expire_ticket(
    ticket_id: int,
    admin: AdminUser,
    reclamation_service: ReclamationServiceDep,
) -> TicketResponse:
    """Expire a pending ticket and release its seat."""
    try:
        ticket = await reclamation_service.expire_ticket(ticket_id)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return TicketResponse.model_validate(ticket)

"""Ticket API endpoints."""

from fastapi import APIRouter, HTTPException, status

from railnet.api.v1.dependencies import BookingServiceDep, CurrentUser
from railnet.exceptions import RailnetError
from railnet.models.ticket import TicketStatus
from railnet.schemas.ticket import BookTicketRequest, TicketResponse

router = APIRouter()


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book ticket",
)
async def book_ticket(
    request: BookTicketRequest,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> TicketResponse:
    """
    Book one seat on a schedule.

    The ticket is held as pending until paid or until its payment
    deadline passes.
    """
    try:
        ticket = await booking_service.book_ticket(current_user.user_id, request)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return TicketResponse.model_validate(ticket)


@router.get(
    "",
    response_model=list[TicketResponse],
    summary="Get user tickets",
)
async def get_user_tickets(
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
    status_filter: TicketStatus | None = None,
) -> list[TicketResponse]:
    """Get all tickets for the current user."""
    tickets = await booking_service.get_user_tickets(
        user_id=current_user.user_id,
        status=status_filter,
    )
    return [TicketResponse.model_validate(t) for t in tickets]


@router.get(
    "/code/{ticket_code}",
    response_model=TicketResponse,
    summary="Get ticket by code",
)
async def get_ticket_by_code(
    ticket_code: str,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> TicketResponse:
    """Get ticket by its printed code."""
    ticket = await booking_service.get_ticket_by_code(ticket_code)
    if not ticket:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket not found",
        )

    if ticket.user_id != current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot access another user's ticket",
        )

    return TicketResponse.model_validate(ticket)


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Get ticket details",
)
async def get_ticket(
    ticket_id: int,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> TicketResponse:
    """Get ticket details."""
    try:
        ticket = await booking_service.get_user_ticket(current_user.user_id, ticket_id)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return TicketResponse.model_validate(ticket)


@router.post(
    "/{ticket_id}/cancel",
    response_model=TicketResponse,
    summary="Cancel ticket",
)
async def cancel_ticket(
    ticket_id: int,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> TicketResponse:
    """
    Cancel a pending or confirmed ticket.

    Not allowed close to departure. Paid tickets are marked refunded.
    """
    try:
        ticket = await booking_service.cancel_ticket(current_user.user_id, ticket_id)
    except RailnetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return TicketResponse.model_validate(ticket)

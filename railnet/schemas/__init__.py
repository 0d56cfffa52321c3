"""Pydantic schemas for API request/response."""

from railnet.schemas.cleanup import PendingBookingStats, SweepResult
from railnet.schemas.payment import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    IPNRequest,
    IPNResponse,
    PaymentCallbackResponse,
    PaymentOutcome,
    PaymentTransactionResponse,
)
from railnet.schemas.ticket import (
    BookTicketRequest,
    PassengerGender,
    SeatMapResponse,
    TicketPaymentStatus,
    TicketResponse,
    TicketStatus,
)

__all__ = [
    "BookTicketRequest",
    "PassengerGender",
    "SeatMapResponse",
    "TicketPaymentStatus",
    "TicketResponse",
    "TicketStatus",
    "InitiatePaymentRequest",
    "InitiatePaymentResponse",
    "IPNRequest",
    "IPNResponse",
    "PaymentCallbackResponse",
    "PaymentOutcome",
    "PaymentTransactionResponse",
    "PendingBookingStats",
    "SweepResult",
]

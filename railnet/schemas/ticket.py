"""Ticket schemas."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import Field

from railnet.models.ticket import TicketPaymentStatus, TicketStatus
from railnet.schemas.common import BaseSchema


class PassengerGender(str, Enum):
    """Passenger gender enum."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class BookTicketRequest(BaseSchema):
    """Schema for booking one seat on one schedule."""

    schedule_id: int = Field(..., gt=0)
    from_station_id: int = Field(..., gt=0)
    to_station_id: int = Field(..., gt=0)
    compartment_id: int = Field(..., gt=0)
    seat_number: str = Field(..., min_length=1, max_length=20, pattern=r"^[A-Za-z0-9-]+$")
    passenger_name: str = Field(..., min_length=1, max_length=255)
    passenger_age: int = Field(..., ge=0, le=120)
    passenger_gender: PassengerGender


class TicketResponse(BaseSchema):
    """Schema for ticket response."""

    ticket_id: int
    ticket_code: str
    user_id: int
    schedule_id: int
    travel_date: date
    from_station_id: int
    to_station_id: int
    train_compartment_id: int
    seat_number: str
    passenger_name: str
    passenger_age: int
    passenger_gender: str
    distance_km: Decimal
    price: Decimal
    status: TicketStatus
    payment_status: TicketPaymentStatus
    expires_at: datetime
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime


class SeatMapResponse(BaseSchema):
    """Occupancy of one compartment on one schedule."""

    schedule_id: int
    compartment_id: int
    train_compartment_id: int
    travel_date: date
    total_seats: int
    booked_seats: int
    available_seats: int
    occupied_seats: list[str] = []

"""Ticket model."""

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from railnet.models.base import Base, BigIntPK


class TicketStatus(str, enum.Enum):
    """Ticket status enum."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class TicketPaymentStatus(str, enum.Enum):
    """Ticket payment status enum."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    EXPIRED = "expired"


ACTIVE_TICKET_STATUSES = (TicketStatus.PENDING, TicketStatus.CONFIRMED)

# One active ticket per seat and travel date
SEAT_HOLD_CONSTRAINT = "uk_seat_date_hold"
SEAT_HOLD_COLUMNS = ("seat_id", "travel_date", "active_hold")


class Ticket(Base):
    """Ticket model: one passenger on one seat for one journey segment.

    ``active_hold`` is TRUE while the ticket is pending or confirmed and NULL
    once it reaches a terminal state. The unique constraint over
    (seat_id, travel_date, active_hold) therefore admits any number of
    released tickets but at most one live ticket per seat and date.
    """

    __tablename__ = "tickets"

    ticket_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    ticket_code: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.user_id"), nullable=False
    )
    schedule_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("train_schedules.schedule_id"), nullable=False
    )
    train_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("trains.train_id"), nullable=False
    )
    travel_date: Mapped[date] = mapped_column(Date, nullable=False)
    from_station_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("stations.station_id"), nullable=False
    )
    to_station_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("stations.station_id"), nullable=False
    )
    train_compartment_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("train_compartments.train_compartment_id"), nullable=False
    )
    seat_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("seats.seat_id"), nullable=False
    )
    seat_number: Mapped[str] = mapped_column(String(20), nullable=False)
    passenger_name: Mapped[str] = mapped_column(String(255), nullable=False)
    passenger_age: Mapped[int] = mapped_column(Integer, nullable=False)
    passenger_gender: Mapped[str] = mapped_column(String(20), nullable=False)
    distance_km: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[TicketStatus] = mapped_column(
        Enum(TicketStatus), default=TicketStatus.PENDING, nullable=False
    )
    payment_status: Mapped[TicketPaymentStatus] = mapped_column(
        Enum(TicketPaymentStatus), default=TicketPaymentStatus.PENDING, nullable=False
    )
    active_hold: Mapped[bool | None] = mapped_column(Boolean, default=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    __table_args__ = (
        UniqueConstraint(*SEAT_HOLD_COLUMNS, name=SEAT_HOLD_CONSTRAINT),
        Index("idx_ticket_user", "user_id"),
        Index("idx_ticket_pending_expiry", "status", "payment_status", "expires_at"),
        Index("idx_ticket_train_date_seat", "train_id", "travel_date", "seat_number"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_TICKET_STATUSES

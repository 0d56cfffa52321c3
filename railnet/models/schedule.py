"""Train schedule and compartment booking ledger models."""

import enum
from datetime import date, datetime, time
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from railnet.models.base import Base, BigIntPK

if TYPE_CHECKING:
    from railnet.models.station import Route
    from railnet.models.train import Train


class ScheduleStatus(str, enum.Enum):
    """Schedule status enum."""

    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    DELAYED = "delayed"
    CANCELLED = "cancelled"


class TrainSchedule(Base):
    """A train bound to a route for a specific departure."""

    __tablename__ = "train_schedules"

    schedule_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    train_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("trains.train_id"), nullable=False
    )
    route_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("routes.route_id"), nullable=False
    )
    departure_date: Mapped[date] = mapped_column(Date, nullable=False)
    departure_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[ScheduleStatus] = mapped_column(
        Enum(ScheduleStatus), default=ScheduleStatus.SCHEDULED
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    train: Mapped["Train"] = relationship("Train")
    route: Mapped["Route"] = relationship("Route")

    __table_args__ = (
        Index("idx_train_date", "train_id", "departure_date"),
    )

    @property
    def departure_at(self) -> datetime:
        """Departure as a single datetime."""
        return datetime.combine(self.departure_date, self.departure_time)


class CompartmentBooking(Base):
    """Authoritative booked-seat counter for one compartment on one schedule."""

    __tablename__ = "compartment_bookings"

    compartment_booking_id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, autoincrement=True
    )
    schedule_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("train_schedules.schedule_id"), nullable=False
    )
    train_compartment_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("train_compartments.train_compartment_id"), nullable=False
    )
    booked_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now,
        onupdate=datetime.now,
        server_default=func.current_timestamp(),
    )

    __table_args__ = (
        UniqueConstraint(
            "schedule_id", "train_compartment_id", name="uk_schedule_compartment"
        ),
        CheckConstraint(
            "booked_seats >= 0 AND booked_seats <= total_seats",
            name="ck_booked_within_capacity",
        ),
    )

    @property
    def available_seats(self) -> int:
        return self.total_seats - self.booked_seats

"""Seat ledger: compartment capacity counters and per-seat occupancy."""

import logging
from datetime import date
from typing import Any

from sqlalchemy import and_, select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from railnet.exceptions import CapacityExceeded, LedgerUnderflow, NotFound, SeatAlreadyBooked
from railnet.models.schedule import CompartmentBooking
from railnet.models.seat import Seat
from railnet.models.ticket import ACTIVE_TICKET_STATUSES, Ticket
from railnet.models.train import Compartment, TrainCompartment

logger = logging.getLogger(__name__)


def insert_if_absent(dialect_name: str, model: type, values: dict[str, Any]):
    """Build an INSERT that silently skips rows hitting a unique key."""
    if dialect_name == "mysql":
        return mysql_insert(model).values(**values).prefix_with("IGNORE")
    if dialect_name == "postgresql":
        return postgresql_insert(model).values(**values).on_conflict_do_nothing()
    if dialect_name == "sqlite":
        return sqlite_insert(model).values(**values).on_conflict_do_nothing()
    raise NotImplementedError(f"Unsupported database dialect: {dialect_name}")


class SeatLedger:
    """
    Capacity and seat-occupancy primitives.

    Every method runs on the caller's session and never commits: the caller
    owns the transaction so that ledger, seat and ticket writes land (or roll
    back) together. Booking, cancellation and expiry all go through
    `reserve` / `release` so the counter cannot drift from the tickets.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @property
    def _dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    async def get_entry(
        self,
        schedule_id: int,
        train_compartment_id: int,
    ) -> CompartmentBooking | None:
        """Get the ledger row for a schedule and compartment."""
        result = await self.db.execute(
            select(CompartmentBooking).where(
                and_(
                    CompartmentBooking.schedule_id == schedule_id,
                    CompartmentBooking.train_compartment_id == train_compartment_id,
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _ensure_entry(self, schedule_id: int, train_compartment_id: int) -> None:
        """Create the ledger row from the compartment catalog if missing."""
        existing = await self.db.execute(
            select(CompartmentBooking.compartment_booking_id).where(
                and_(
                    CompartmentBooking.schedule_id == schedule_id,
                    CompartmentBooking.train_compartment_id == train_compartment_id,
                )
            )
        )
        if existing.scalar_one_or_none() is not None:
            return

        total_result = await self.db.execute(
            select(Compartment.total_seats)
            .join(
                TrainCompartment,
                TrainCompartment.compartment_id == Compartment.compartment_id,
            )
            .where(TrainCompartment.train_compartment_id == train_compartment_id)
        )
        total_seats = total_result.scalar_one_or_none()
        if total_seats is None:
            raise NotFound(f"Train compartment {train_compartment_id} not found")

        # A concurrent first booking may insert the same row; the unique key
        # makes the loser's insert a no-op.
        await self.db.execute(
            insert_if_absent(
                self._dialect_name,
                CompartmentBooking,
                {
                    "schedule_id": schedule_id,
                    "train_compartment_id": train_compartment_id,
                    "booked_seats": 0,
                    "total_seats": total_seats,
                },
            )
        )

    async def reserve(self, schedule_id: int, train_compartment_id: int) -> None:
        """
        Take one seat of capacity.

        Raises:
            CapacityExceeded: If every seat is already booked
        """
        await self._ensure_entry(schedule_id, train_compartment_id)

        result = await self.db.execute(
            update(CompartmentBooking)
            .where(
                and_(
                    CompartmentBooking.schedule_id == schedule_id,
                    CompartmentBooking.train_compartment_id == train_compartment_id,
                    CompartmentBooking.booked_seats < CompartmentBooking.total_seats,
                )
            )
            .values(booked_seats=CompartmentBooking.booked_seats + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CapacityExceeded(
                "No seats available in this compartment for this train and date"
            )

    async def release(self, schedule_id: int, train_compartment_id: int) -> None:
        """
        Give one seat of capacity back.

        Raises:
            LedgerUnderflow: If there is no ledger row or it is already at zero
        """
        result = await self.db.execute(
            update(CompartmentBooking)
            .where(
                and_(
                    CompartmentBooking.schedule_id == schedule_id,
                    CompartmentBooking.train_compartment_id == train_compartment_id,
                    CompartmentBooking.booked_seats > 0,
                )
            )
            .values(booked_seats=CompartmentBooking.booked_seats - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.error(
                f"Ledger underflow for schedule {schedule_id}, "
                f"compartment {train_compartment_id}"
            )
            raise LedgerUnderflow(
                f"No booked seat to release for schedule {schedule_id}, "
                f"compartment {train_compartment_id}"
            )

    async def lock_seat(self, train_compartment_id: int, seat_number: str) -> Seat:
        """
        Get the seat row with a row-level lock, creating it on first use.

        Holding this lock serialises concurrent bookings of the same seat
        number for the rest of the transaction.
        """
        await self.db.execute(
            insert_if_absent(
                self._dialect_name,
                Seat,
                {
                    "train_compartment_id": train_compartment_id,
                    "seat_number": seat_number,
                    "is_available": True,
                    "version": 0,
                },
            )
        )
        result = await self.db.execute(
            select(Seat)
            .where(
                and_(
                    Seat.train_compartment_id == train_compartment_id,
                    Seat.seat_number == seat_number,
                )
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def assert_seat_free(
        self,
        train_id: int,
        travel_date: date,
        train_compartment_id: int,
        seat_number: str,
    ) -> None:
        """
        Check that no active ticket holds this seat on this train and date.

        Raises:
            SeatAlreadyBooked: If a pending or confirmed ticket exists
        """
        result = await self.db.execute(
            select(Ticket.ticket_id)
            .where(
                and_(
                    Ticket.train_id == train_id,
                    Ticket.travel_date == travel_date,
                    Ticket.train_compartment_id == train_compartment_id,
                    Ticket.seat_number == seat_number,
                    Ticket.status.in_(ACTIVE_TICKET_STATUSES),
                )
            )
            .limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise SeatAlreadyBooked("Seat number already booked for this train and date")

    async def occupy_seat(self, seat: Seat) -> None:
        """Mark a locked seat as taken."""
        seat.is_available = False
        seat.version += 1
        await self.db.flush()

    async def free_seat(self, seat_id: int, releasing_ticket_id: int | None = None) -> None:
        """
        Mark a seat as available again.

        Seat rows are shared by every travel date of the train, so the flag
        is only cleared once no other active ticket holds the seat.
        """
        other_holders = select(Ticket.ticket_id).where(
            Ticket.seat_id == seat_id,
            Ticket.status.in_(ACTIVE_TICKET_STATUSES),
        )
        if releasing_ticket_id is not None:
            other_holders = other_holders.where(Ticket.ticket_id != releasing_ticket_id)

        await self.db.execute(
            update(Seat)
            .where(Seat.seat_id == seat_id, ~other_holders.exists())
            .values(is_available=True, version=Seat.version + 1)
            .execution_options(synchronize_session=False)
        )

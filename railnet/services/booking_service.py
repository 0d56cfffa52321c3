"""Booking orchestration: seat booking, cancellation and seat maps."""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from ulid import ULID

from railnet.config import Settings, get_settings
from railnet.exceptions import (
    BookingClosed,
    CancellationWindowClosed,
    CompartmentUnavailable,
    NotFound,
    SeatAlreadyBooked,
    TicketNotCancellable,
    Unauthorized,
)
from railnet.models.payment import PaymentAction
from railnet.models.schedule import ScheduleStatus, TrainSchedule
from railnet.models.station import Route
from railnet.models.ticket import (
    ACTIVE_TICKET_STATUSES,
    SEAT_HOLD_COLUMNS,
    SEAT_HOLD_CONSTRAINT,
    Ticket,
    TicketPaymentStatus,
    TicketStatus,
)
from railnet.models.train import TrainCompartment
from railnet.schemas.ticket import BookTicketRequest, SeatMapResponse
from railnet.services.fare_service import (
    FareCalculator,
    validate_route_stops,
    validate_segment,
)
from railnet.services.ledger_service import SeatLedger
from railnet.services.payment_service import cancel_open_transactions

logger = logging.getLogger(__name__)


def is_seat_hold_conflict(error: IntegrityError) -> bool:
    """
    Tell whether an insert failed on the one-active-ticket-per-seat key.

    MySQL and PostgreSQL name the violated key, SQLite lists its columns.
    """
    message = str(error.orig)
    columns = ", ".join(f"{Ticket.__tablename__}.{column}" for column in SEAT_HOLD_COLUMNS)
    return SEAT_HOLD_CONSTRAINT in message or columns in message


class BookingService:
    """Service for booking seats on train schedules."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        fare_calculator: FareCalculator | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.ledger = SeatLedger(db)
        self.fares = fare_calculator or FareCalculator()

    def _generate_ticket_code(self, train_code: str, travel_date: date, seat_number: str) -> str:
        """Human-readable ticket code with a random ULID suffix."""
        suffix = str(ULID())[-6:]
        return f"{train_code}-{travel_date:%Y%m%d}-{seat_number}-{suffix}".upper()

    async def _unique_ticket_code(
        self,
        train_code: str,
        travel_date: date,
        seat_number: str,
    ) -> str:
        for _ in range(self.settings.TICKET_CODE_MAX_ATTEMPTS):
            code = self._generate_ticket_code(train_code, travel_date, seat_number)
            result = await self.db.execute(
                select(Ticket.ticket_id).where(Ticket.ticket_code == code)
            )
            if result.scalar_one_or_none() is None:
                return code
        raise RuntimeError("Could not generate a unique ticket code")

    async def get_schedule(self, schedule_id: int) -> TrainSchedule | None:
        """Get a schedule with its train and ordered route stops."""
        result = await self.db.execute(
            select(TrainSchedule)
            .where(TrainSchedule.schedule_id == schedule_id)
            .options(
                selectinload(TrainSchedule.train),
                selectinload(TrainSchedule.route).selectinload(Route.stops),
            )
        )
        return result.scalar_one_or_none()

    async def get_train_compartment(
        self,
        train_id: int,
        compartment_id: int,
    ) -> TrainCompartment | None:
        """Get the train's instance of a compartment type."""
        result = await self.db.execute(
            select(TrainCompartment)
            .where(
                and_(
                    TrainCompartment.train_id == train_id,
                    TrainCompartment.compartment_id == compartment_id,
                )
            )
            .options(selectinload(TrainCompartment.compartment))
        )
        return result.scalar_one_or_none()

    async def book_ticket(self, user_id: int, request: BookTicketRequest) -> Ticket:
        """
        Book one seat for one passenger.

        The seat lock, active-ticket check, ledger reservation, seat update
        and ticket insert all commit together or not at all. The ticket
        starts pending with a payment deadline.

        Args:
            user_id: Booking user
            request: Validated booking request

        Returns:
            Created ticket

        Raises:
            NotFound: Schedule does not exist
            BookingClosed: Schedule cancelled or departed
            InvalidSegment: Bad from/to pair
            CompartmentUnavailable: Train has no such compartment
            SeatAlreadyBooked: Seat is held by another active ticket
            CapacityExceeded: Compartment is full
        """
        try:
            ticket = await self._do_book_ticket(user_id, request)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not is_seat_hold_conflict(e):
                raise
            # Lost the race on the seat/date hold to a concurrent booking
            raise SeatAlreadyBooked("Seat already booked") from e
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(ticket)
        logger.info(
            f"Booked ticket {ticket.ticket_code} (seat {ticket.seat_number}, "
            f"schedule {ticket.schedule_id}) expiring at {ticket.expires_at}"
        )
        return ticket

    async def _do_book_ticket(self, user_id: int, request: BookTicketRequest) -> Ticket:
        schedule = await self.get_schedule(request.schedule_id)
        if not schedule:
            raise NotFound("Train schedule not found")

        if schedule.status == ScheduleStatus.CANCELLED:
            raise BookingClosed("This train schedule has been cancelled")

        now = datetime.now()
        if schedule.departure_at <= now:
            raise BookingClosed("Cannot book tickets for past or current schedules")

        validate_route_stops(schedule.route.stops)
        segment = validate_segment(
            schedule.route.stops,
            request.from_station_id,
            request.to_station_id,
        )

        train_compartment = await self.get_train_compartment(
            schedule.train_id, request.compartment_id
        )
        if not train_compartment:
            raise CompartmentUnavailable("Compartment not available for this train")

        travel_date = schedule.departure_date
        seat = await self.ledger.lock_seat(
            train_compartment.train_compartment_id, request.seat_number
        )
        await self.ledger.assert_seat_free(
            schedule.train_id,
            travel_date,
            train_compartment.train_compartment_id,
            request.seat_number,
        )

        await self.ledger.reserve(
            schedule.schedule_id, train_compartment.train_compartment_id
        )

        compartment = train_compartment.compartment
        price = self.fares.calculate(compartment.price, compartment.pricing_model, segment)

        await self.ledger.occupy_seat(seat)

        ticket = Ticket(
            ticket_code=await self._unique_ticket_code(
                schedule.train.code, travel_date, request.seat_number
            ),
            user_id=user_id,
            schedule_id=schedule.schedule_id,
            train_id=schedule.train_id,
            travel_date=travel_date,
            from_station_id=request.from_station_id,
            to_station_id=request.to_station_id,
            train_compartment_id=train_compartment.train_compartment_id,
            seat_id=seat.seat_id,
            seat_number=request.seat_number,
            passenger_name=request.passenger_name,
            passenger_age=request.passenger_age,
            passenger_gender=request.passenger_gender.value,
            distance_km=segment.distance,
            price=price,
            status=TicketStatus.PENDING,
            payment_status=TicketPaymentStatus.PENDING,
            active_hold=True,
            expires_at=now + timedelta(minutes=self.settings.BOOKING_EXPIRY_MINUTES),
        )
        self.db.add(ticket)
        await self.db.flush()
        return ticket

    async def get_ticket(self, ticket_id: int) -> Ticket | None:
        """Get ticket by ID."""
        result = await self.db.execute(
            select(Ticket).where(Ticket.ticket_id == ticket_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_ticket_by_code(self, ticket_code: str) -> Ticket | None:
        """Get ticket by its human-readable code."""
        result = await self.db.execute(
            select(Ticket).where(Ticket.ticket_code == ticket_code)
        )
        return result.scalar_one_or_none()

    async def get_user_ticket(self, user_id: int, ticket_id: int) -> Ticket:
        """
        Get a ticket owned by the user.

        Raises:
            NotFound: Ticket does not exist
            Unauthorized: Ticket belongs to someone else
        """
        ticket = await self.get_ticket(ticket_id)
        if not ticket:
            raise NotFound("Ticket not found")
        if ticket.user_id != user_id:
            raise Unauthorized("Unauthorized access to ticket")
        return ticket

    async def get_user_tickets(
        self,
        user_id: int,
        status: TicketStatus | None = None,
    ) -> list[Ticket]:
        """Get tickets for a user, newest first."""
        query = select(Ticket).where(Ticket.user_id == user_id)

        if status:
            query = query.where(Ticket.status == status)

        query = query.order_by(Ticket.created_at.desc(), Ticket.ticket_id.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def cancel_ticket(self, user_id: int, ticket_id: int) -> Ticket:
        """
        Cancel a pending or confirmed ticket.

        Only allowed outside the cancellation cutoff before departure. The
        seat and ledger are released with the same primitives the expiry
        sweep uses; open payment attempts are cancelled. A paid ticket moves
        to refunded (the refund itself is settled elsewhere).

        Raises:
            NotFound, Unauthorized, TicketNotCancellable,
            CancellationWindowClosed
        """
        ticket = await self.get_user_ticket(user_id, ticket_id)

        if not ticket.is_active:
            raise TicketNotCancellable(f"Ticket is already {ticket.status.value}")

        schedule = await self.db.get(TrainSchedule, ticket.schedule_id)
        if not schedule:
            raise NotFound("Train schedule not found")

        cutoff = timedelta(hours=self.settings.CANCELLATION_CUTOFF_HOURS)
        if schedule.departure_at - datetime.now() < cutoff:
            raise CancellationWindowClosed(
                f"Cannot cancel ticket within {self.settings.CANCELLATION_CUTOFF_HOURS} "
                f"hours of departure"
            )

        payment_status = ticket.payment_status
        if payment_status == TicketPaymentStatus.PAID:
            payment_status = TicketPaymentStatus.REFUNDED

        try:
            result = await self.db.execute(
                update(Ticket)
                .where(
                    and_(
                        Ticket.ticket_id == ticket_id,
                        Ticket.status.in_(ACTIVE_TICKET_STATUSES),
                        Ticket.payment_status == ticket.payment_status,
                    )
                )
                .values(
                    status=TicketStatus.CANCELLED,
                    payment_status=payment_status,
                    active_hold=None,
                    cancelled_at=datetime.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise TicketNotCancellable("Ticket changed while cancelling, retry")

            await cancel_open_transactions(
                self.db,
                ticket_id,
                action=PaymentAction.CANCELLED,
                reason="Booking cancelled by user",
            )
            await self.ledger.free_seat(ticket.seat_id, ticket.ticket_id)
            await self.ledger.release(ticket.schedule_id, ticket.train_compartment_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(ticket)
        logger.info(f"Cancelled ticket {ticket.ticket_code}")
        return ticket

    async def get_seat_map(self, schedule_id: int, compartment_id: int) -> SeatMapResponse:
        """
        Get capacity and occupied seat numbers for one compartment.

        Counts come from the ledger, not from counting tickets.
        """
        schedule = await self.db.get(TrainSchedule, schedule_id)
        if not schedule:
            raise NotFound("Train schedule not found")

        train_compartment = await self.get_train_compartment(schedule.train_id, compartment_id)
        if not train_compartment:
            raise CompartmentUnavailable("Compartment not available for this train")

        entry = await self.ledger.get_entry(
            schedule_id, train_compartment.train_compartment_id
        )
        total_seats = entry.total_seats if entry else train_compartment.compartment.total_seats
        booked_seats = entry.booked_seats if entry else 0

        result = await self.db.execute(
            select(Ticket.seat_number)
            .where(
                and_(
                    Ticket.train_id == schedule.train_id,
                    Ticket.travel_date == schedule.departure_date,
                    Ticket.train_compartment_id == train_compartment.train_compartment_id,
                    Ticket.status.in_(ACTIVE_TICKET_STATUSES),
                )
            )
            .order_by(Ticket.seat_number)
        )

        return SeatMapResponse(
            schedule_id=schedule_id,
            compartment_id=compartment_id,
            train_compartment_id=train_compartment.train_compartment_id,
            travel_date=schedule.departure_date,
            total_seats=total_seats,
            booked_seats=booked_seats,
            available_seats=total_seats - booked_seats,
            occupied_seats=list(result.scalars().all()),
        )

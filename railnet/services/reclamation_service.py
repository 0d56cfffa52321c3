"""Reclamation of bookings whose payment window lapsed."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from railnet.config import Settings, get_settings
from railnet.exceptions import NotFound, TicketNotPending
from railnet.models.payment import PaymentAction
from railnet.models.ticket import Ticket, TicketPaymentStatus, TicketStatus
from railnet.schemas.cleanup import PendingBookingStats, SweepResult
from railnet.services.ledger_service import SeatLedger
from railnet.services.payment_service import cancel_open_transactions

logger = logging.getLogger(__name__)

EXPIRY_REASON = "Booking expired due to payment timeout"
EXPIRING_SOON_MINUTES = 5


class ReclamationService:
    """
    Expires unpaid tickets and gives their seats back.

    Each ticket is reclaimed in its own transaction. The ticket row is
    claimed with a conditional update first, so a success callback that
    confirms the ticket concurrently makes the sweep skip it (and the other
    way round).
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.ledger = SeatLedger(db)

    async def find_expired(self, expiry_minutes: int) -> list[Ticket]:
        """Get pending, unpaid tickets whose hold and grace window both passed."""
        now = datetime.now()
        result = await self.db.execute(
            select(Ticket)
            .where(
                and_(
                    Ticket.status == TicketStatus.PENDING,
                    Ticket.payment_status == TicketPaymentStatus.PENDING,
                    Ticket.expires_at < now,
                    Ticket.created_at < now - timedelta(minutes=expiry_minutes),
                )
            )
            .order_by(Ticket.expires_at, Ticket.ticket_id)
        )
        return list(result.scalars().all())

    async def sweep(self, expiry_minutes: int | None = None) -> SweepResult:
        """
        Expire every stale pending booking.

        Failures are isolated per ticket and collected into the result.
        """
        if expiry_minutes is None:
            expiry_minutes = self.settings.BOOKING_EXPIRY_MINUTES

        # Snapshot the keys: a rollback expires every loaded instance
        candidates = [
            (t.ticket_id, t.ticket_code, t.seat_id, t.schedule_id, t.train_compartment_id)
            for t in await self.find_expired(expiry_minutes)
        ]
        await self.db.commit()

        result = SweepResult()
        if not candidates:
            logger.debug("No expired bookings to reclaim")
            return result

        logger.info(f"Found {len(candidates)} expired bookings to reclaim")

        for ticket_id, ticket_code, seat_id, schedule_id, train_compartment_id in candidates:
            try:
                cancelled = await self._reclaim(
                    ticket_id, seat_id, schedule_id, train_compartment_id
                )
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Failed to reclaim ticket {ticket_code}: {e}")
                result.errors.append(f"Ticket {ticket_id}: {e}")
                continue

            if cancelled is None:
                logger.debug(f"Ticket {ticket_code} settled before reclamation, skipped")
                continue

            result.expired_count += 1
            result.cancelled_transaction_count += cancelled
            logger.info(
                f"Expired ticket {ticket_code}, cancelled {cancelled} payment transaction(s)"
            )

        logger.info(
            f"Sweep finished: {result.expired_count} expired, "
            f"{result.cancelled_transaction_count} transactions cancelled, "
            f"{len(result.errors)} errors"
        )
        return result

    async def _reclaim(
        self,
        ticket_id: int,
        seat_id: int,
        schedule_id: int,
        train_compartment_id: int,
    ) -> int | None:
        """
        Expire one ticket and release what it holds, atomically.

        Returns:
            Number of cancelled transactions, or None if the ticket was no
            longer pending
        """
        claim = await self.db.execute(
            update(Ticket)
            .where(
                and_(
                    Ticket.ticket_id == ticket_id,
                    Ticket.status == TicketStatus.PENDING,
                    Ticket.payment_status == TicketPaymentStatus.PENDING,
                )
            )
            .values(
                status=TicketStatus.EXPIRED,
                payment_status=TicketPaymentStatus.EXPIRED,
                active_hold=None,
            )
            .execution_options(synchronize_session=False)
        )
        if claim.rowcount == 0:
            await self.db.rollback()
            return None

        cancelled = await cancel_open_transactions(
            self.db,
            ticket_id,
            action=PaymentAction.EXPIRED,
            reason=EXPIRY_REASON,
        )
        await self.ledger.free_seat(seat_id, ticket_id)
        await self.ledger.release(schedule_id, train_compartment_id)
        await self.db.commit()
        return cancelled

    async def expire_ticket(self, ticket_id: int) -> Ticket:
        """
        Expire one pending ticket immediately, ignoring its deadline.

        Raises:
            NotFound: Ticket does not exist
            TicketNotPending: Ticket is already paid or terminal
        """
        result = await self.db.execute(
            select(Ticket)
            .where(Ticket.ticket_id == ticket_id)
            .execution_options(populate_existing=True)
        )
        ticket = result.scalar_one_or_none()
        if not ticket:
            raise NotFound("Ticket not found")

        try:
            cancelled = await self._reclaim(
                ticket.ticket_id,
                ticket.seat_id,
                ticket.schedule_id,
                ticket.train_compartment_id,
            )
        except Exception:
            await self.db.rollback()
            raise

        if cancelled is None:
            raise TicketNotPending("Ticket is not pending payment")

        await self.db.refresh(ticket)
        logger.info(f"Manually expired ticket {ticket.ticket_code}")
        return ticket

    async def get_pending_stats(self) -> PendingBookingStats:
        """
        Get counts of bookings awaiting payment.

        ``expiring_soon`` counts holds whose deadline falls within the next
        few minutes. ``expired`` counts holds already past their deadline
        that no sweep has reclaimed yet.
        """
        now = datetime.now()
        pending = and_(
            Ticket.status == TicketStatus.PENDING,
            Ticket.payment_status == TicketPaymentStatus.PENDING,
        )

        total = await self.db.execute(
            select(func.count(Ticket.ticket_id)).where(pending)
        )
        expiring_soon = await self.db.execute(
            select(func.count(Ticket.ticket_id)).where(
                and_(
                    pending,
                    Ticket.expires_at > now,
                    Ticket.expires_at <= now + timedelta(minutes=EXPIRING_SOON_MINUTES),
                )
            )
        )
        expired = await self.db.execute(
            select(func.count(Ticket.ticket_id)).where(and_(pending, Ticket.expires_at < now))
        )

        return PendingBookingStats(
            total_pending=total.scalar_one(),
            expiring_soon=expiring_soon.scalar_one(),
            expired=expired.scalar_one(),
        )

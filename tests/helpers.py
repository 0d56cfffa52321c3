"""Test doubles and direct database reads."""

from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select, update

from railnet.exceptions import GatewayError
from railnet.gateway import PaymentSession, PaymentValidation
from railnet.models import CompartmentBooking, PaymentLog, Seat, Ticket, TrainCompartment


class FakeGateway:
    """Scripted stand-in for the SSLCommerz client."""

    def __init__(self):
        self.session = PaymentSession(
            status="SUCCESS",
            sessionkey="SESSION-KEY",
            GatewayPageURL="https://sandbox.example/pay/SESSION-KEY",
        )
        self.session_error: Exception | None = None
        self.validations: dict[str, PaymentValidation] = {}
        self.session_requests = []
        self.validate_calls: list[str] = []
        self.before_validate = None

    async def create_session(self, request):
        self.session_requests.append(request)
        if self.session_error:
            raise self.session_error
        return self.session

    async def validate(self, val_id: str) -> PaymentValidation:
        self.validate_calls.append(val_id)
        if self.before_validate is not None:
            await self.before_validate()
        if val_id not in self.validations:
            raise GatewayError("Failed to validate payment")
        return self.validations[val_id]

    def approve(
        self,
        val_id: str,
        tran_id: str,
        amount: Decimal,
        status: str = "VALID",
        risk_level: str = "0",
    ) -> None:
        self.validations[val_id] = PaymentValidation(
            status=status,
            tran_id=tran_id,
            val_id=val_id,
            amount=amount,
            currency="BDT",
            bank_tran_id=f"BANK-{val_id}",
            card_type="VISA-Dutch Bangla",
            risk_level=risk_level,
            risk_title="Safe" if risk_level == "0" else "Risky",
        )


async def booked_seats(db, schedule_id: int, compartment_id: int) -> int | None:
    """Read the ledger counter straight from the database."""
    result = await db.execute(
        select(CompartmentBooking.booked_seats)
        .join(
            TrainCompartment,
            TrainCompartment.train_compartment_id == CompartmentBooking.train_compartment_id,
        )
        .where(
            CompartmentBooking.schedule_id == schedule_id,
            TrainCompartment.compartment_id == compartment_id,
        )
    )
    return result.scalar_one_or_none()


async def seat_available(db, seat_id: int) -> bool:
    result = await db.execute(select(Seat.is_available).where(Seat.seat_id == seat_id))
    return result.scalar_one()


async def log_actions(db, transaction_id: str) -> list[str]:
    result = await db.execute(
        select(PaymentLog.action)
        .where(PaymentLog.transaction_id == transaction_id)
        .order_by(PaymentLog.payment_log_id)
    )
    return [action.value for action in result.scalars().all()]


async def age_ticket(db, ticket_id: int, minutes: int = 30) -> None:
    """Push a ticket's creation time and deadline into the past."""
    past = datetime.now() - timedelta(minutes=minutes)
    await db.execute(
        update(Ticket)
        .where(Ticket.ticket_id == ticket_id)
        .values(created_at=past, expires_at=past + timedelta(minutes=10))
    )
    await db.commit()

"""Payment transaction state machine synchronised with the gateway."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from ulid import ULID

from railnet.config import Settings, get_settings
from railnet.exceptions import (
    GatewayError,
    InvalidTransition,
    NotFound,
    PaymentInitiationFailed,
    TicketNotPayable,
    TicketNotPending,
    Unauthorized,
    ValidationFailed,
)
from railnet.gateway import PaymentSessionRequest, PaymentValidation, SSLCommerzGateway
from railnet.models.payment import (
    OPEN_TRANSACTION_STATUSES,
    PaymentAction,
    PaymentLog,
    PaymentTransaction,
    TransactionStatus,
)
from railnet.models.ticket import Ticket, TicketPaymentStatus, TicketStatus
from railnet.models.user import User
from railnet.schemas.payment import (
    InitiatePaymentResponse,
    PaymentCallbackResponse,
    PaymentOutcome,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def append_log(
    db: AsyncSession,
    transaction_id: str,
    action: PaymentAction,
    details: dict[str, Any] | None = None,
) -> PaymentLog:
    """Add one audit row for a transaction transition to the session."""
    log = PaymentLog(
        transaction_id=transaction_id,
        action=action,
        details=details or {},
    )
    db.add(log)
    return log


async def cancel_open_transactions(
    db: AsyncSession,
    ticket_id: int,
    action: PaymentAction,
    reason: str,
) -> int:
    """
    Cancel every INITIATED or PENDING transaction of a ticket.

    Runs inside the caller's transaction after the ticket row has been
    claimed, and appends one log per cancelled transaction.

    Returns:
        Number of transactions cancelled
    """
    result = await db.execute(
        select(PaymentTransaction)
        .where(
            and_(
                PaymentTransaction.ticket_id == ticket_id,
                PaymentTransaction.status.in_(OPEN_TRANSACTION_STATUSES),
            )
        )
        .order_by(PaymentTransaction.transaction_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    transactions = list(result.scalars().all())

    now = datetime.now()
    for transaction in transactions:
        previous = transaction.status
        transaction.status = TransactionStatus.CANCELLED
        transaction.error_message = reason
        transaction.completed_at = now
        append_log(
            db,
            transaction.transaction_id,
            action,
            {"reason": reason, "previous_status": previous.value},
        )

    await db.flush()
    return len(transactions)


class PaymentService:
    """
    Drives payment transactions through their lifecycle.

    INITIATED -> (PENDING) -> COMPLETED | FAILED | CANCELLED. Every transition
    appends exactly one PaymentLog row. Gateway callbacks are never trusted
    on their own: a success is only applied after a validation round-trip.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: SSLCommerzGateway,
        settings: Settings | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.settings = settings or get_settings()

    async def get_transaction(self, transaction_id: str) -> PaymentTransaction | None:
        """Get transaction by ID."""
        result = await self.db.execute(
            select(PaymentTransaction).where(
                PaymentTransaction.transaction_id == transaction_id
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_transaction_ticket(self, transaction: PaymentTransaction) -> Ticket:
        """Get the ticket a transaction pays for."""
        result = await self.db.execute(
            select(Ticket)
            .where(Ticket.ticket_id == transaction.ticket_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def get_ticket_transactions(self, ticket_id: int) -> list[PaymentTransaction]:
        """Get all payment attempts for a ticket, oldest first."""
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.ticket_id == ticket_id)
            .order_by(PaymentTransaction.created_at, PaymentTransaction.transaction_id)
        )
        return list(result.scalars().all())

    async def _get_resumable(self, ticket_id: int) -> PaymentTransaction | None:
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(
                and_(
                    PaymentTransaction.ticket_id == ticket_id,
                    PaymentTransaction.status == TransactionStatus.INITIATED,
                    PaymentTransaction.gateway_url.is_not(None),
                )
            )
            .order_by(PaymentTransaction.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def initiate_payment(self, user_id: int, ticket_id: int) -> InitiatePaymentResponse:
        """
        Start (or resume) a gateway payment for a pending ticket.

        The INITIATED transaction is committed before the gateway is called
        so that a crash mid-call leaves an auditable row behind.

        Raises:
            NotFound: Ticket does not exist
            Unauthorized: Ticket belongs to another user
            TicketNotPayable: Ticket not pending or its hold has lapsed
            PaymentInitiationFailed: Gateway refused or was unreachable
        """
        result = await self.db.execute(
            select(Ticket)
            .where(Ticket.ticket_id == ticket_id)
            .execution_options(populate_existing=True)
        )
        ticket = result.scalar_one_or_none()
        if not ticket:
            raise NotFound("Ticket not found")
        if ticket.user_id != user_id:
            raise Unauthorized("Unauthorized access to ticket")

        if (
            ticket.status != TicketStatus.PENDING
            or ticket.payment_status != TicketPaymentStatus.PENDING
        ):
            raise TicketNotPayable("Ticket is not awaiting payment")
        if ticket.expires_at <= datetime.now():
            raise TicketNotPayable("Booking hold has expired")

        existing = await self._get_resumable(ticket_id)
        if existing:
            logger.info(
                f"Resuming payment {existing.transaction_id} for ticket {ticket.ticket_code}"
            )
            return InitiatePaymentResponse(
                transaction_id=existing.transaction_id,
                payment_url=existing.gateway_url,
                amount=existing.amount,
                currency=existing.currency,
                resumed=True,
            )

        user = await self.db.get(User, user_id)
        if not user:
            raise NotFound("User not found")

        transaction = PaymentTransaction(
            transaction_id=f"TXN-{ULID()}",
            ticket_id=ticket.ticket_id,
            amount=ticket.price,
            currency=self.settings.PAYMENT_CURRENCY,
            status=TransactionStatus.INITIATED,
        )
        self.db.add(transaction)
        await self.db.flush()
        append_log(
            self.db,
            transaction.transaction_id,
            PaymentAction.INITIATED,
            {"ticket_id": ticket.ticket_id, "amount": str(ticket.price)},
        )
        await self.db.commit()

        request = PaymentSessionRequest(
            total_amount=transaction.amount,
            currency=transaction.currency,
            tran_id=transaction.transaction_id,
            success_url=self.settings.payment_callback_url("success"),
            fail_url=self.settings.payment_callback_url("fail"),
            cancel_url=self.settings.payment_callback_url("cancel"),
            ipn_url=self.settings.payment_callback_url("ipn"),
            cus_name=user.name,
            cus_email=user.email,
            cus_phone=user.phone or "N/A",
            product_name=f"Train Ticket - {ticket.ticket_code}",
            value_a=str(ticket.ticket_id),
        )

        try:
            session = await self.gateway.create_session(request)
            reason = None if session.is_success else session.reason
        except GatewayError as e:
            session = None
            reason = str(e)

        if reason is not None:
            await self._close_transaction(
                transaction.transaction_id,
                TransactionStatus.FAILED,
                PaymentAction.FAILED,
                reason,
            )
            logger.error(
                f"Payment initiation failed for ticket {ticket.ticket_code}: {reason}"
            )
            raise PaymentInitiationFailed(f"Payment initiation failed: {reason}")

        transaction.session_key = session.session_key
        transaction.gateway_url = session.gateway_url
        await self.db.commit()

        logger.info(
            f"Initiated payment {transaction.transaction_id} for ticket {ticket.ticket_code}"
        )
        return InitiatePaymentResponse(
            transaction_id=transaction.transaction_id,
            payment_url=session.gateway_url,
            amount=transaction.amount,
            currency=transaction.currency,
        )

    def _check_validation(
        self,
        transaction: PaymentTransaction,
        validation: PaymentValidation,
    ) -> None:
        if not validation.is_valid:
            raise ValidationFailed(f"Payment validation failed: {validation.status}")
        if validation.tran_id != transaction.transaction_id:
            raise ValidationFailed("Validated transaction id does not match")
        if validation.amount is None or (
            validation.amount.quantize(CENT) != transaction.amount.quantize(CENT)
        ):
            raise ValidationFailed("Validated amount does not match")

    async def handle_success(
        self,
        transaction_id: str,
        val_id: str,
        validation: PaymentValidation | None = None,
    ) -> PaymentCallbackResponse:
        """
        Apply a success callback after re-validating it with the gateway.

        Duplicate callbacks resolve to ALREADY_PROCESSED. The ticket is
        claimed before the transaction so that a concurrent expiry or
        cancellation (which claims the ticket first too) cannot leave both
        a COMPLETED and a CANCELLED transaction behind.

        Raises:
            NotFound: Unknown transaction
            ValidationFailed: Gateway did not confirm this exact payment
            InvalidTransition: Transaction already failed or cancelled
            TicketNotPending: Ticket left pending before the payment settled
            GatewayError: Validation call failed
        """
        transaction = await self.get_transaction(transaction_id)
        if not transaction:
            raise NotFound("Transaction not found")

        if transaction.status == TransactionStatus.COMPLETED:
            return self._already_processed(transaction)
        if transaction.status not in OPEN_TRANSACTION_STATUSES:
            ticket = await self.get_transaction_ticket(transaction)
            if ticket.status != TicketStatus.PENDING:
                raise TicketNotPending("Ticket is no longer awaiting payment")
            raise InvalidTransition(
                f"Transaction is {transaction.status.value}, cannot complete"
            )

        if validation is None:
            validation = await self.gateway.validate(val_id)
        try:
            self._check_validation(transaction, validation)
        except ValidationFailed as e:
            logger.warning(f"Rejected success callback for {transaction_id}: {e}")
            raise

        if validation.is_risky:
            return await self._hold_for_review(transaction, val_id, validation)

        now = datetime.now()
        try:
            ticket_result = await self.db.execute(
                update(Ticket)
                .where(
                    and_(
                        Ticket.ticket_id == transaction.ticket_id,
                        Ticket.status == TicketStatus.PENDING,
                        Ticket.payment_status == TicketPaymentStatus.PENDING,
                    )
                )
                .values(
                    status=TicketStatus.CONFIRMED,
                    payment_status=TicketPaymentStatus.PAID,
                    confirmed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if ticket_result.rowcount == 0:
                await self.db.rollback()
                await self.db.refresh(transaction)
                if transaction.status == TransactionStatus.COMPLETED:
                    return self._already_processed(transaction)
                raise TicketNotPending("Ticket is no longer awaiting payment")

            txn_result = await self.db.execute(
                update(PaymentTransaction)
                .where(
                    and_(
                        PaymentTransaction.transaction_id == transaction_id,
                        PaymentTransaction.status.in_(OPEN_TRANSACTION_STATUSES),
                    )
                )
                .values(
                    status=TransactionStatus.COMPLETED,
                    val_id=val_id,
                    bank_transaction_id=validation.bank_tran_id,
                    card_type=validation.card_type,
                    completed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if txn_result.rowcount == 0:
                raise InvalidTransition("Transaction is no longer open")

            append_log(
                self.db,
                transaction_id,
                PaymentAction.COMPLETED,
                {
                    "val_id": val_id,
                    "bank_tran_id": validation.bank_tran_id,
                    "card_type": validation.card_type,
                    "amount": str(validation.amount),
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(transaction)
        logger.info(
            f"Payment {transaction_id} completed, ticket {transaction.ticket_id} confirmed"
        )
        return PaymentCallbackResponse(
            transaction_id=transaction_id,
            outcome=PaymentOutcome.COMPLETED,
            ticket_id=transaction.ticket_id,
            message="Payment successful, ticket confirmed",
        )

    async def _hold_for_review(
        self,
        transaction: PaymentTransaction,
        val_id: str,
        validation: PaymentValidation,
    ) -> PaymentCallbackResponse:
        """Park a validated but risky payment in PENDING."""
        response = PaymentCallbackResponse(
            transaction_id=transaction.transaction_id,
            outcome=PaymentOutcome.PENDING,
            ticket_id=transaction.ticket_id,
            message="Payment is held for review by the gateway",
        )
        if transaction.status == TransactionStatus.PENDING:
            return response

        result = await self.db.execute(
            update(PaymentTransaction)
            .where(
                and_(
                    PaymentTransaction.transaction_id == transaction.transaction_id,
                    PaymentTransaction.status == TransactionStatus.INITIATED,
                )
            )
            .values(
                status=TransactionStatus.PENDING,
                val_id=val_id,
                bank_transaction_id=validation.bank_tran_id,
                card_type=validation.card_type,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            append_log(
                self.db,
                transaction.transaction_id,
                PaymentAction.PENDING,
                {"risk_level": validation.risk_level, "risk_title": validation.risk_title},
            )
        await self.db.commit()
        await self.db.refresh(transaction)

        logger.warning(
            f"Payment {transaction.transaction_id} flagged risky "
            f"({validation.risk_title}), held as PENDING"
        )
        return response

    def _already_processed(self, transaction: PaymentTransaction) -> PaymentCallbackResponse:
        return PaymentCallbackResponse(
            transaction_id=transaction.transaction_id,
            outcome=PaymentOutcome.ALREADY_PROCESSED,
            ticket_id=transaction.ticket_id,
            message="Payment already processed",
        )

    async def _close_transaction(
        self,
        transaction_id: str,
        target: TransactionStatus,
        action: PaymentAction,
        reason: str,
    ) -> bool:
        """
        Move an open transaction to FAILED or CANCELLED.

        Returns:
            True if this call made the transition, False if the transaction
            was already in the target state

        Raises:
            NotFound: Unknown transaction
            InvalidTransition: Transaction is in another terminal state
        """
        transaction = await self.get_transaction(transaction_id)
        if not transaction:
            raise NotFound("Transaction not found")

        try:
            result = await self.db.execute(
                update(PaymentTransaction)
                .where(
                    and_(
                        PaymentTransaction.transaction_id == transaction_id,
                        PaymentTransaction.status.in_(OPEN_TRANSACTION_STATUSES),
                    )
                )
                .values(status=target, error_message=reason, completed_at=datetime.now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                await self.db.refresh(transaction)
                if transaction.status == target:
                    return False
                raise InvalidTransition(
                    f"Transaction is {transaction.status.value}, "
                    f"cannot move to {target.value}"
                )

            append_log(self.db, transaction_id, action, {"reason": reason})
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(transaction)
        return True

    async def handle_failure(
        self,
        transaction_id: str,
        reason: str | None = None,
    ) -> PaymentCallbackResponse:
        """Mark an open transaction FAILED. The ticket stays pending."""
        reason = reason or "Payment failed"
        changed = await self._close_transaction(
            transaction_id, TransactionStatus.FAILED, PaymentAction.FAILED, reason
        )
        transaction = await self.get_transaction(transaction_id)
        if changed:
            logger.info(f"Payment {transaction_id} failed: {reason}")
        return PaymentCallbackResponse(
            transaction_id=transaction_id,
            outcome=PaymentOutcome.FAILED,
            ticket_id=transaction.ticket_id,
            message=reason,
        )

    async def handle_cancel(self, transaction_id: str) -> PaymentCallbackResponse:
        """Mark an open transaction CANCELLED. The ticket stays pending."""
        reason = "Payment cancelled by user"
        changed = await self._close_transaction(
            transaction_id, TransactionStatus.CANCELLED, PaymentAction.CANCELLED, reason
        )
        transaction = await self.get_transaction(transaction_id)
        if changed:
            logger.info(f"Payment {transaction_id} cancelled")
        return PaymentCallbackResponse(
            transaction_id=transaction_id,
            outcome=PaymentOutcome.CANCELLED,
            ticket_id=transaction.ticket_id,
            message=reason,
        )

    async def process_ipn(self, val_id: str) -> PaymentCallbackResponse:
        """
        Apply an instant payment notification.

        The body is only trusted for its val_id; the transaction is found
        from the validated tran_id.

        Raises:
            ValidationFailed: Gateway did not validate the payment
            NotFound: Validated tran_id is unknown
        """
        validation = await self.gateway.validate(val_id)
        if not validation.is_valid or not validation.tran_id:
            logger.warning(f"IPN validation failed for val_id {val_id}: {validation.status}")
            raise ValidationFailed(f"Payment validation failed: {validation.status}")

        return await self.handle_success(validation.tran_id, val_id, validation=validation)

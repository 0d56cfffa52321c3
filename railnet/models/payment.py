"""Payment transaction and audit log models."""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from railnet.models.base import Base, BigIntPK


class TransactionStatus(str, enum.Enum):
    """Payment transaction status enum."""

    INITIATED = "INITIATED"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


OPEN_TRANSACTION_STATUSES = (TransactionStatus.INITIATED, TransactionStatus.PENDING)


class PaymentAction(str, enum.Enum):
    """Action recorded in the payment log."""

    INITIATED = "INITIATED"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class PaymentTransaction(Base):
    """One payment attempt on a ticket."""

    __tablename__ = "payment_transactions"

    transaction_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tickets.ticket_id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus), default=TransactionStatus.INITIATED, nullable=False
    )
    payment_method: Mapped[str] = mapped_column(String(50), default="SSLCOMMERZ")
    session_key: Mapped[str | None] = mapped_column(String(255))
    gateway_url: Mapped[str | None] = mapped_column(String(500))
    val_id: Mapped[str | None] = mapped_column(String(100))
    bank_transaction_id: Mapped[str | None] = mapped_column(String(100))
    card_type: Mapped[str | None] = mapped_column(String(50))
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        Index("idx_transaction_ticket_status", "ticket_id", "status"),
    )


class PaymentLog(Base):
    """Append-only audit trail of transaction state transitions."""

    __tablename__ = "payment_logs"

    payment_log_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("payment_transactions.transaction_id"), nullable=False
    )
    action: Mapped[PaymentAction] = mapped_column(Enum(PaymentAction), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    __table_args__ = (
        Index("idx_log_transaction", "transaction_id"),
    )

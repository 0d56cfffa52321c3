"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from railnet.models.payment import TransactionStatus
from railnet.schemas.common import BaseSchema


class PaymentOutcome(str, Enum):
    """Result of applying a gateway callback."""

    COMPLETED = "COMPLETED"
    PENDING = "PENDING"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"


class InitiatePaymentRequest(BaseSchema):
    """Schema for starting a payment on a ticket."""

    ticket_id: int = Field(..., gt=0)


class InitiatePaymentResponse(BaseSchema):
    """Gateway redirect for a payment attempt."""

    transaction_id: str
    payment_url: str
    amount: Decimal
    currency: str
    resumed: bool = False


class PaymentCallbackResponse(BaseModel):
    """Result of a gateway callback."""

    transaction_id: str
    outcome: PaymentOutcome
    ticket_id: int | None = None
    message: str | None = None


class IPNRequest(BaseModel):
    """Instant payment notification body (only val_id is trusted as a lookup key)."""

    val_id: str = Field(..., min_length=1)
    tran_id: str | None = None
    status: str | None = None
    amount: str | None = None


class IPNResponse(BaseModel):
    """IPN acknowledgement."""

    status: str
    message: str | None = None


class PaymentTransactionResponse(BaseSchema):
    """Schema for payment transaction response."""

    transaction_id: str
    ticket_id: int
    amount: Decimal
    currency: str
    status: TransactionStatus
    gateway_url: str | None = None
    val_id: str | None = None
    bank_transaction_id: str | None = None
    card_type: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

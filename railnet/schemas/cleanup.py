"""Reclamation sweep schemas."""

from pydantic import BaseModel


class SweepResult(BaseModel):
    """Outcome of one reclamation sweep."""

    expired_count: int = 0
    cancelled_transaction_count: int = 0
    errors: list[str] = []


class PendingBookingStats(BaseModel):
    """Snapshot of bookings awaiting payment."""

    total_pending: int
    expiring_soon: int
    expired: int

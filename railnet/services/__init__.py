"""Services package."""

from railnet.services.booking_service import BookingService
from railnet.services.fare_service import FareCalculator
from railnet.services.ledger_service import SeatLedger
from railnet.services.payment_service import PaymentService
from railnet.services.reclamation_service import ReclamationService

__all__ = [
    "BookingService",
    "FareCalculator",
    "SeatLedger",
    "PaymentService",
    "ReclamationService",
]

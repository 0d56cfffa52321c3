"""Booking and payment error taxonomy."""


class RailnetError(Exception):
    """Base error for booking and payment operations."""

    status_code: int = 400


class NotFound(RailnetError):
    """Schedule, station, ticket or transaction does not exist."""

    status_code = 404


class InvalidSegment(RailnetError):
    """From/to stations are not a valid forward segment of the route."""

    status_code = 400


class CompartmentUnavailable(RailnetError):
    """The train does not carry the requested compartment type."""

    status_code = 400


class SeatAlreadyBooked(RailnetError):
    """Another active ticket holds this seat for the same train and date."""

    status_code = 409


class CapacityExceeded(RailnetError):
    """The compartment ledger is full."""

    status_code = 409


class Unauthorized(RailnetError):
    """The ticket belongs to a different user."""

    status_code = 403


class Forbidden(RailnetError):
    """The user lacks the required role."""

    status_code = 403


class ValidationFailed(RailnetError):
    """The gateway did not confirm the payment on re-validation."""

    status_code = 400


class BusinessRuleViolation(RailnetError):
    """A business rule forbids the operation."""

    status_code = 400


class BookingClosed(BusinessRuleViolation):
    """The schedule is cancelled or has already departed."""


class CancellationWindowClosed(BusinessRuleViolation):
    """Departure is too close to allow cancellation."""


class TicketNotCancellable(BusinessRuleViolation):
    """The ticket is already in a terminal state."""

    status_code = 409


class TicketNotPayable(BusinessRuleViolation):
    """The ticket is not awaiting payment or its hold has lapsed."""

    status_code = 409


class TicketNotPending(BusinessRuleViolation):
    """The ticket left the pending state before the payment could settle."""

    status_code = 409


class InvalidTransition(BusinessRuleViolation):
    """The payment transaction cannot move to the requested state."""

    status_code = 409


class GatewayError(RailnetError):
    """The payment gateway could not be reached or answered garbage."""

    status_code = 502


class PaymentInitiationFailed(GatewayError):
    """The gateway rejected the payment session request."""


class LedgerUnderflow(RailnetError):
    """A release found no booked seat to give back.

    Indicates a lost decrement or a double release; never clamped.
    """

    status_code = 500

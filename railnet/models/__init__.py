"""SQLAlchemy models."""

from railnet.models.base import Base
from railnet.models.payment import PaymentLog, PaymentTransaction
from railnet.models.schedule import CompartmentBooking, TrainSchedule
from railnet.models.seat import Seat
from railnet.models.station import Route, RouteStop, Station
from railnet.models.ticket import Ticket
from railnet.models.train import Compartment, Train, TrainCompartment
from railnet.models.user import User

__all__ = [
    "Base",
    "User",
    "Station",
    "Route",
    "RouteStop",
    "Compartment",
    "Train",
    "TrainCompartment",
    "TrainSchedule",
    "CompartmentBooking",
    "Seat",
    "Ticket",
    "PaymentTransaction",
    "PaymentLog",
]

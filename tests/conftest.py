"""Shared fixtures: a file-backed SQLite database seeded with one route."""

from datetime import datetime, time, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from railnet.database import create_session_factory, init_models
from railnet.models import (
    Compartment,
    Route,
    RouteStop,
    Station,
    Train,
    TrainCompartment,
    TrainSchedule,
    User,
)
from railnet.models.schedule import ScheduleStatus
from railnet.models.train import PricingModel
from railnet.models.user import UserRole
from railnet.schemas.ticket import BookTicketRequest, PassengerGender
from tests.helpers import FakeGateway


@pytest.fixture
async def engine_and_factory(tmp_path):
    engine, factory = create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'railnet.db'}")
    await init_models(engine)
    yield engine, factory
    await engine.dispose()


@pytest.fixture
def session_factory(engine_and_factory):
    return engine_and_factory[1]


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(session_factory):
    """
    Delhi (0 km) -> Kota (465 km) -> Mumbai (1384 km) on train RN101.

    Two compartments: an AC chair at 1.5 per km with 50 seats and a
    two-seat sleeper used to hit the capacity limit.
    """
    async with session_factory() as session:
        passenger = User(name="Asha Rahman", email="asha@example.com", phone="01700000001")
        admin = User(name="Ops Admin", email="ops@example.com", role=UserRole.ADMIN)
        stranger = User(name="Other Passenger", email="other@example.com")
        session.add_all([passenger, admin, stranger])

        delhi = Station(name="New Delhi", code="NDLS", city="Delhi")
        kota = Station(name="Kota Junction", code="KOTA", city="Kota")
        mumbai = Station(name="Mumbai Central", code="MMCT", city="Mumbai")
        pune = Station(name="Pune Junction", code="PUNE", city="Pune")
        session.add_all([delhi, kota, mumbai, pune])
        await session.flush()

        route = Route(name="Delhi - Mumbai")
        route.stops = [
            RouteStop(station_id=delhi.station_id, distance_from_start=Decimal("0")),
            RouteStop(station_id=kota.station_id, distance_from_start=Decimal("465")),
            RouteStop(station_id=mumbai.station_id, distance_from_start=Decimal("1384")),
        ]
        session.add(route)

        ac_chair = Compartment(
            name="AC Chair",
            compartment_type="AC",
            total_seats=50,
            price=Decimal("1.50"),
            pricing_model=PricingModel.PER_KM,
        )
        sleeper = Compartment(
            name="Sleeper",
            compartment_type="SL",
            total_seats=2,
            price=Decimal("0.50"),
            pricing_model=PricingModel.PER_KM,
        )
        unused = Compartment(
            name="First Class",
            compartment_type="1A",
            total_seats=10,
            price=Decimal("4.00"),
        )
        session.add_all([ac_chair, sleeper, unused])
        await session.flush()

        train = Train(code="RN101", name="Rajdhani Express", route_id=route.route_id)
        train.compartments = [
            TrainCompartment(compartment_id=ac_chair.compartment_id, coach_code="C1"),
            TrainCompartment(compartment_id=sleeper.compartment_id, coach_code="S1"),
        ]
        session.add(train)
        await session.flush()

        tomorrow = datetime.now() + timedelta(days=1)
        schedule = TrainSchedule(
            train_id=train.train_id,
            route_id=route.route_id,
            departure_date=tomorrow.date(),
            departure_time=time(10, 0),
        )
        soon = datetime.now() + timedelta(hours=1)
        imminent = TrainSchedule(
            train_id=train.train_id,
            route_id=route.route_id,
            departure_date=soon.date(),
            departure_time=soon.time().replace(microsecond=0),
        )
        departed = TrainSchedule(
            train_id=train.train_id,
            route_id=route.route_id,
            departure_date=(datetime.now() - timedelta(days=1)).date(),
            departure_time=time(10, 0),
        )
        cancelled = TrainSchedule(
            train_id=train.train_id,
            route_id=route.route_id,
            departure_date=(datetime.now() + timedelta(days=2)).date(),
            departure_time=time(10, 0),
            status=ScheduleStatus.CANCELLED,
        )
        later = TrainSchedule(
            train_id=train.train_id,
            route_id=route.route_id,
            departure_date=(datetime.now() + timedelta(days=3)).date(),
            departure_time=time(10, 0),
        )
        session.add_all([schedule, imminent, departed, cancelled, later])
        await session.commit()

        return SimpleNamespace(
            user_id=passenger.user_id,
            admin_id=admin.user_id,
            stranger_id=stranger.user_id,
            delhi_id=delhi.station_id,
            kota_id=kota.station_id,
            mumbai_id=mumbai.station_id,
            pune_id=pune.station_id,
            route_id=route.route_id,
            train_id=train.train_id,
            ac_id=ac_chair.compartment_id,
            sleeper_id=sleeper.compartment_id,
            unused_compartment_id=unused.compartment_id,
            schedule_id=schedule.schedule_id,
            imminent_schedule_id=imminent.schedule_id,
            departed_schedule_id=departed.schedule_id,
            cancelled_schedule_id=cancelled.schedule_id,
            later_schedule_id=later.schedule_id,
        )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_request(seed):
    def _make(**overrides) -> BookTicketRequest:
        data = {
            "schedule_id": seed.schedule_id,
            "from_station_id": seed.delhi_id,
            "to_station_id": seed.mumbai_id,
            "compartment_id": seed.ac_id,
            "seat_number": "A1",
            "passenger_name": "Asha Rahman",
            "passenger_age": 31,
            "passenger_gender": PassengerGender.FEMALE,
        }
        data.update(overrides)
        return BookTicketRequest(**data)

    return _make

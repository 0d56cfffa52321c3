"""Route segment validation and distance-based fare calculation."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from railnet.exceptions import InvalidSegment
from railnet.models.train import PricingModel

CENT = Decimal("0.01")


class StopLike(Protocol):
    station_id: int
    distance_from_start: Decimal


@dataclass(frozen=True)
class RouteSegment:
    """A forward (from, to) slice of a route."""

    from_station_id: int
    to_station_id: int
    from_distance: Decimal
    to_distance: Decimal
    route_distance: Decimal

    @property
    def distance(self) -> Decimal:
        return self.to_distance - self.from_distance


PriceFunction = Callable[[Decimal, RouteSegment], Decimal]


def _per_km(price: Decimal, segment: RouteSegment) -> Decimal:
    return segment.distance * price


def _flat(price: Decimal, segment: RouteSegment) -> Decimal:
    return price


def _prorated(price: Decimal, segment: RouteSegment) -> Decimal:
    return price * segment.distance / segment.route_distance


DEFAULT_PRICE_FUNCTIONS: dict[PricingModel, PriceFunction] = {
    PricingModel.PER_KM: _per_km,
    PricingModel.FLAT: _flat,
    PricingModel.PRORATED: _prorated,
}


def validate_route_stops(stops: Sequence[StopLike]) -> None:
    """
    Check route invariants.

    A route has at least two stops, no station twice, and strictly
    increasing distances in the given order.

    Raises:
        InvalidSegment: If any invariant is broken
    """
    if len(stops) < 2:
        raise InvalidSegment("A route needs at least two stops")

    station_ids = [stop.station_id for stop in stops]
    if len(set(station_ids)) != len(station_ids):
        raise InvalidSegment("A station appears more than once on the route")

    for previous, current in zip(stops, stops[1:]):
        if Decimal(current.distance_from_start) <= Decimal(previous.distance_from_start):
            raise InvalidSegment(
                f"Stop distances must strictly increase "
                f"(station {current.station_id} at {current.distance_from_start})"
            )


def validate_segment(
    stops: Sequence[StopLike],
    from_station_id: int,
    to_station_id: int,
) -> RouteSegment:
    """
    Validate that (from, to) is a forward segment of the route.

    Order is decided by distance from the origin, not by list position.

    Raises:
        InvalidSegment: If a station is not on the route or `to` does not
            strictly follow `from`
    """
    by_station = {stop.station_id: Decimal(stop.distance_from_start) for stop in stops}

    if from_station_id not in by_station or to_station_id not in by_station:
        raise InvalidSegment("Invalid from or to station for this route")

    from_distance = by_station[from_station_id]
    to_distance = by_station[to_station_id]
    if to_distance <= from_distance:
        raise InvalidSegment("To station must come after from station in the route")

    distances = by_station.values()
    return RouteSegment(
        from_station_id=from_station_id,
        to_station_id=to_station_id,
        from_distance=from_distance,
        to_distance=to_distance,
        route_distance=max(distances) - min(distances),
    )


class FareCalculator:
    """Turns a segment and a compartment's price into a fare."""

    def __init__(self, price_functions: dict[PricingModel, PriceFunction] | None = None):
        self.price_functions = dict(DEFAULT_PRICE_FUNCTIONS)
        if price_functions:
            self.price_functions.update(price_functions)

    def calculate(
        self,
        price: Decimal,
        pricing_model: PricingModel,
        segment: RouteSegment,
    ) -> Decimal:
        """
        Calculate the fare, rounded half-up to cents.

        Raises:
            InvalidSegment: If the fare does not come out positive
        """
        price_function = self.price_functions[pricing_model]
        fare = price_function(Decimal(price), segment).quantize(CENT, rounding=ROUND_HALF_UP)
        if fare <= 0:
            raise InvalidSegment(f"Fare for this segment must be positive, got {fare}")
        return fare

"""Station and route models."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from railnet.models.base import Base, BigIntPK


class Station(Base):
    """Station model."""

    __tablename__ = "stations"

    station_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    city: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )


class Route(Base):
    """Route model: an ordered sequence of stops."""

    __tablename__ = "routes"

    route_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    stops: Mapped[list["RouteStop"]] = relationship(
        "RouteStop",
        back_populates="route",
        order_by="RouteStop.distance_from_start",
        cascade="all, delete-orphan",
    )


class RouteStop(Base):
    """A station on a route with its cumulative distance from the origin."""

    __tablename__ = "route_stops"

    route_stop_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    route_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("routes.route_id"), nullable=False
    )
    station_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("stations.station_id"), nullable=False
    )
    distance_from_start: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    route: Mapped["Route"] = relationship("Route", back_populates="stops")
    station: Mapped["Station"] = relationship("Station")

    __table_args__ = (
        UniqueConstraint("route_id", "station_id", name="uk_route_station"),
        Index("idx_route_distance", "route_id", "distance_from_start"),
    )

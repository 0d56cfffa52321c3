"""Train and compartment catalog models."""

import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from railnet.models.base import Base, BigIntPK

if TYPE_CHECKING:
    from railnet.models.station import Route


class PricingModel(str, enum.Enum):
    """How a compartment's price turns a travelled distance into a fare."""

    PER_KM = "PER_KM"  # price is a per-kilometre rate
    FLAT = "FLAT"  # price is charged regardless of distance
    PRORATED = "PRORATED"  # price covers the full route, scaled by distance


class Compartment(Base):
    """Compartment (coach) type in the catalog."""

    __tablename__ = "compartments"

    compartment_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    compartment_type: Mapped[str] = mapped_column(String(50), nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    pricing_model: Mapped[PricingModel] = mapped_column(
        Enum(PricingModel), default=PricingModel.PER_KM
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_compartment_seats_positive"),
        CheckConstraint("price > 0", name="ck_compartment_price_positive"),
    )


class Train(Base):
    """Train model."""

    __tablename__ = "trains"

    train_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    route_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("routes.route_id"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    route: Mapped["Route"] = relationship("Route")
    compartments: Mapped[list["TrainCompartment"]] = relationship(
        "TrainCompartment", back_populates="train", cascade="all, delete-orphan"
    )


class TrainCompartment(Base):
    """A physical instance of a compartment type coupled to a train."""

    __tablename__ = "train_compartments"

    train_compartment_id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, autoincrement=True
    )
    train_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("trains.train_id"), nullable=False
    )
    compartment_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("compartments.compartment_id"), nullable=False
    )
    coach_code: Mapped[str | None] = mapped_column(String(20))

    train: Mapped["Train"] = relationship("Train", back_populates="compartments")
    compartment: Mapped["Compartment"] = relationship("Compartment")

    __table_args__ = (
        UniqueConstraint("train_id", "compartment_id", name="uk_train_compartment"),
    )

"""Seat model."""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from railnet.models.base import Base, BigIntPK


class Seat(Base):
    """Seat in a train compartment, created on first booking and reused after."""

    __tablename__ = "seats"

    seat_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    train_compartment_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("train_compartments.train_compartment_id"), nullable=False
    )
    seat_number: Mapped[str] = mapped_column(String(20), nullable=False)
    seat_type: Mapped[str] = mapped_column(String(50), default="Standard")
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(BigInteger, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.current_timestamp()
    )

    __table_args__ = (
        UniqueConstraint("train_compartment_id", "seat_number", name="uk_compartment_seat"),
    )

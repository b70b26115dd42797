# src/infrastructure/db/models.py

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    Enum,
    Index,
    CheckConstraint,
    ForeignKey,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from uuid import uuid4

from src.infrastructure.db.session import Base
from src.domain.state_machine import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SpotType,
)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Floor(Base):
    __tablename__ = "floors"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    normal_spots: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    disability_spots: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_free_limit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("normal_spots >= 0", name="ck_floor_normal_spots_nonnegative"),
        CheckConstraint("disability_spots >= 0", name="ck_floor_disability_spots_nonnegative"),
    )

    def capacity_for(self, spot_type: SpotType) -> int:
        if spot_type == SpotType.DISABILITY:
            return self.disability_spots
        return self.normal_spots


class Booking(Base):
    """
    Parking reservation.
    Domain controls transitions; the partial unique index backs the
    one-active-booking-per-user rule at the storage level.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    booking_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    floor_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("floors.id"),
        nullable=False,
    )
    spot_type: Mapped[SpotType] = mapped_column(
        Enum(SpotType, name="spot_type", values_callable=_enum_values),
        nullable=False,
        default=SpotType.NORMAL,
    )
    spot_number: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=_enum_values),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=_enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method", values_callable=_enum_values),
        nullable=False,
        default=PaymentMethod.NONE,
    )
    actual_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entry_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    exit_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expected_exit_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    floor: Mapped[Floor] = relationship()

    __table_args__ = (
        Index(
            "uq_one_active_booking_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'active')"),
            sqlite_where=text("status IN ('pending', 'active')"),
        ),
        CheckConstraint("actual_amount >= 0", name="ck_booking_amount_nonnegative"),
    )


class GlobalAccount(Base):
    """Shared wallet pool. A single row, mutated only under a row lock."""

    __tablename__ = "global_account"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_global_balance_nonnegative"),
    )


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    booking_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("bookings.id"),
        nullable=True,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed")
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transaction_amount_nonnegative"),
    )

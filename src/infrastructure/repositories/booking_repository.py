# src/infrastructure/repositories/booking_repository.py

from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from src.infrastructure.db.models import Booking, Floor
from src.domain.state_machine import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    PaymentStatus,
    SpotType,
)


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_booking_id(
        self,
        booking_id: str,
        for_update: bool = False,
    ) -> Booking | None:
        """
        Looks a booking up by its public code, falling back to the row id.
        """
        for column in (Booking.booking_id, Booking.id):
            stmt = select(Booking).where(column == booking_id)
            if for_update:
                stmt = stmt.with_for_update()
            booking = self.db.execute(stmt).scalar_one_or_none()
            if booking:
                return booking
        return None

    def get_active_for_user(self, user_id: str) -> Booking | None:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
            .order_by(Booking.created_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_active_for_user(self, user_id: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
            .order_by(Booking.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def has_outstanding_dues(self, user_id: str) -> bool:
        stmt = (
            select(func.count(Booking.id))
            .where(Booking.user_id == user_id)
            .where(Booking.payment_status == PaymentStatus.DUE)
        )
        return self.db.execute(stmt).scalar_one() > 0

    def count_active_on_floor(self, floor_id: str, spot_type: SpotType | None = None) -> int:
        stmt = (
            select(func.count(Booking.id))
            .where(Booking.floor_id == floor_id)
            .where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        )
        if spot_type is not None:
            stmt = stmt.where(Booking.spot_type == spot_type)
        return self.db.execute(stmt).scalar_one()

    def get_floor(self, floor_id: str) -> Floor | None:
        stmt = select(Floor).where(Floor.id == floor_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_floors(self) -> list[Floor]:
        stmt = select(Floor).order_by(Floor.name)
        return list(self.db.execute(stmt).scalars().all())

    def create_booking(
        self,
        user_id: str,
        floor_id: str,
        booking_id: str,
        spot_type: SpotType,
        spot_number: str,
        expires_at: datetime,
    ) -> Booking:

        booking = Booking(
            booking_id=booking_id,
            user_id=user_id,
            floor_id=floor_id,
            spot_type=spot_type,
            spot_number=spot_number,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            expires_at=expires_at,
        )

        self.db.add(booking)
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.status = new_status

    def update_payment_status(
        self,
        booking: Booking,
        new_status: PaymentStatus,
    ) -> None:

        booking.payment_status = new_status

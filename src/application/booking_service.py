import logging
import random
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.config import BOOKING_ENTRY_WINDOW_MINUTES, DEFAULT_SPOT_NUMBER
from src.domain.exceptions import (
    ActiveBookingExistsError,
    BookingExpiredError,
    BookingNotFoundError,
    FloorNotFoundError,
    NoSpotsAvailableError,
    OutstandingDuesError,
)
from src.domain.pricing import BASE_HOURS, FeeBreakdown, calculate_fee
from src.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    PaymentMethod,
    PaymentStateMachine,
    PaymentStatus,
    SpotType,
)
from src.infrastructure.db.models import Booking
from src.infrastructure.repositories.account_repository import AccountRepository
from src.infrastructure.repositories.booking_repository import BookingRepository

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_booking_code() -> str:
    return f"SP{str(int(time.time() * 1000))[-6:]}{random.randint(0, 999)}"


class BookingService:
    """Application service coordinating the reservation and kiosk workflow."""

    def __init__(self, db: Session):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.account_repository = AccountRepository(db)

    def create_booking(
        self,
        user_id: str,
        floor_id: str,
        spot_type: SpotType = SpotType.NORMAL,
    ) -> Booking:
        if self.booking_repository.get_active_for_user(user_id):
            raise ActiveBookingExistsError("You already have an active booking")

        if self.booking_repository.has_outstanding_dues(user_id):
            raise OutstandingDuesError(
                "You have unpaid dues. Please clear them before making a new booking."
            )

        floor = self.booking_repository.get_floor(floor_id)
        if not floor:
            raise FloorNotFoundError("Floor not found")

        if not floor.is_free_limit:
            # Normal and disability spots are separate quotas.
            booked = self.booking_repository.count_active_on_floor(floor_id, spot_type)
            if booked >= floor.capacity_for(spot_type):
                raise NoSpotsAvailableError("No spots available on this floor")

        booking = self.booking_repository.create_booking(
            user_id=user_id,
            floor_id=floor_id,
            booking_id=generate_booking_code(),
            spot_type=spot_type,
            spot_number=DEFAULT_SPOT_NUMBER,
            expires_at=utc_now() + timedelta(minutes=BOOKING_ENTRY_WINDOW_MINUTES),
        )

        try:
            self.db.flush()
        except IntegrityError as exc:
            # Lost the race against a concurrent create for the same user.
            self.db.rollback()
            raise ActiveBookingExistsError("You already have an active booking") from exc

        logger.info(
            "Booking created. booking_id=%s user_id=%s floor_id=%s",
            booking.booking_id,
            user_id,
            floor_id,
        )
        return booking

    def get_current_booking(self, user_id: str) -> Booking:
        booking = self.booking_repository.get_active_for_user(user_id)
        if not booking:
            raise BookingNotFoundError("No active booking found")
        return booking

    def list_active_bookings(self, user_id: str) -> list[Booking]:
        bookings = self.booking_repository.list_active_for_user(user_id)
        if not bookings:
            raise BookingNotFoundError("No active booking found")
        return bookings

    def get_booking(self, booking_id: str, for_update: bool = False) -> Booking:
        booking = self.booking_repository.get_by_booking_id(booking_id, for_update=for_update)
        if not booking:
            raise BookingNotFoundError("Booking not found")
        return booking

    def cancel_booking(self, user_id: str, booking_id: str) -> Booking:
        booking = self.get_booking(booking_id, for_update=True)
        if booking.user_id != user_id:
            raise BookingNotFoundError("Booking not found")

        self._transition(booking, BookingStatus.CANCELLED)
        self.db.flush()
        return booking

    def entry_scan(self, booking_id: str, now: datetime | None = None) -> Booking:
        now = now or utc_now()
        booking = self.get_booking(booking_id, for_update=True)

        if booking.status == BookingStatus.PENDING and now > as_utc(booking.expires_at):
            self._transition(booking, BookingStatus.EXPIRED)
            self.db.flush()
            logger.info("Booking expired at entry. booking_id=%s", booking.booking_id)
            raise BookingExpiredError("Booking has expired")

        self._transition(booking, BookingStatus.ACTIVE)
        booking.entry_time = now
        booking.expected_exit_time = now + timedelta(hours=BASE_HOURS)
        self.db.flush()
        return booking

    def exit_scan(
        self,
        booking_id: str,
        now: datetime | None = None,
    ) -> tuple[Booking, FeeBreakdown, int]:
        """
        Prices the stay and stores the amount due.
        Returns the booking, the fee breakdown and the current wallet balance.
        """
        now = now or utc_now()
        booking = self.get_booking(booking_id, for_update=True)

        if booking.status != BookingStatus.ACTIVE:
            BookingStateMachine.validate_transition(booking.status, BookingStatus.COMPLETED)

        fee = calculate_fee(as_utc(booking.entry_time), now)
        booking.exit_time = now
        booking.actual_amount = fee.total_amount
        balance = self.account_repository.get_account().balance
        self.db.flush()

        logger.info(
            "Exit priced. booking_id=%s amount=%s balance=%s",
            booking.booking_id,
            fee.total_amount,
            balance,
        )
        return booking, fee, balance

    def complete_exit(
        self,
        booking_id: str,
        payment_status: PaymentStatus,
        payment_method: PaymentMethod | None = None,
    ) -> Booking:
        booking = self.get_booking(booking_id, for_update=True)
        BookingStateMachine.validate_transition(booking.status, BookingStatus.COMPLETED)

        if payment_status == PaymentStatus.PAID:
            if booking.payment_status != PaymentStatus.PAID:
                self._transition_payment(booking, PaymentStatus.PAID)
                if booking.actual_amount == 0:
                    booking.payment_method = PaymentMethod.FREE
                else:
                    booking.payment_method = payment_method or PaymentMethod.UPI
                self.account_repository.record_transaction(
                    amount=booking.actual_amount,
                    type_="payment",
                    user_id=booking.user_id,
                    booking_id=booking.id,
                    description=f"{booking.payment_method.value.upper()} payment for booking {booking.booking_id}",
                )
        elif payment_status == PaymentStatus.DUE:
            self._transition_payment(booking, PaymentStatus.DUE)
            booking.payment_method = PaymentMethod.DUE
            self.account_repository.record_transaction(
                amount=booking.actual_amount,
                type_="fine",
                user_id=booking.user_id,
                booking_id=booking.id,
                description=f"Due amount for booking {booking.booking_id}",
            )
        else:
            raise ValueError("Invalid payment status")

        self._transition(booking, BookingStatus.COMPLETED)
        if booking.exit_time is None:
            booking.exit_time = utc_now()
        self.db.flush()
        return booking

    def _transition(self, booking: Booking, to_status: BookingStatus) -> None:
        BookingStateMachine.validate_transition(booking.status, to_status)
        self.booking_repository.update_status(booking, to_status)

    def _transition_payment(self, booking: Booking, to_status: PaymentStatus) -> None:
        PaymentStateMachine.validate_transition(booking.payment_status, to_status)
        self.booking_repository.update_payment_status(booking, to_status)

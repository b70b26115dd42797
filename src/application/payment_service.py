import logging

from sqlalchemy.orm import Session

from src.domain.exceptions import BookingNotFoundError
from src.domain.state_machine import (
    PaymentMethod,
    PaymentStateMachine,
    PaymentStatus,
)
from src.infrastructure.db.models import Booking, GlobalAccount
from src.infrastructure.repositories.account_repository import AccountRepository
from src.infrastructure.repositories.booking_repository import BookingRepository

logger = logging.getLogger(__name__)


class PaymentService:
    """Payment status and global wallet operations."""

    def __init__(self, db: Session):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.account_repository = AccountRepository(db)

    def get_payment_status(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_booking_id(booking_id)
        if not booking:
            raise BookingNotFoundError("Booking not found")
        return booking

    def mark_paid(
        self,
        booking_id: str,
        payment_method: PaymentMethod = PaymentMethod.UPI,
    ) -> Booking:
        """
        Records an out-of-band confirmation (UPI or card gateway).
        """
        booking = self._lock_booking(booking_id)
        PaymentStateMachine.validate_transition(booking.payment_status, PaymentStatus.PAID)

        booking.payment_status = PaymentStatus.PAID
        booking.payment_method = payment_method
        self.account_repository.record_transaction(
            amount=booking.actual_amount,
            type_="payment",
            user_id=booking.user_id,
            booking_id=booking.id,
            description=f"{payment_method.value.upper()} payment for booking {booking.booking_id}",
        )
        self.db.flush()

        logger.info(
            "Payment confirmed. booking_id=%s method=%s",
            booking.booking_id,
            payment_method.value,
        )
        return booking

    def pay_with_wallet(
        self,
        booking_id: str,
        amount: int | None = None,
    ) -> tuple[Booking, GlobalAccount]:
        """
        Debits the full amount due from the global account.
        Any amount other than the fee is rejected.
        """
        booking = self._lock_booking(booking_id)
        PaymentStateMachine.validate_transition(booking.payment_status, PaymentStatus.PAID)

        charge = booking.actual_amount if amount is None else amount
        if charge != booking.actual_amount:
            raise ValueError(
                f"Wallet payments must cover exactly the amount due ({booking.actual_amount})"
            )

        account = self.account_repository.debit(charge)
        booking.payment_status = PaymentStatus.PAID
        booking.payment_method = PaymentMethod.WALLET
        self.account_repository.record_transaction(
            amount=charge,
            type_="wallet_debit",
            user_id=booking.user_id,
            booking_id=booking.id,
            description=f"Wallet payment for booking {booking.booking_id}",
        )
        self.db.flush()

        logger.info(
            "Wallet debited. booking_id=%s amount=%s remaining=%s",
            booking.booking_id,
            charge,
            account.balance,
        )
        return booking, account

    def get_wallet(self) -> GlobalAccount:
        return self.account_repository.get_account()

    def credit_wallet(self, amount: int) -> GlobalAccount:
        if amount <= 0:
            raise ValueError("Invalid amount")

        account = self.account_repository.credit(amount)
        self.account_repository.record_transaction(
            amount=amount,
            type_="deposit",
            description=f"{amount} added to global account",
        )
        self.db.flush()
        return account

    def _lock_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_booking_id(booking_id, for_update=True)
        if not booking:
            raise BookingNotFoundError("Booking not found")
        return booking

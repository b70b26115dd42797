# src/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from src.domain.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    DUE = "due"


class PaymentMethod(str, Enum):
    WALLET = "wallet"
    GATEWAY = "gateway"
    UPI = "upi"
    FREE = "free"
    NONE = "none"
    DUE = "due"


class SpotType(str, Enum):
    NORMAL = "normal"
    DISABILITY = "disability"


ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.ACTIVE})


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    Entry moves a booking to ACTIVE, exit to COMPLETED.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.PENDING: {
            BookingStatus.ACTIVE,
            BookingStatus.CANCELLED,
            BookingStatus.EXPIRED,
        },
        BookingStatus.ACTIVE: {
            BookingStatus.COMPLETED,
        },
        BookingStatus.COMPLETED: set(),
        BookingStatus.CANCELLED: set(),
        BookingStatus.EXPIRED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def is_active(cls, status: BookingStatus) -> bool:
        """
        A booking counts as active until it reaches a terminal state.
        """
        cls._ensure_valid_status(status)
        return status in ACTIVE_BOOKING_STATUSES

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )


class PaymentStateMachine:
    """Legal payment status transitions. A due can be settled later."""

    _ALLOWED_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
        PaymentStatus.PENDING: {
            PaymentStatus.PAID,
            PaymentStatus.DUE,
        },
        PaymentStatus.DUE: {
            PaymentStatus.PAID,
        },
        PaymentStatus.PAID: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
    ) -> bool:
        if not isinstance(from_status, PaymentStatus) or not isinstance(to_status, PaymentStatus):
            raise TypeError(
                f"Expected PaymentStatus, got {type(from_status)} -> {type(to_status)}"
            )
        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
    ) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )


class VerificationState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    STOPPED = "stopped"

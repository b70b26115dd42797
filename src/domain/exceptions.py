

class SmartParkError(Exception):
    """
    Base exception for all domain-level errors
    inside the SmartPark booking core.
    """


class InvalidStateTransitionError(SmartParkError):
    """
    Raised when an illegal booking or payment state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class BookingNotFoundError(SmartParkError):
    """Raised when a booking lookup yields nothing."""


class FloorNotFoundError(SmartParkError):
    """Raised when the requested floor does not exist."""


class ActiveBookingExistsError(SmartParkError):
    """Raised when the user already holds a pending or active booking."""


class OutstandingDuesError(SmartParkError):
    """Raised when a new booking is requested while dues are unpaid."""


class NoSpotsAvailableError(SmartParkError):
    """Raised when a floor has no free spots left."""


class BookingExpiredError(SmartParkError):
    """Raised when a pending booking is used after its entry window closed."""


class InsufficientBalanceError(SmartParkError):
    """Raised when the global account cannot cover a debit."""

    def __init__(self, balance: int, amount: int):
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient wallet balance: {balance} available, {amount} required"
        )

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from src.application.notifications import LoggingNotifier, Notifier
from src.infrastructure.gateway.booking_gateway import (
    BookingGatewayError,
    GatewayNotFoundError,
    RemoteBookingGateway,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveBookingCheck:
    has_active: bool
    booking: dict | None = None
    source: str | None = None


# A lookup answers with a check, or None when it could not decide.
Lookup = Callable[[], Awaitable[Optional[ActiveBookingCheck]]]


class ActiveBookingGuard:
    """
    Decides whether the user already holds a pending or active booking.

    Lookups run in order until one gives a definitive answer. A 404 is a
    definitive "no". Any other failure moves on to the next lookup. When
    every lookup fails the guard falls back to ``fail_open``, which
    defaults to the gateway settings.
    """

    def __init__(
        self,
        gateway: RemoteBookingGateway,
        notifier: Notifier | None = None,
        fail_open: bool | None = None,
    ):
        self.gateway = gateway
        self.notifier = notifier or LoggingNotifier()
        if fail_open is None:
            fail_open = gateway.settings.active_booking_fail_open
        self.fail_open = fail_open

    def _lookups(self) -> list[tuple[str, Lookup]]:
        return [
            ("current", self._lookup_current),
            ("active_list", self._lookup_active_list),
        ]

    async def check_active_booking(self) -> ActiveBookingCheck:
        errors: list[BookingGatewayError] = []

        for name, lookup in self._lookups():
            try:
                result = await lookup()
            except GatewayNotFoundError:
                result = ActiveBookingCheck(has_active=False, source=name)
            except BookingGatewayError as exc:
                logger.warning("Active booking lookup %s failed: %s", name, exc)
                errors.append(exc)
                continue

            if result is not None:
                if result.has_active:
                    self.notifier.notify(
                        "Active Booking Found",
                        "You already have an active booking.",
                    )
                return result

        logger.error(
            "Error checking active booking, all lookups failed (%s). fail_open=%s",
            "; ".join(str(exc) for exc in errors),
            self.fail_open,
        )
        return ActiveBookingCheck(has_active=not self.fail_open, source=None)

    async def _lookup_current(self) -> ActiveBookingCheck:
        booking = await self.gateway.get_current_booking()
        return ActiveBookingCheck(
            has_active=booking is not None,
            booking=booking,
            source="current",
        )

    async def _lookup_active_list(self) -> ActiveBookingCheck:
        bookings = await self.gateway.list_active_bookings()
        return ActiveBookingCheck(
            has_active=len(bookings) > 0,
            booking=bookings[0] if bookings else None,
            source="active_list",
        )

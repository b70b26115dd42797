import logging
from dataclasses import dataclass

from src.application.active_booking_guard import ActiveBookingGuard
from src.application.notifications import LoggingNotifier, Notifier
from src.application.payment_verification import PaymentVerificationPoller
from src.application.wallet_payment import WalletPaymentResolver
from src.domain.state_machine import PaymentMethod, PaymentStatus, SpotType
from src.infrastructure.gateway.booking_gateway import (
    BookingGatewayError,
    RemoteBookingGateway,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationResult:
    created: bool
    booking: dict | None = None
    error: str | None = None


class ReservationFlow:
    """Customer booking: consult the guard, then create the reservation."""

    def __init__(self, gateway: RemoteBookingGateway, guard: ActiveBookingGuard):
        self.gateway = gateway
        self.guard = guard

    async def reserve(
        self,
        floor_id: str,
        spot_type: SpotType = SpotType.NORMAL,
    ) -> ReservationResult:
        check = await self.guard.check_active_booking()
        if check.has_active:
            return ReservationResult(created=False, booking=check.booking)

        try:
            booking = await self.gateway.create_booking(floor_id, spot_type)
        except BookingGatewayError as exc:
            logger.warning("Booking creation failed. floor_id=%s error=%s", floor_id, exc)
            return ReservationResult(created=False, error=str(exc))

        return ReservationResult(created=True, booking=booking)


class KioskPaymentFlow:
    """
    Exit kiosk payment. The wallet path settles immediately; the UPI path
    polls for an external confirmation; deferring records a due. Any path
    that finishes the payment completes the exit.
    """

    def __init__(
        self,
        gateway: RemoteBookingGateway,
        resolver: WalletPaymentResolver | None = None,
        notifier: Notifier | None = None,
        poll_interval_seconds: float | None = None,
    ):
        self.gateway = gateway
        self.resolver = resolver or WalletPaymentResolver(gateway)
        self.notifier = notifier or LoggingNotifier()
        self.poller = PaymentVerificationPoller(
            gateway,
            on_payment_success=self._on_external_payment,
            notifier=self.notifier,
            interval_seconds=poll_interval_seconds,
        )
        self.booking_id: str | None = None
        self.outcome: PaymentStatus | None = None

    async def pay_with_wallet(self, booking_id: str, amount_due: int) -> PaymentStatus | None:
        outcome = await self.resolver.settle(booking_id, amount_due)
        if outcome == PaymentStatus.PAID:
            self.poller.stop()
            method = PaymentMethod.WALLET if amount_due > 0 else None
            await self._complete_exit(booking_id, PaymentStatus.PAID, method)
        return outcome

    def await_external_payment(self, booking_id: str) -> None:
        self.booking_id = booking_id
        self.poller.start(booking_id)

    async def defer_to_dues(self, booking_id: str) -> None:
        self.poller.stop()
        if await self._complete_exit(booking_id, PaymentStatus.DUE):
            self.notifier.notify(
                "Payment Deferred",
                "The amount has been added to your dues.",
            )

    async def aclose(self) -> None:
        await self.poller.aclose()

    async def _on_external_payment(self, payment_method: str) -> None:
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            method = PaymentMethod.UPI
        await self._complete_exit(self.booking_id, PaymentStatus.PAID, method)

    async def _complete_exit(
        self,
        booking_id: str,
        payment_status: PaymentStatus,
        payment_method: PaymentMethod | None = None,
    ) -> bool:
        try:
            await self.gateway.complete_exit(booking_id, payment_status, payment_method)
        except BookingGatewayError as exc:
            logger.error("Complete exit failed. booking_id=%s error=%s", booking_id, exc)
            return False
        self.outcome = payment_status
        return True

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Union

from src.application.notifications import LoggingNotifier, Notifier
from src.domain.state_machine import PaymentMethod, VerificationState
from src.infrastructure.gateway.booking_gateway import (
    BookingGatewayError,
    PaymentStatusReport,
    RemoteBookingGateway,
)

logger = logging.getLogger(__name__)

PaymentSuccessCallback = Callable[[str], Union[Awaitable[Any], Any]]


class PaymentVerificationPoller:
    """
    Watches a booking's payment status until it is paid or polling stops.

    One poller owns at most one polling task. ``start`` replaces the running
    task, ``stop`` cancels it, and ``verification`` scopes a session so the
    task is cancelled on every exit path.
    """

    def __init__(
        self,
        gateway: RemoteBookingGateway,
        on_payment_success: PaymentSuccessCallback,
        notifier: Notifier | None = None,
        interval_seconds: float | None = None,
    ):
        self.gateway = gateway
        self.on_payment_success = on_payment_success
        self.notifier = notifier or LoggingNotifier()
        if interval_seconds is None:
            interval_seconds = gateway.settings.poll_interval_seconds
        self.interval_seconds = interval_seconds
        self.state = VerificationState.IDLE
        self.booking_id: str | None = None
        self._task: asyncio.Task | None = None
        self._last_task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, booking_id: str | None) -> asyncio.Task | None:
        if not booking_id:
            return None

        self._cancel_task()
        self.booking_id = booking_id
        self.state = VerificationState.POLLING
        self._task = asyncio.get_running_loop().create_task(
            self._poll(booking_id),
            name=f"payment-verification-{booking_id}",
        )
        self._last_task = self._task
        logger.debug("Payment verification started. booking_id=%s", booking_id)
        return self._task

    def stop(self) -> None:
        self._cancel_task()
        if self.state != VerificationState.CONFIRMED:
            self.state = VerificationState.STOPPED

    async def wait(self) -> VerificationState:
        """Blocks until the most recently started task finishes, then reports the state."""
        task = self._last_task
        if task is not None:
            await asyncio.wait({task})
        return self.state

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            await asyncio.wait({task})

    @asynccontextmanager
    async def verification(self, booking_id: str) -> AsyncIterator["PaymentVerificationPoller"]:
        self.start(booking_id)
        try:
            yield self
        finally:
            await self.aclose()

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _poll(self, booking_id: str) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                report = await self.gateway.check_payment_status(booking_id)
            except BookingGatewayError as exc:
                logger.warning("Payment verification error. booking_id=%s error=%s", booking_id, exc)
                continue

            if report.is_paid:
                await self._confirm(booking_id, report)
                return

    async def _confirm(self, booking_id: str, report: PaymentStatusReport) -> None:
        if self._task is asyncio.current_task():
            self._task = None
        self.state = VerificationState.CONFIRMED

        self.notifier.notify(
            "Payment Successful",
            "Your payment has been processed successfully. Barrier opening...",
        )

        payment_method = report.payment_method or PaymentMethod.UPI.value
        try:
            result = self.on_payment_success(payment_method)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Payment success handler failed. booking_id=%s", booking_id)

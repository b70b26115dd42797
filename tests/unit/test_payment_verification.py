import asyncio

import pytest

from src.application.payment_verification import PaymentVerificationPoller
from src.config import ClientSettings
from src.domain.state_machine import VerificationState
from src.infrastructure.gateway.booking_gateway import (
    GatewayConnectionError,
    PaymentStatusReport,
    RemoteBookingGateway,
)

INTERVAL = 0.01


class ScriptedStatusGateway:
    """Answers payment status queries from a script, then keeps the last answer."""

    def __init__(self, script):
        self.script = list(script)
        self.calls: list[str] = []

    async def check_payment_status(self, booking_id: str) -> PaymentStatusReport:
        self.calls.append(booking_id)
        step = self.script[min(len(self.calls), len(self.script)) - 1]
        if isinstance(step, Exception):
            raise step
        return step


UNPAID = PaymentStatusReport(is_paid=False)
PAID_UPI = PaymentStatusReport(is_paid=True)


def _poller(gateway, notifier, callback):
    return PaymentVerificationPoller(
        gateway,
        on_payment_success=callback,
        notifier=notifier,
        interval_seconds=INTERVAL,
    )


@pytest.mark.asyncio
async def test_confirms_on_third_tick_and_stops_ticking(notifier):
    gateway = ScriptedStatusGateway([UNPAID, UNPAID, PAID_UPI])
    received = []
    poller = _poller(gateway, notifier, received.append)

    poller.start("SP1")
    state = await asyncio.wait_for(poller.wait(), timeout=2)
    await asyncio.sleep(INTERVAL * 5)

    assert state == VerificationState.CONFIRMED
    assert received == ["upi"]
    assert len(gateway.calls) == 3
    assert not poller.active
    assert notifier.titles == ["Payment Successful"]


@pytest.mark.asyncio
async def test_reports_backend_payment_method(notifier):
    gateway = ScriptedStatusGateway([PaymentStatusReport(is_paid=True, payment_method="wallet")])
    received = []
    poller = _poller(gateway, notifier, received.append)

    poller.start("SP1")
    await asyncio.wait_for(poller.wait(), timeout=2)

    assert received == ["wallet"]


@pytest.mark.asyncio
async def test_query_failures_keep_polling(notifier):
    gateway = ScriptedStatusGateway(
        [GatewayConnectionError("down"), GatewayConnectionError("down"), PAID_UPI]
    )
    received = []
    poller = _poller(gateway, notifier, received.append)

    poller.start("SP1")
    state = await asyncio.wait_for(poller.wait(), timeout=2)

    assert state == VerificationState.CONFIRMED
    assert received == ["upi"]
    assert len(gateway.calls) == 3


@pytest.mark.asyncio
async def test_async_success_callback_is_awaited(notifier):
    gateway = ScriptedStatusGateway([PAID_UPI])
    received = []

    async def on_success(method):
        await asyncio.sleep(0)
        received.append(method)

    poller = _poller(gateway, notifier, on_success)

    poller.start("SP1")
    await asyncio.wait_for(poller.wait(), timeout=2)

    assert received == ["upi"]


@pytest.mark.asyncio
async def test_failing_callback_does_not_break_confirmation(notifier, caplog):
    gateway = ScriptedStatusGateway([PAID_UPI])

    def on_success(method):
        raise RuntimeError("barrier offline")

    poller = _poller(gateway, notifier, on_success)

    poller.start("SP1")
    state = await asyncio.wait_for(poller.wait(), timeout=2)

    assert state == VerificationState.CONFIRMED
    assert "Payment success handler failed" in caplog.text


@pytest.mark.asyncio
async def test_start_without_booking_is_noop(notifier):
    gateway = ScriptedStatusGateway([UNPAID])
    poller = _poller(gateway, notifier, lambda method: None)

    assert poller.start(None) is None
    assert poller.start("") is None
    assert poller.state == VerificationState.IDLE
    assert not poller.active


@pytest.mark.asyncio
async def test_restart_keeps_a_single_task(notifier):
    gateway = ScriptedStatusGateway([UNPAID])
    poller = _poller(gateway, notifier, lambda method: None)

    first = poller.start("SP1")
    second = poller.start("SP1")

    with pytest.raises(asyncio.CancelledError):
        await first

    assert first.cancelled()
    assert not second.done()
    assert poller.active
    assert poller.state == VerificationState.POLLING

    await poller.aclose()
    assert second.done()


@pytest.mark.asyncio
async def test_stop_twice_is_safe(notifier):
    gateway = ScriptedStatusGateway([UNPAID])
    poller = _poller(gateway, notifier, lambda method: None)

    task = poller.start("SP1")
    poller.stop()
    poller.stop()
    await asyncio.sleep(INTERVAL * 3)

    assert poller.state == VerificationState.STOPPED
    assert task.cancelled()
    assert not poller.active


@pytest.mark.asyncio
async def test_no_ticks_after_stop(notifier):
    gateway = ScriptedStatusGateway([UNPAID])
    poller = _poller(gateway, notifier, lambda method: None)

    poller.start("SP1")
    await asyncio.sleep(INTERVAL * 3)
    poller.stop()
    calls_at_stop = len(gateway.calls)
    await asyncio.sleep(INTERVAL * 5)

    assert len(gateway.calls) == calls_at_stop


@pytest.mark.asyncio
async def test_stop_after_confirmation_keeps_confirmed(notifier):
    gateway = ScriptedStatusGateway([PAID_UPI])
    poller = _poller(gateway, notifier, lambda method: None)

    poller.start("SP1")
    await asyncio.wait_for(poller.wait(), timeout=2)
    poller.stop()

    assert poller.state == VerificationState.CONFIRMED


@pytest.mark.asyncio
async def test_scoped_session_cancels_on_exit(notifier):
    gateway = ScriptedStatusGateway([UNPAID])
    poller = _poller(gateway, notifier, lambda method: None)

    async with poller.verification("SP1"):
        task = poller._task
        assert poller.active

    assert task.done()
    assert not poller.active
    assert poller.state == VerificationState.STOPPED


@pytest.mark.asyncio
async def test_scoped_session_cancels_on_error(notifier):
    gateway = ScriptedStatusGateway([UNPAID])
    poller = _poller(gateway, notifier, lambda method: None)

    with pytest.raises(RuntimeError):
        async with poller.verification("SP1"):
            task = poller._task
            raise RuntimeError("kiosk closed")

    assert task.done()
    assert poller.state == VerificationState.STOPPED


def test_interval_defaults_to_gateway_settings(monkeypatch, notifier):
    monkeypatch.setenv("PAYMENT_POLL_INTERVAL_SECONDS", "2.5")
    gateway = RemoteBookingGateway(ClientSettings.from_env())

    poller = PaymentVerificationPoller(gateway, on_payment_success=lambda method: None, notifier=notifier)

    assert poller.interval_seconds == 2.5

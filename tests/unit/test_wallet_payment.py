import asyncio

import pytest

from src.application.wallet_payment import WalletPaymentResolver, can_settle_from_wallet
from src.domain.state_machine import PaymentStatus
from src.infrastructure.gateway.booking_gateway import GatewayRequestError


class FakeWalletGateway:
    def __init__(self, balance: int = 0, debit_error: Exception | None = None):
        self.balance = balance
        self.debit_error = debit_error
        self.debits: list[tuple[str, int]] = []
        self.balance_reads = 0
        self.release_debit: asyncio.Event | None = None

    async def get_wallet_balance(self) -> int:
        self.balance_reads += 1
        return self.balance

    async def debit_wallet(self, booking_id: str, amount: int) -> dict:
        self.debits.append((booking_id, amount))
        if self.release_debit is not None:
            await self.release_debit.wait()
        if self.debit_error is not None:
            raise self.debit_error
        self.balance -= amount
        return {"success": True, "balance": self.balance}


@pytest.mark.parametrize(
    "balance, amount_due, expected",
    [
        (0, 0, True),
        (100, 150, False),
        (150, 150, True),
        (200, 150, True),
        (0, 1, False),
        (10.5, 10.25, True),
    ],
)
def test_can_settle_from_wallet(balance, amount_due, expected):
    assert can_settle_from_wallet(balance, amount_due) is expected
    assert can_settle_from_wallet(balance, amount_due) == (balance >= amount_due)


def test_defaults_allow_settlement_when_nothing_is_due():
    assert can_settle_from_wallet() is True
    assert can_settle_from_wallet(balance=25) is True


@pytest.mark.asyncio
async def test_insufficient_balance_defers_without_debit():
    gateway = FakeWalletGateway()
    resolver = WalletPaymentResolver(gateway)

    outcome = await resolver.resolve_payment("SP1", balance=100, amount_due=150)

    assert outcome == PaymentStatus.DUE
    assert gateway.debits == []


@pytest.mark.asyncio
async def test_sufficient_balance_debits_exactly_once():
    gateway = FakeWalletGateway(balance=200)
    resolver = WalletPaymentResolver(gateway)

    outcome = await resolver.resolve_payment("SP1", balance=200, amount_due=150)

    assert outcome == PaymentStatus.PAID
    assert gateway.debits == [("SP1", 150)]


@pytest.mark.asyncio
async def test_declining_wallet_defers():
    gateway = FakeWalletGateway(balance=200)
    resolver = WalletPaymentResolver(gateway)

    outcome = await resolver.resolve_payment("SP1", balance=200, amount_due=150, use_wallet=False)

    assert outcome == PaymentStatus.DUE
    assert gateway.debits == []


@pytest.mark.asyncio
async def test_nothing_due_is_paid_without_debit():
    gateway = FakeWalletGateway()
    resolver = WalletPaymentResolver(gateway)

    outcome = await resolver.resolve_payment("SP1")

    assert outcome == PaymentStatus.PAID
    assert gateway.debits == []


@pytest.mark.asyncio
async def test_failed_debit_defers():
    gateway = FakeWalletGateway(balance=200, debit_error=GatewayRequestError("boom", status_code=400))
    resolver = WalletPaymentResolver(gateway)

    outcome = await resolver.resolve_payment("SP1", balance=200, amount_due=150)

    assert outcome == PaymentStatus.DUE
    assert not resolver.in_flight


@pytest.mark.asyncio
async def test_second_request_while_in_flight_is_ignored():
    gateway = FakeWalletGateway(balance=200)
    gateway.release_debit = asyncio.Event()
    resolver = WalletPaymentResolver(gateway)

    first = asyncio.create_task(resolver.resolve_payment("SP1", balance=200, amount_due=150))
    await asyncio.sleep(0)
    assert resolver.in_flight

    second = await resolver.resolve_payment("SP1", balance=200, amount_due=150)
    gateway.release_debit.set()

    assert second is None
    assert await first == PaymentStatus.PAID
    assert gateway.debits == [("SP1", 150)]
    assert not resolver.in_flight


@pytest.mark.asyncio
async def test_settle_reads_balance_every_time():
    gateway = FakeWalletGateway(balance=200)
    resolver = WalletPaymentResolver(gateway)

    assert await resolver.settle("SP1", 150) == PaymentStatus.PAID
    assert await resolver.settle("SP2", 150) == PaymentStatus.DUE

    assert gateway.balance_reads == 2
    assert gateway.debits == [("SP1", 150)]


@pytest.mark.asyncio
async def test_settle_while_in_flight_is_ignored():
    gateway = FakeWalletGateway(balance=500)
    gateway.release_debit = asyncio.Event()
    resolver = WalletPaymentResolver(gateway)

    first = asyncio.create_task(resolver.settle("SP1", 150))
    await asyncio.sleep(0)

    assert await resolver.settle("SP1", 150) is None
    gateway.release_debit.set()
    assert await first == PaymentStatus.PAID
    assert len(gateway.debits) == 1

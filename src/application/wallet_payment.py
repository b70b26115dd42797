import logging

from src.domain.state_machine import PaymentStatus
from src.infrastructure.gateway.booking_gateway import (
    BookingGatewayError,
    RemoteBookingGateway,
)

logger = logging.getLogger(__name__)


def can_settle_from_wallet(balance: int = 0, amount_due: int = 0) -> bool:
    return balance >= amount_due


class WalletPaymentResolver:
    """
    Settles an amount due from the shared wallet, or defers it as a due.

    The balance is never cached: ``settle`` reads it from the backend on
    every attempt. Only one settlement may be in flight at a time; calls
    made while one is pending return None without touching the backend.
    """

    def __init__(self, gateway: RemoteBookingGateway):
        self.gateway = gateway
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def resolve_payment(
        self,
        booking_id: str,
        balance: int = 0,
        amount_due: int = 0,
        use_wallet: bool = True,
    ) -> PaymentStatus | None:
        if self._in_flight:
            logger.warning("Settlement already in flight. booking_id=%s", booking_id)
            return None

        self._in_flight = True
        try:
            return await self._resolve(booking_id, balance, amount_due, use_wallet)
        finally:
            self._in_flight = False

    async def settle(self, booking_id: str, amount_due: int = 0) -> PaymentStatus | None:
        if self._in_flight:
            logger.warning("Settlement already in flight. booking_id=%s", booking_id)
            return None

        self._in_flight = True
        try:
            try:
                balance = await self.gateway.get_wallet_balance()
            except BookingGatewayError as exc:
                logger.warning("Wallet balance unavailable. booking_id=%s error=%s", booking_id, exc)
                return PaymentStatus.DUE
            return await self._resolve(booking_id, balance, amount_due, use_wallet=True)
        finally:
            self._in_flight = False

    async def _resolve(
        self,
        booking_id: str,
        balance: int,
        amount_due: int,
        use_wallet: bool,
    ) -> PaymentStatus:
        if not use_wallet or not can_settle_from_wallet(balance, amount_due):
            return PaymentStatus.DUE

        # Nothing to debit.
        if amount_due <= 0:
            return PaymentStatus.PAID

        try:
            await self.gateway.debit_wallet(booking_id, amount_due)
        except BookingGatewayError as exc:
            logger.warning("Wallet debit failed. booking_id=%s error=%s", booking_id, exc)
            return PaymentStatus.DUE

        return PaymentStatus.PAID

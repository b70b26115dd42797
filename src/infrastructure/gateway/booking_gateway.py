"""HTTP client for the SmartPark booking and payment endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from src.config import ClientSettings
from src.domain.exceptions import SmartParkError
from src.domain.state_machine import PaymentMethod, PaymentStatus, SpotType

logger = logging.getLogger(__name__)


class BookingGatewayError(SmartParkError):
    """Base error for backend request failures."""


class GatewayNotFoundError(BookingGatewayError):
    """Raised when the backend answers 404."""


class GatewayConnectionError(BookingGatewayError):
    """Raised when the backend cannot be reached or times out."""


class GatewayRequestError(BookingGatewayError):
    """Raised for any other non-success backend response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class PaymentStatusReport:
    is_paid: bool
    payment_method: str | None = None


class RemoteBookingGateway:
    """Thin async client over the booking, payment and wallet endpoints."""

    def __init__(
        self,
        settings: ClientSettings,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.http = http or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=httpx.Timeout(settings.timeout_seconds),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def call(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> dict:
        headers = {}
        if self.settings.user_id:
            headers["X-User-Id"] = self.settings.user_id
        try:
            response = await self.http.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            raise GatewayConnectionError(f"backend_timeout: Request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise GatewayConnectionError(f"backend_connection_failed: {exc}") from exc

        if response.status_code == 404:
            raise GatewayNotFoundError(f"backend_not_found: {path}")
        if response.status_code >= 400:
            raise GatewayRequestError(
                f"backend_error_{response.status_code}: {path}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise GatewayRequestError(
                f"backend_invalid_json: {path}",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise GatewayRequestError(
                f"backend_invalid_json: {path} returned {type(data).__name__}, expected an object",
                status_code=response.status_code,
            )
        return data

    async def get_current_booking(self) -> dict | None:
        data = await self.call("GET", "/booking")
        if data.get("success") and data.get("booking"):
            return data["booking"]
        return None

    async def list_active_bookings(self) -> list[dict]:
        data = await self.call("GET", "/booking/active")
        if not data.get("success"):
            return []
        return list(data.get("bookings") or [])

    async def create_booking(
        self,
        floor_id: str,
        spot_type: SpotType = SpotType.NORMAL,
    ) -> dict:
        data = await self.call(
            "POST",
            "/booking/create",
            json={"floorId": floor_id, "spotType": spot_type.value},
        )
        return data["booking"]

    async def check_payment_status(self, booking_id: str) -> PaymentStatusReport:
        data = await self.call(
            "GET",
            f"/payment/check-status/booking/{quote(booking_id, safe='')}",
        )
        booking = data.get("booking")
        if not isinstance(booking, dict):
            booking = {}
        return PaymentStatusReport(
            is_paid=bool(data.get("success") and data.get("isPaid")),
            payment_method=booking.get("paymentMethod"),
        )

    async def get_wallet_balance(self) -> int:
        data = await self.call("GET", "/wallet")
        return data.get("balance", 0)

    async def debit_wallet(self, booking_id: str, amount: int) -> dict:
        return await self.call(
            "POST",
            f"/payment/wallet/booking/{quote(booking_id, safe='')}",
            json={"amount": amount},
        )

    async def complete_exit(
        self,
        booking_id: str,
        payment_status: PaymentStatus,
        payment_method: PaymentMethod | None = None,
    ) -> dict:
        payload: dict[str, Any] = {
            "bookingId": booking_id,
            "paymentStatus": payment_status.value,
        }
        if payment_method is not None:
            payload["paymentMethod"] = payment_method.value
        return await self.call("POST", "/kiosk/complete-exit", json=payload)

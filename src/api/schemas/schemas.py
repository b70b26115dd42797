from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.state_machine import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SpotType,
)


class CamelModel(BaseModel):
    """JSON bodies use camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CreateBookingRequest(CamelModel):
    floor_id: str
    spot_type: SpotType = SpotType.NORMAL


class KioskScanRequest(CamelModel):
    booking_id: str


class CompleteExitRequest(CamelModel):
    booking_id: str
    payment_status: Literal["paid", "due"]
    payment_method: PaymentMethod | None = None


class PaymentUpdateRequest(CamelModel):
    payment_method: PaymentMethod = PaymentMethod.UPI


class WalletPaymentRequest(CamelModel):
    amount: int | None = Field(default=None, ge=0)


class WalletCreditRequest(CamelModel):
    amount: int = Field(gt=0)


class BookingPayload(CamelModel):
    id: str
    booking_id: str
    user_id: str
    floor_id: str
    floor_name: str | None = None
    spot_type: SpotType
    spot_number: str
    status: BookingStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    actual_amount: int
    entry_time: datetime | None = None
    exit_time: datetime | None = None
    expected_exit_time: datetime | None = None
    expires_at: datetime
    created_at: datetime | None = None


class BookingResponse(CamelModel):
    success: bool = True
    booking: BookingPayload


class BookingListResponse(CamelModel):
    success: bool = True
    bookings: list[BookingPayload]


class PaymentStatusBooking(CamelModel):
    booking_id: str
    status: BookingStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod | None = None


class PaymentStatusResponse(CamelModel):
    success: bool = True
    is_paid: bool
    booking: PaymentStatusBooking


class WalletResponse(CamelModel):
    success: bool = True
    balance: int
    updated_at: datetime | None = None


class WalletPaymentResponse(CamelModel):
    success: bool = True
    booking: BookingPayload
    balance: int


class FeeResponse(CamelModel):
    base_amount: int
    fine_amount: int
    total_amount: int
    duration_minutes: int
    overage_minutes: int


class ExitScanResponse(CamelModel):
    success: bool = True
    booking: BookingPayload
    fee: FeeResponse
    wallet_balance: int
    can_pay_with_wallet: bool
    shortfall: int


class FloorResponse(CamelModel):
    id: str
    name: str
    normal_spots: int
    disability_spots: int
    is_free_limit: bool
    available_spots: int | None = None
    available_disability_spots: int | None = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str

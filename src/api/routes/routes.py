import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from src.infrastructure.db.session import SessionLocal
from src.application.booking_service import BookingService
from src.application.payment_service import PaymentService
from src.application.wallet_payment import can_settle_from_wallet
from src.api.schemas.schemas import (
    BookingListResponse,
    BookingPayload,
    BookingResponse,
    CompleteExitRequest,
    CreateBookingRequest,
    ExitScanResponse,
    FeeResponse,
    FloorResponse,
    KioskScanRequest,
    MessageResponse,
    PaymentStatusBooking,
    PaymentStatusResponse,
    PaymentUpdateRequest,
    WalletCreditRequest,
    WalletPaymentRequest,
    WalletPaymentResponse,
    WalletResponse,
)
from src.domain.exceptions import (
    ActiveBookingExistsError,
    BookingExpiredError,
    BookingNotFoundError,
    FloorNotFoundError,
    InsufficientBalanceError,
    InvalidStateTransitionError,
    NoSpotsAvailableError,
    OutstandingDuesError,
)
from src.domain.state_machine import PaymentStatus, SpotType
from src.infrastructure.db.models import Booking
from src.infrastructure.repositories.booking_repository import BookingRepository


router = APIRouter()
logger = logging.getLogger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id


def _booking_payload(booking: Booking) -> BookingPayload:
    payload = BookingPayload.model_validate(booking)
    if booking.floor is not None:
        payload.floor_name = booking.floor.name
    return payload


@router.get("/health")
def health():
    return {"success": True, "message": "SmartPark booking service is running"}


@router.get("/floor", response_model=list[FloorResponse])
def list_floors(db: Session = Depends(get_db)):
    repo = BookingRepository(db)
    results = []
    for floor in repo.list_floors():
        available = {}
        if not floor.is_free_limit:
            for spot_type in SpotType:
                booked = repo.count_active_on_floor(floor.id, spot_type)
                available[spot_type] = max(0, floor.capacity_for(spot_type) - booked)
        results.append(
            FloorResponse(
                id=floor.id,
                name=floor.name,
                normal_spots=floor.normal_spots,
                disability_spots=floor.disability_spots,
                is_free_limit=floor.is_free_limit,
                available_spots=available.get(SpotType.NORMAL),
                available_disability_spots=available.get(SpotType.DISABILITY),
            )
        )
    return results


@router.post(
    "/booking/create",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    request: CreateBookingRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = BookingService(db)

    try:
        booking = service.create_booking(
            user_id=user_id,
            floor_id=request.floor_id,
            spot_type=request.spot_type,
        )
    except ActiveBookingExistsError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except (OutstandingDuesError, NoSpotsAvailableError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except FloorNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return BookingResponse(booking=_booking_payload(booking))


@router.get("/booking", response_model=BookingResponse)
def get_current_booking(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).get_current_booking(user_id)
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return BookingResponse(booking=_booking_payload(booking))


@router.get("/booking/active", response_model=BookingListResponse)
def list_active_bookings(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        bookings = BookingService(db).list_active_bookings(user_id)
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return BookingListResponse(bookings=[_booking_payload(item) for item in bookings])


@router.post("/booking/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).cancel_booking(user_id, booking_id)
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvalidStateTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return BookingResponse(booking=_booking_payload(booking))


@router.get(
    "/payment/check-status/booking/{booking_id}",
    response_model=PaymentStatusResponse,
)
def check_booking_payment_status(
    booking_id: str,
    db: Session = Depends(get_db),
):
    try:
        booking = PaymentService(db).get_payment_status(booking_id)
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    is_paid = booking.payment_status == PaymentStatus.PAID
    return PaymentStatusResponse(
        is_paid=is_paid,
        booking=PaymentStatusBooking(
            booking_id=booking.booking_id,
            status=booking.status,
            payment_status=booking.payment_status,
            payment_method=booking.payment_method if is_paid else None,
        ),
    )


@router.post(
    "/payment/update-status/booking/{booking_id}",
    response_model=BookingResponse,
)
def confirm_booking_payment(
    booking_id: str,
    request: PaymentUpdateRequest,
    db: Session = Depends(get_db),
):
    try:
        booking = PaymentService(db).mark_paid(booking_id, request.payment_method)
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvalidStateTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return BookingResponse(booking=_booking_payload(booking))


@router.post(
    "/payment/wallet/booking/{booking_id}",
    response_model=WalletPaymentResponse,
)
def pay_booking_with_wallet(
    booking_id: str,
    request: WalletPaymentRequest,
    db: Session = Depends(get_db),
):
    try:
        booking, account = PaymentService(db).pay_with_wallet(booking_id, request.amount)
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvalidStateTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except (InsufficientBalanceError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return WalletPaymentResponse(
        booking=_booking_payload(booking),
        balance=account.balance,
    )


@router.get("/wallet", response_model=WalletResponse)
def get_wallet(db: Session = Depends(get_db)):
    account = PaymentService(db).get_wallet()
    return WalletResponse(balance=account.balance, updated_at=account.updated_at)


@router.post("/wallet/credit", response_model=WalletResponse)
def credit_wallet(
    request: WalletCreditRequest,
    db: Session = Depends(get_db),
):
    try:
        account = PaymentService(db).credit_wallet(request.amount)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return WalletResponse(balance=account.balance, updated_at=account.updated_at)


@router.post("/kiosk/entry-scan", response_model=BookingResponse)
def kiosk_entry_scan(
    request: KioskScanRequest,
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).entry_scan(request.booking_id)
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BookingExpiredError as exc:
        # Keep the expiry even though the scan is rejected.
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except InvalidStateTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return BookingResponse(booking=_booking_payload(booking))


@router.post("/kiosk/exit-scan", response_model=ExitScanResponse)
def kiosk_exit_scan(
    request: KioskScanRequest,
    db: Session = Depends(get_db),
):
    try:
        booking, fee, balance = BookingService(db).exit_scan(request.booking_id)
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvalidStateTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return ExitScanResponse(
        booking=_booking_payload(booking),
        fee=FeeResponse(
            base_amount=fee.base_amount,
            fine_amount=fee.fine_amount,
            total_amount=fee.total_amount,
            duration_minutes=fee.duration_minutes,
            overage_minutes=fee.overage_minutes,
        ),
        wallet_balance=balance,
        can_pay_with_wallet=can_settle_from_wallet(balance, fee.total_amount),
        shortfall=max(0, fee.total_amount - balance),
    )


@router.post("/kiosk/complete-exit", response_model=MessageResponse)
def kiosk_complete_exit(
    request: CompleteExitRequest,
    db: Session = Depends(get_db),
):
    payment_status = PaymentStatus(request.payment_status)
    try:
        BookingService(db).complete_exit(
            booking_id=request.booking_id,
            payment_status=payment_status,
            payment_method=request.payment_method,
        )
    except BookingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except InvalidStateTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    if payment_status == PaymentStatus.PAID:
        message = "Payment successful, exit completed"
    else:
        message = "Exit completed, amount added to dues"
    return MessageResponse(message=message)

"""HTTP controller layer for reservation allocation and swaps."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import (
    get_allocator,
    get_hotel_context,
    get_swap_reconciler,
    http_error_for,
)
from backend.domain.models import (
    HotelContext,
    PaymentStatus,
    Reservation,
    ReservationChanges,
    ReservationDraft,
    ReservationStatus,
    RoomCategory,
)
from backend.domain.results import Failure
from backend.services.allocation_service import ReservationAllocator
from backend.services.swap_service import SwapReconciler
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/hotels/{hotel_id}/reservations", tags=["reservations"])


class CreateReservationRequest(BaseModel):
    """Stay dates and party size are checked by the allocator (400), not here."""

    guest_id: int = Field(gt=0)
    check_in: date
    check_out: date
    room_id: Optional[int] = Field(default=None, gt=0)
    status: ReservationStatus = ReservationStatus.BOOKED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    room_category: Optional[RoomCategory] = None
    adults: Optional[int] = None
    children: int = 0
    notes: Optional[str] = Field(default=None, max_length=2000)


class UpdateReservationRequest(BaseModel):
    room_id: Optional[int] = Field(default=None, gt=0)
    unassign_room: bool = False
    status: Optional[ReservationStatus] = None
    payment_status: Optional[PaymentStatus] = None
    room_category: Optional[RoomCategory] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class SwapReservationsRequest(BaseModel):
    primary_reservation_id: int = Field(gt=0)
    target_reservation_id: int = Field(gt=0)
    check_in: date
    check_out: date


class ReservationResponse(BaseModel):
    reservation_id: int
    hotel_id: int
    room_id: Optional[int]
    guest_id: int
    status: ReservationStatus
    room_category: RoomCategory
    check_in: date
    check_out: date
    adults: int
    children: int
    payment_status: PaymentStatus
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    warning: Optional[str] = None


class SwapReservationsResponse(BaseModel):
    primary: ReservationResponse
    target: ReservationResponse
    same_room: bool


def _to_response(reservation: Reservation, warning: Optional[str] = None) -> ReservationResponse:
    return ReservationResponse(**asdict(reservation), warning=warning)


@router.post(
    "",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: CreateReservationRequest,
    hotel: HotelContext = Depends(get_hotel_context),
    allocator: ReservationAllocator = Depends(get_allocator),
) -> ReservationResponse:
    try:
        result = allocator.create_reservation(hotel, ReservationDraft(**payload.model_dump()))
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected reservation create failure | hotel_id=%s", hotel.hotel_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create reservation",
        ) from exc
    if isinstance(result, Failure):
        raise http_error_for(result)
    return _to_response(result.value, result.warning)


@router.post(
    "/swap",
    response_model=SwapReservationsResponse,
    status_code=status.HTTP_200_OK,
)
async def swap_reservations(
    payload: SwapReservationsRequest,
    hotel: HotelContext = Depends(get_hotel_context),
    reconciler: SwapReconciler = Depends(get_swap_reconciler),
) -> SwapReservationsResponse:
    """Exchange rooms (or, within one room, dates) between two reservations."""
    try:
        result = reconciler.swap_reservations(
            hotel,
            payload.primary_reservation_id,
            payload.target_reservation_id,
            payload.check_in,
            payload.check_out,
        )
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected swap failure | hotel_id=%s", hotel.hotel_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to swap reservations",
        ) from exc
    if isinstance(result, Failure):
        raise http_error_for(result)
    outcome = result.value
    return SwapReservationsResponse(
        primary=_to_response(outcome.primary),
        target=_to_response(outcome.target),
        same_room=outcome.same_room,
    )


@router.patch(
    "/{reservation_id}",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def update_reservation(
    reservation_id: int,
    payload: UpdateReservationRequest,
    hotel: HotelContext = Depends(get_hotel_context),
    allocator: ReservationAllocator = Depends(get_allocator),
) -> ReservationResponse:
    try:
        result = allocator.update_reservation(
            hotel,
            reservation_id,
            ReservationChanges(**payload.model_dump()),
        )
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception(
            "Unexpected reservation update failure | hotel_id=%s | reservation_id=%s",
            hotel.hotel_id,
            reservation_id,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update reservation",
        ) from exc
    if isinstance(result, Failure):
        raise http_error_for(result)
    return _to_response(result.value, result.warning)


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_reservation(
    reservation_id: int,
    hotel: HotelContext = Depends(get_hotel_context),
    allocator: ReservationAllocator = Depends(get_allocator),
) -> ReservationResponse:
    try:
        result = allocator.cancel_reservation(hotel, reservation_id)
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception(
            "Unexpected reservation cancel failure | hotel_id=%s | reservation_id=%s",
            hotel.hotel_id,
            reservation_id,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel reservation",
        ) from exc
    if isinstance(result, Failure):
        raise http_error_for(result)
    return _to_response(result.value)

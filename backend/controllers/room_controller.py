"""HTTP controller layer for room availability, the stay ledger and room status."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import (
    get_availability_service,
    get_hotel_context,
    get_room_service,
    http_error_for,
)
from backend.domain.models import (
    HotelContext,
    ReservationStatus,
    RoomCategory,
    RoomStatus,
)
from backend.domain.results import Failure
from backend.services.availability_service import AvailabilityService
from backend.services.reassignment_service import RoomService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/hotels/{hotel_id}", tags=["rooms"])


class RoomAvailabilityResponse(BaseModel):
    room_id: int
    available: bool
    room_category: RoomCategory


class CategoryAvailabilityResponse(BaseModel):
    category: RoomCategory
    total_rooms: int = Field(ge=0)
    reserved_rooms: int = Field(ge=0)
    available_rooms: int = Field(ge=0)


class RoomResponse(BaseModel):
    room_id: int
    number: str
    category: RoomCategory
    status: RoomStatus
    max_guests: int = Field(gt=0)
    features: Optional[str] = None


class LedgerEntryResponse(BaseModel):
    reservation_id: int
    room_id: int
    check_in: date
    check_out: date
    status: ReservationStatus
    guest_name: str


class LedgerResponse(BaseModel):
    start: date
    end: date
    rooms: list[RoomResponse]
    reservations: list[LedgerEntryResponse]


class RoomStatusRequest(BaseModel):
    status: RoomStatus
    as_of: Optional[date] = None


class RoomStatusResponse(BaseModel):
    room_id: int
    status: RoomStatus
    moved: int = Field(ge=0)


@router.get(
    "/rooms/{room_id}/availability",
    response_model=RoomAvailabilityResponse,
    status_code=status.HTTP_200_OK,
)
async def check_room_availability(
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_reservation_id: Optional[int] = Query(default=None, gt=0),
    hotel: HotelContext = Depends(get_hotel_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> RoomAvailabilityResponse:
    """Answer 409 with the conflict reason when the room cannot take the stay."""
    result = service.check_room(
        hotel,
        room_id,
        check_in,
        check_out,
        exclude_reservation_id=exclude_reservation_id,
    )
    if isinstance(result, Failure):
        raise http_error_for(result)
    return RoomAvailabilityResponse(room_id=room_id, available=True, room_category=result.value)


@router.get(
    "/availability/category",
    response_model=CategoryAvailabilityResponse,
    status_code=status.HTTP_200_OK,
)
async def check_category_availability(
    category: RoomCategory,
    check_in: date,
    check_out: date,
    exclude_reservation_id: Optional[int] = Query(default=None, gt=0),
    hotel: HotelContext = Depends(get_hotel_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> CategoryAvailabilityResponse:
    result = service.check_category(
        hotel,
        category,
        check_in,
        check_out,
        exclude_reservation_id=exclude_reservation_id,
    )
    if isinstance(result, Failure):
        raise http_error_for(result)
    return CategoryAvailabilityResponse(category=category, **asdict(result.value))


@router.get(
    "/availability/ledger",
    response_model=LedgerResponse,
    status_code=status.HTTP_200_OK,
)
async def get_ledger(
    start: Optional[date] = None,
    end: Optional[date] = None,
    hotel: HotelContext = Depends(get_hotel_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> LedgerResponse:
    ledger = service.get_reservation_ledger(hotel, start=start, end=end)
    return LedgerResponse(
        start=ledger.start,
        end=ledger.end,
        rooms=[
            RoomResponse(
                room_id=room.room_id,
                number=room.number,
                category=room.category,
                status=room.status,
                max_guests=room.max_guests,
                features=room.features,
            )
            for room in ledger.rooms
        ],
        reservations=[LedgerEntryResponse(**asdict(entry)) for entry in ledger.reservations],
    )


@router.put(
    "/rooms/{room_id}/status",
    response_model=RoomStatusResponse,
    status_code=status.HTTP_200_OK,
)
async def update_room_status(
    room_id: int,
    payload: RoomStatusRequest,
    hotel: HotelContext = Depends(get_hotel_context),
    service: RoomService = Depends(get_room_service),
) -> RoomStatusResponse:
    """Blocking a room relocates its upcoming stays first; 409 when some cannot move."""
    try:
        result = service.update_room_status(hotel, room_id, payload.status, today=payload.as_of)
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception(
            "Unexpected room status failure | hotel_id=%s | room_id=%s",
            hotel.hotel_id,
            room_id,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update room status",
        ) from exc
    if isinstance(result, Failure):
        raise http_error_for(result)
    change = result.value
    return RoomStatusResponse(room_id=change.room_id, status=change.status, moved=change.moved)

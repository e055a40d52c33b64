"""Shared FastAPI dependency providers and failure translation for controllers."""

from __future__ import annotations

from fastapi import HTTPException, Path, Request, status

from backend.domain.models import HotelContext
from backend.domain.results import (
    AvailabilityConflictError,
    Failure,
    NotFoundError,
    ReservationValidationError,
    TransactionAbortedError,
)
from backend.services.allocation_service import ReservationAllocator
from backend.services.availability_service import AvailabilityService
from backend.services.reassignment_service import RoomService
from backend.services.swap_service import SwapReconciler


def _service_from_state(request: Request, attribute: str, label: str):
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_allocator(request: Request) -> ReservationAllocator:
    return _service_from_state(request, "allocator", "Reservation allocator")


def get_swap_reconciler(request: Request) -> SwapReconciler:
    return _service_from_state(request, "swap_reconciler", "Swap reconciler")


def get_room_service(request: Request) -> RoomService:
    return _service_from_state(request, "room_service", "Room service")


def get_availability_service(request: Request) -> AvailabilityService:
    return _service_from_state(request, "availability_service", "Availability service")


def get_hotel_context(hotel_id: int = Path(gt=0)) -> HotelContext:
    return HotelContext(hotel_id=hotel_id)


def http_error_for(failure: Failure) -> HTTPException:
    """Map a service failure onto its HTTP status.

    Aborted transactions answer 404 when a record was missing and 409
    otherwise, whatever rule the body broke.
    """
    error = failure.error
    if isinstance(error, TransactionAbortedError):
        code = (
            status.HTTP_404_NOT_FOUND
            if isinstance(error.cause, NotFoundError)
            else status.HTTP_409_CONFLICT
        )
    elif isinstance(error, ReservationValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, AvailabilityConflictError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=failure.message)

"""Room and category availability checks.

The module-level functions operate on a ``HotelStore`` so that atomic
workflows can run them on their own transaction; ``AvailabilityService``
wraps them for read-only callers.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from backend.domain.constraints import is_room_blocked
from backend.domain.models import (
    CategoryAvailability,
    HotelContext,
    ReservationLedger,
    RoomCategory,
)
from backend.domain.results import (
    AvailabilityConflictError,
    Failure,
    NotFoundError,
    Result,
    ReservationValidationError,
    Success,
)
from backend.repository.data_repository import DataRepository
from backend.repository.hotel_store import HotelStore
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def validate_room_availability(
    store: HotelStore,
    hotel: HotelContext,
    room_id: int,
    check_in: date,
    check_out: date,
    *,
    exclude_reservation_id: Optional[int] = None,
    enforce: bool = True,
) -> Result[RoomCategory]:
    """Decide whether ``room_id`` can hold ``[check_in, check_out)``.

    Returns the room category on success so callers can keep the
    reservation's ``room_category`` in sync with the assigned room.
    """
    room = store.get_room(hotel.hotel_id, room_id)
    if room is None:
        return Failure(NotFoundError(f"Room {room_id} not found"))

    if not enforce:
        return Success(room.category)

    if is_room_blocked(room.status):
        return Failure(
            AvailabilityConflictError(
                f"Room {room.number} is unavailable ({room.status.value.lower()})"
            )
        )

    excluded = [exclude_reservation_id] if exclude_reservation_id is not None else []
    conflicts = store.count_overlapping_reservations(
        hotel.hotel_id,
        room.room_id,
        check_in,
        check_out,
        exclude_reservation_ids=excluded,
    )
    if conflicts > 0:
        return Failure(
            AvailabilityConflictError(
                f"Room {room.number} is already booked for the requested period"
            )
        )
    return Success(room.category)


def get_category_availability(
    store: HotelStore,
    hotel: HotelContext,
    category: RoomCategory,
    check_in: date,
    check_out: date,
    *,
    exclude_reservation_id: Optional[int] = None,
) -> CategoryAvailability:
    """Estimate free capacity of a category; no specific room is reserved."""
    total_rooms = store.count_active_rooms_in_category(hotel.hotel_id, category)
    reserved_rooms = store.count_category_reservations(
        hotel.hotel_id,
        category,
        check_in,
        check_out,
        exclude_reservation_id=exclude_reservation_id,
    )
    return CategoryAvailability(
        total_rooms=total_rooms,
        reserved_rooms=reserved_rooms,
        available_rooms=max(0, total_rooms - reserved_rooms),
    )


def _validate_window(check_in: date, check_out: date) -> Optional[Failure]:
    if check_out <= check_in:
        return Failure(ReservationValidationError("check_out must be after check_in"))
    return None


class AvailabilityService:
    """Read-only availability queries for HTTP callers."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def check_room(
        self,
        hotel: HotelContext,
        room_id: int,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[int] = None,
    ) -> Result[RoomCategory]:
        invalid = _validate_window(check_in, check_out)
        if invalid is not None:
            return invalid
        with self._repository.session() as store:
            return validate_room_availability(
                store,
                hotel,
                room_id,
                check_in,
                check_out,
                exclude_reservation_id=exclude_reservation_id,
                enforce=True,
            )

    def check_category(
        self,
        hotel: HotelContext,
        category: RoomCategory,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[int] = None,
    ) -> Result[CategoryAvailability]:
        invalid = _validate_window(check_in, check_out)
        if invalid is not None:
            return invalid
        with self._repository.session() as store:
            availability = get_category_availability(
                store,
                hotel,
                category,
                check_in,
                check_out,
                exclude_reservation_id=exclude_reservation_id,
            )
        return Success(availability)

    def get_reservation_ledger(
        self,
        hotel: HotelContext,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> ReservationLedger:
        """Rooms plus assigned, non-canceled stays intersecting ``[start, end]``."""
        range_start = start or datetime.now(timezone.utc).date()
        range_end = end or range_start + timedelta(days=self._settings.ledger_default_days - 1)
        if range_end < range_start:
            range_end = range_start

        with self._repository.session() as store:
            rooms = store.list_rooms(hotel.hotel_id)
            entries = store.list_ledger_entries(
                hotel.hotel_id,
                range_start,
                range_end + timedelta(days=1),
            )
        logger.debug(
            "Ledger loaded | hotel_id=%s | start=%s | end=%s | reservations=%s",
            hotel.hotel_id,
            range_start,
            range_end,
            len(entries),
        )
        return ReservationLedger(
            start=range_start,
            end=range_end,
            rooms=rooms,
            reservations=entries,
        )

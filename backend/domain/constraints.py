"""Domain-level booking rules shared by every allocation path."""

from __future__ import annotations

from datetime import date

from backend.domain.models import ReservationStatus, RoomStatus


BLOCKED_ROOM_STATUSES = frozenset({RoomStatus.MAINTENANCE, RoomStatus.OUT_OF_SERVICE})
BLOCKING_RESERVATION_STATUSES = frozenset(
    {ReservationStatus.BOOKED, ReservationStatus.CHECKED_IN}
)
SWAP_ALLOWED_STATUSES = BLOCKING_RESERVATION_STATUSES
ROOM_REQUIRED_STATUSES = frozenset(
    {ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT}
)


def should_enforce_availability(status: ReservationStatus) -> bool:
    """Only statuses that hold the room going forward are conflict-checked."""
    return status in BLOCKING_RESERVATION_STATUSES


def is_room_blocked(status: RoomStatus) -> bool:
    return status in BLOCKED_ROOM_STATUSES


def intervals_overlap(
    first_start: date,
    first_end: date,
    second_start: date,
    second_end: date,
) -> bool:
    """Half-open interval overlap: a stay ending on a day frees that day."""
    return first_start < second_end and second_start < first_end


def validate_stay_window(check_in: date, check_out: date) -> None:
    if check_out <= check_in:
        raise ValueError("check_out must be after check_in")


def validate_party(adults: int, children: int) -> None:
    if adults < 1:
        raise ValueError("adults must be at least 1")
    if children < 0:
        raise ValueError("children must not be negative")

"""Room status derived from reservation status transitions."""

from __future__ import annotations

from typing import Optional

from backend.domain.models import ReservationStatus, RoomStatus


_ROOM_STATUS_BY_RESERVATION_STATUS: dict[ReservationStatus, RoomStatus] = {
    ReservationStatus.CHECKED_IN: RoomStatus.OCCUPIED,
    ReservationStatus.CHECKED_OUT: RoomStatus.AVAILABLE,
    ReservationStatus.CANCELED: RoomStatus.AVAILABLE,
    ReservationStatus.NO_SHOW: RoomStatus.AVAILABLE,
}


def resolve_room_status(status: ReservationStatus) -> Optional[RoomStatus]:
    """Return the room status a reservation status implies, or ``None`` for no write.

    BOOKED leaves the room untouched.
    """
    return _ROOM_STATUS_BY_RESERVATION_STATUS.get(status)


def resolve_room_status_after_swap(
    incoming: ReservationStatus,
    outgoing: ReservationStatus,
) -> Optional[RoomStatus]:
    """Room status after a cross-room swap.

    ``incoming`` is the status of the reservation moving into the room and
    ``outgoing`` the status of the one leaving it. A room losing its
    checked-in guest is freed unless the incoming guest is checked in too.
    """
    resolved = resolve_room_status(incoming)
    if resolved is not None:
        return resolved
    if outgoing == ReservationStatus.CHECKED_IN:
        return RoomStatus.AVAILABLE
    return None

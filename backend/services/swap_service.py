"""Atomic exchange of rooms and dates between two reservations."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Optional

from backend.domain.constraints import (
    SWAP_ALLOWED_STATUSES,
    is_room_blocked,
    should_enforce_availability,
)
from backend.domain.models import HotelContext, Reservation, Room, SwapOutcome
from backend.domain.results import (
    AvailabilityConflictError,
    Failure,
    NotFoundError,
    Result,
    ReservationValidationError,
    Success,
)
from backend.domain.room_state import resolve_room_status_after_swap
from backend.repository.data_repository import DataRepository
from backend.repository.hotel_store import HotelStore
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

SWAP_NOTE = "Reservation swap."


def _load_swappable(
    store: HotelStore,
    hotel: HotelContext,
    reservation_id: int,
) -> Result[Reservation]:
    reservation = store.get_reservation(hotel.hotel_id, reservation_id)
    if reservation is None:
        return Failure(NotFoundError(f"Reservation {reservation_id} not found"))
    if reservation.room_id is None:
        return Failure(
            ReservationValidationError(f"Reservation {reservation_id} has no room assigned")
        )
    if reservation.status not in SWAP_ALLOWED_STATUSES:
        return Failure(
            ReservationValidationError(
                f"Reservation {reservation_id} cannot be swapped while {reservation.status.value}"
            )
        )
    return Success(reservation)


def _check_destination(
    store: HotelStore,
    hotel: HotelContext,
    moved: Reservation,
    destination: Room,
    excluded: list[int],
    role: str,
) -> Optional[Failure]:
    if should_enforce_availability(moved.status) and is_room_blocked(destination.status):
        return Failure(
            AvailabilityConflictError(
                f"{role} room {destination.number} is unavailable "
                f"({destination.status.value.lower()})"
            )
        )
    conflicts = store.count_overlapping_reservations(
        hotel.hotel_id,
        destination.room_id,
        moved.check_in,
        moved.check_out,
        exclude_reservation_ids=excluded,
    )
    if conflicts > 0:
        return Failure(
            AvailabilityConflictError(
                f"{role} room {destination.number} has a conflicting reservation "
                "for the requested period"
            )
        )
    return None


class SwapReconciler:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def swap_reservations(
        self,
        hotel: HotelContext,
        primary_id: int,
        target_id: int,
        requested_check_in: date,
        requested_check_out: date,
    ) -> Result[SwapOutcome]:
        """Swap two reservations inside one transaction.

        Two reservations sharing a room exchange their dates. Otherwise the
        primary moves into the target's room with the requested dates and the
        target moves into the primary's former room keeping its own dates.
        """
        if primary_id == target_id:
            return Failure(ReservationValidationError("Cannot swap a reservation with itself"))
        if requested_check_out <= requested_check_in:
            return Failure(ReservationValidationError("check_out must be after check_in"))

        def body(store: HotelStore) -> Result[SwapOutcome]:
            loaded_primary = _load_swappable(store, hotel, primary_id)
            if isinstance(loaded_primary, Failure):
                return loaded_primary
            loaded_target = _load_swappable(store, hotel, target_id)
            if isinstance(loaded_target, Failure):
                return loaded_target
            primary = loaded_primary.value
            target = loaded_target.value

            primary_room = store.get_room(hotel.hotel_id, primary.room_id)
            if primary_room is None:
                return Failure(NotFoundError(f"Room {primary.room_id} not found"))
            target_room = store.get_room(hotel.hotel_id, target.room_id)
            if target_room is None:
                return Failure(NotFoundError(f"Room {target.room_id} not found"))

            same_room = primary_room.room_id == target_room.room_id
            if same_room:
                moved_primary = replace(
                    primary,
                    check_in=target.check_in,
                    check_out=target.check_out,
                )
                moved_target = replace(
                    target,
                    check_in=primary.check_in,
                    check_out=primary.check_out,
                )
            else:
                moved_primary = replace(
                    primary,
                    room_id=target_room.room_id,
                    room_category=target_room.category,
                    check_in=requested_check_in,
                    check_out=requested_check_out,
                )
                moved_target = replace(
                    target,
                    room_id=primary_room.room_id,
                    room_category=primary_room.category,
                )

            excluded = [primary.reservation_id, target.reservation_id]
            for moved, destination, role in (
                (moved_primary, target_room, "Target"),
                (moved_target, primary_room, "Primary"),
            ):
                rejected = _check_destination(store, hotel, moved, destination, excluded, role)
                if rejected is not None:
                    return rejected

            for moved in (moved_primary, moved_target):
                store.save_reservation(moved)
                store.upsert_usage_log(
                    reservation_id=moved.reservation_id,
                    room_id=moved.room_id,
                    started_at=moved.check_in,
                    ended_at=moved.check_out,
                    note=SWAP_NOTE,
                    annotate_existing=True,
                )
                store.repoint_digital_keys(moved.reservation_id, moved.room_id)

            if not same_room:
                room_updates = (
                    (primary_room, resolve_room_status_after_swap(target.status, primary.status)),
                    (target_room, resolve_room_status_after_swap(primary.status, target.status)),
                )
                for room, next_status in room_updates:
                    if next_status is not None:
                        store.set_room_status(room.room_id, next_status)

            return Success(
                SwapOutcome(primary=moved_primary, target=moved_target, same_room=same_room)
            )

        result = self._repository.run_in_transaction(body, label="swap")
        if isinstance(result, Success):
            logger.info(
                "Reservations swapped | hotel_id=%s | primary_id=%s | target_id=%s | same_room=%s",
                hotel.hotel_id,
                primary_id,
                target_id,
                result.value.same_room,
            )
        return result

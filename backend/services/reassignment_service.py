"""Room status changes and maintenance reassignment planning.

Taking a room out of service relocates every active reservation on it to an
equivalent room inside the same transaction that writes the new status.
Planning is pure: it works on preloaded candidates and their booked
intervals, and the chosen strategy decides placements.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Mapping, Optional, Protocol, Sequence

from backend.domain.constraints import intervals_overlap, is_room_blocked
from backend.domain.models import (
    HotelContext,
    Reservation,
    ReservationStatus,
    Room,
    RoomStatus,
    RoomStatusChange,
)
from backend.domain.results import (
    AvailabilityConflictError,
    Failure,
    NotFoundError,
    Result,
    Success,
)
from backend.repository.data_repository import DataRepository
from backend.repository.hotel_store import HotelStore
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

MAINTENANCE_NOTE = "Reassigned for maintenance."

Interval = tuple[date, date]


@dataclass(frozen=True)
class ReassignmentProblem:
    """Reservations to relocate (in check-in order) and where they may go."""

    reservations: Sequence[Reservation]
    candidates: Sequence[Room]
    booked_intervals: Mapping[int, Sequence[Interval]]


@dataclass
class ReassignmentPlan:
    assignments: dict[int, Room] = field(default_factory=dict)
    unplaced: list[Reservation] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.unplaced


class RoomMatchingStrategy(Protocol):
    name: str

    def plan(self, problem: ReassignmentProblem) -> ReassignmentPlan:
        ...


def can_host(
    reservation: Reservation,
    candidate: Room,
    occupied_room_ids: set[int],
    booked: Sequence[Interval],
) -> bool:
    """Whether ``candidate`` can take ``reservation`` given what is already placed there."""
    if reservation.status == ReservationStatus.CHECKED_IN:
        if candidate.status != RoomStatus.AVAILABLE or candidate.room_id in occupied_room_ids:
            return False
    if candidate.max_guests < reservation.party_size:
        return False
    return not any(
        intervals_overlap(reservation.check_in, reservation.check_out, start, end)
        for start, end in booked
    )


class FirstFitStrategy:
    """Place each reservation in the lowest-numbered room that fits."""

    name = "first_fit"

    def plan(self, problem: ReassignmentProblem) -> ReassignmentPlan:
        booked = {
            candidate.room_id: list(problem.booked_intervals.get(candidate.room_id, ()))
            for candidate in problem.candidates
        }
        occupied: set[int] = set()
        plan = ReassignmentPlan()
        for reservation in problem.reservations:
            chosen = next(
                (
                    candidate
                    for candidate in problem.candidates
                    if can_host(reservation, candidate, occupied, booked[candidate.room_id])
                ),
                None,
            )
            if chosen is None:
                plan.unplaced.append(reservation)
                continue
            plan.assignments[reservation.reservation_id] = chosen
            booked[chosen.room_id].append((reservation.check_in, reservation.check_out))
            if reservation.status == ReservationStatus.CHECKED_IN:
                occupied.add(chosen.room_id)
        return plan


def build_strategy(settings: Settings) -> RoomMatchingStrategy:
    name = settings.reassignment_strategy
    if name == FirstFitStrategy.name:
        return FirstFitStrategy()
    if name == "cp_sat":
        from backend.services.reassignment_solver import CpSatReassignmentStrategy

        return CpSatReassignmentStrategy(settings)
    raise ValueError(f"Unknown reassignment strategy: {name}")


def reassign_for_maintenance(
    store: HotelStore,
    hotel: HotelContext,
    room_id: int,
    today: date,
    strategy: RoomMatchingStrategy,
) -> Result[int]:
    """Move every active future stay off ``room_id``; returns the moved count.

    Must run on a store bound to an open transaction: a ``Failure`` leaves
    partial writes for the caller's rollback to discard.
    """
    room = store.get_room(hotel.hotel_id, room_id)
    if room is None:
        return Failure(NotFoundError(f"Room {room_id} not found"))

    reservations = store.list_active_reservations_for_room(hotel.hotel_id, room.room_id, today)
    if not reservations:
        return Success(0)

    candidates = store.list_reassignment_candidates(room)
    problem = ReassignmentProblem(
        reservations=reservations,
        candidates=candidates,
        booked_intervals=store.list_blocking_intervals(
            hotel.hotel_id,
            [candidate.room_id for candidate in candidates],
        ),
    )
    plan = strategy.plan(problem)
    if not plan.complete:
        stranded = plan.unplaced[0]
        logger.info(
            "Reassignment infeasible | hotel_id=%s | room_id=%s | strategy=%s | unplaced=%s",
            hotel.hotel_id,
            room.room_id,
            strategy.name,
            [reservation.reservation_id for reservation in plan.unplaced],
        )
        return Failure(
            AvailabilityConflictError(
                f"No equivalent room available to relocate reservation "
                f"{stranded.reservation_id} from room {room.number}"
            )
        )

    for reservation in reservations:
        destination = plan.assignments[reservation.reservation_id]
        store.save_reservation(
            replace(reservation, room_id=destination.room_id, room_category=room.category)
        )
        store.upsert_usage_log(
            reservation_id=reservation.reservation_id,
            room_id=destination.room_id,
            started_at=reservation.check_in,
            ended_at=reservation.check_out,
            note=MAINTENANCE_NOTE,
            annotate_existing=True,
        )
        store.repoint_digital_keys(reservation.reservation_id, destination.room_id)
        if reservation.status == ReservationStatus.CHECKED_IN:
            store.set_room_status(destination.room_id, RoomStatus.OCCUPIED)
        logger.debug(
            "Reservation relocated | reservation_id=%s | from_room=%s | to_room=%s",
            reservation.reservation_id,
            room.number,
            destination.number,
        )
    return Success(len(reservations))


class RoomService:
    """Writes room status, relocating guests first when the room gets blocked."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        strategy: Optional[RoomMatchingStrategy] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._strategy = strategy or build_strategy(self._settings)

    def update_room_status(
        self,
        hotel: HotelContext,
        room_id: int,
        status: RoomStatus,
        today: Optional[date] = None,
    ) -> Result[RoomStatusChange]:
        as_of = today or datetime.now(timezone.utc).date()

        def body(store: HotelStore) -> Result[RoomStatusChange]:
            if store.get_room(hotel.hotel_id, room_id) is None:
                return Failure(NotFoundError(f"Room {room_id} not found"))
            moved = 0
            if is_room_blocked(status):
                reassigned = reassign_for_maintenance(
                    store, hotel, room_id, as_of, self._strategy
                )
                if isinstance(reassigned, Failure):
                    return reassigned
                moved = reassigned.value
            store.set_room_status(room_id, status)
            return Success(RoomStatusChange(room_id=room_id, status=status, moved=moved))

        result = self._repository.run_in_transaction(body, label="room-status")
        if isinstance(result, Success):
            logger.info(
                "Room status updated | hotel_id=%s | room_id=%s | status=%s | moved=%s | strategy=%s",
                hotel.hotel_id,
                room_id,
                status.value,
                result.value.moved,
                self._strategy.name,
            )
        return result

from __future__ import annotations

from dataclasses import replace
from datetime import date

from backend.domain.models import (
    HotelContext,
    PaymentStatus,
    ReservationDraft,
    ReservationStatus,
    RoomStatus,
)
from backend.domain.results import (
    AvailabilityConflictError,
    Failure,
    NotFoundError,
    ReservationValidationError,
    Success,
    TransactionAbortedError,
)
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import CREATED_NOTE, ReservationAllocator
from backend.services.swap_service import SWAP_NOTE, SwapReconciler
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename)


def _build_services(tmp_path, filename: str):
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    hotel_id = repository.create_hotel("seaside", "Seaside Hotel")
    guest_id = repository.create_guest(hotel_id, "Ana", "Souza")
    allocator = ReservationAllocator(repository=repository, settings=settings)
    reconciler = SwapReconciler(repository=repository, settings=settings)
    return reconciler, allocator, repository, HotelContext(hotel_id), guest_id


def _book(allocator, hotel, guest_id, room_id, check_in, check_out, **overrides):
    result = allocator.create_reservation(
        hotel,
        ReservationDraft(
            guest_id=guest_id,
            room_id=room_id,
            check_in=check_in,
            check_out=check_out,
            **overrides,
        ),
    )
    assert isinstance(result, Success), result
    return result.value


def test_cross_room_swap_moves_primary_with_requested_dates(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "cross_room.db")
    first_room = repository.create_room(hotel.hotel_id, "101")
    second_room = repository.create_room(hotel.hotel_id, "102")
    primary = _book(allocator, hotel, guest_id, first_room, date(2024, 1, 1), date(2024, 1, 5))
    target = _book(allocator, hotel, guest_id, second_room, date(2024, 1, 2), date(2024, 1, 6))

    result = reconciler.swap_reservations(
        hotel,
        primary.reservation_id,
        target.reservation_id,
        date(2024, 1, 3),
        date(2024, 1, 7),
    )

    assert isinstance(result, Success)
    assert result.value.same_room is False
    with repository.session() as store:
        moved_primary = store.get_reservation(hotel.hotel_id, primary.reservation_id)
        moved_target = store.get_reservation(hotel.hotel_id, target.reservation_id)
        primary_log = store.get_usage_log(primary.reservation_id)
        target_log = store.get_usage_log(target.reservation_id)
    assert moved_primary.room_id == second_room
    assert (moved_primary.check_in, moved_primary.check_out) == (date(2024, 1, 3), date(2024, 1, 7))
    assert moved_target.room_id == first_room
    assert (moved_target.check_in, moved_target.check_out) == (date(2024, 1, 2), date(2024, 1, 6))
    assert primary_log.room_id == second_room
    assert primary_log.started_at == date(2024, 1, 3)
    assert primary_log.note == f"{CREATED_NOTE} | {SWAP_NOTE}"
    assert target_log.room_id == first_room


def test_same_room_swap_exchanges_dates_only(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "same_room.db")
    room_id = repository.create_room(hotel.hotel_id, "101")
    primary = _book(allocator, hotel, guest_id, room_id, date(2024, 1, 1), date(2024, 1, 3))
    target = _book(allocator, hotel, guest_id, room_id, date(2024, 1, 5), date(2024, 1, 8))

    result = reconciler.swap_reservations(
        hotel,
        primary.reservation_id,
        target.reservation_id,
        date(2024, 2, 1),
        date(2024, 2, 2),
    )

    assert isinstance(result, Success)
    outcome = result.value
    assert outcome.same_room is True
    assert outcome.primary.room_id == room_id
    assert outcome.target.room_id == room_id
    assert (outcome.primary.check_in, outcome.primary.check_out) == (date(2024, 1, 5), date(2024, 1, 8))
    assert (outcome.target.check_in, outcome.target.check_out) == (date(2024, 1, 1), date(2024, 1, 3))


def test_conflicting_swap_rolls_back_everything(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "conflict.db")
    first_room = repository.create_room(hotel.hotel_id, "101")
    second_room = repository.create_room(hotel.hotel_id, "102")
    primary = _book(allocator, hotel, guest_id, first_room, date(2024, 1, 1), date(2024, 1, 5))
    target = _book(allocator, hotel, guest_id, second_room, date(2024, 1, 2), date(2024, 1, 6))
    _book(allocator, hotel, guest_id, second_room, date(2024, 1, 10), date(2024, 1, 12))

    result = reconciler.swap_reservations(
        hotel,
        primary.reservation_id,
        target.reservation_id,
        date(2024, 1, 9),
        date(2024, 1, 11),
    )

    assert isinstance(result, Failure)
    assert isinstance(result.error, TransactionAbortedError)
    assert isinstance(result.error.cause, AvailabilityConflictError)
    assert "Target room 102" in result.message
    with repository.session() as store:
        assert store.get_reservation(hotel.hotel_id, primary.reservation_id) == primary
        assert store.get_reservation(hotel.hotel_id, target.reservation_id) == target
        assert store.get_usage_log(primary.reservation_id).note == CREATED_NOTE


def test_swap_into_blocked_room_is_aborted(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "blocked.db")
    first_room = repository.create_room(hotel.hotel_id, "101")
    second_room = repository.create_room(hotel.hotel_id, "102")
    primary = _book(allocator, hotel, guest_id, first_room, date(2024, 1, 1), date(2024, 1, 5))
    target = _book(allocator, hotel, guest_id, second_room, date(2024, 1, 2), date(2024, 1, 6))
    with repository.session() as store:
        store.set_room_status(second_room, RoomStatus.MAINTENANCE)

    result = reconciler.swap_reservations(
        hotel,
        primary.reservation_id,
        target.reservation_id,
        date(2024, 1, 1),
        date(2024, 1, 5),
    )

    assert isinstance(result, Failure)
    assert result.message == "Target room 102 is unavailable (maintenance)"


def test_checked_in_swap_moves_occupancy(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "occupancy.db")
    first_room = repository.create_room(hotel.hotel_id, "101")
    second_room = repository.create_room(hotel.hotel_id, "102")
    primary = _book(
        allocator,
        hotel,
        guest_id,
        first_room,
        date(2024, 1, 1),
        date(2024, 1, 5),
        status=ReservationStatus.CHECKED_IN,
    )
    target = _book(allocator, hotel, guest_id, second_room, date(2024, 1, 10), date(2024, 1, 12))

    result = reconciler.swap_reservations(
        hotel,
        primary.reservation_id,
        target.reservation_id,
        date(2024, 1, 1),
        date(2024, 1, 5),
    )

    assert isinstance(result, Success)
    with repository.session() as store:
        assert store.get_room(hotel.hotel_id, first_room).status == RoomStatus.AVAILABLE
        assert store.get_room(hotel.hotel_id, second_room).status == RoomStatus.OCCUPIED


def test_swap_repoints_digital_keys(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "keys.db")
    first_room = repository.create_room(hotel.hotel_id, "101")
    second_room = repository.create_room(hotel.hotel_id, "102")
    primary = _book(
        allocator,
        hotel,
        guest_id,
        first_room,
        date(2024, 1, 1),
        date(2024, 1, 5),
        payment_status=PaymentStatus.PAID,
    )
    target = _book(allocator, hotel, guest_id, second_room, date(2024, 1, 2), date(2024, 1, 6))

    result = reconciler.swap_reservations(
        hotel,
        primary.reservation_id,
        target.reservation_id,
        date(2024, 1, 1),
        date(2024, 1, 5),
    )

    assert isinstance(result, Success)
    with repository.session() as store:
        keys = store.list_digital_keys(primary.reservation_id)
    assert [key.room_id for key in keys] == [second_room]


def test_swap_with_itself_is_rejected_before_transaction(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "self_swap.db")
    room_id = repository.create_room(hotel.hotel_id, "101")
    primary = _book(allocator, hotel, guest_id, room_id, date(2024, 1, 1), date(2024, 1, 5))

    result = reconciler.swap_reservations(
        hotel,
        primary.reservation_id,
        primary.reservation_id,
        date(2024, 1, 1),
        date(2024, 1, 5),
    )

    assert isinstance(result, Failure)
    assert isinstance(result.error, ReservationValidationError)


def test_swap_with_missing_reservation_is_aborted(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "missing.db")
    room_id = repository.create_room(hotel.hotel_id, "101")
    primary = _book(allocator, hotel, guest_id, room_id, date(2024, 1, 1), date(2024, 1, 5))

    result = reconciler.swap_reservations(
        hotel, primary.reservation_id, 999, date(2024, 1, 1), date(2024, 1, 5)
    )

    assert isinstance(result, Failure)
    assert isinstance(result.error, TransactionAbortedError)
    assert isinstance(result.error.cause, NotFoundError)


def test_unassigned_or_finished_reservations_cannot_swap(tmp_path):
    reconciler, allocator, repository, hotel, guest_id = _build_services(tmp_path, "ineligible.db")
    room_id = repository.create_room(hotel.hotel_id, "101")
    primary = _book(allocator, hotel, guest_id, room_id, date(2024, 1, 1), date(2024, 1, 5))
    unassigned = repository.insert_reservation(
        hotel.hotel_id, guest_id, date(2024, 1, 2), date(2024, 1, 4)
    )
    finished = repository.insert_reservation(
        hotel.hotel_id,
        guest_id,
        date(2023, 12, 1),
        date(2023, 12, 3),
        room_id=room_id,
        status=ReservationStatus.CHECKED_OUT,
    )

    for other in (unassigned, finished):
        result = reconciler.swap_reservations(
            hotel, primary.reservation_id, other, date(2024, 1, 1), date(2024, 1, 5)
        )
        assert isinstance(result, Failure)
        assert isinstance(result.error.cause, ReservationValidationError)

from __future__ import annotations

from dataclasses import replace
from datetime import date

from backend.domain.models import (
    HotelContext,
    ReservationStatus,
    RoomCategory,
    RoomStatus,
)
from backend.domain.results import (
    AvailabilityConflictError,
    Failure,
    NotFoundError,
    ReservationValidationError,
    Success,
)
from backend.repository.data_repository import DataRepository
from backend.services.availability_service import AvailabilityService
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename)


def _build_repository(tmp_path, filename: str) -> tuple[DataRepository, HotelContext, int]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    hotel_id = repository.create_hotel("seaside", "Seaside Hotel")
    guest_id = repository.create_guest(hotel_id, "Ana", "Souza", "ana@example.com")
    return repository, HotelContext(hotel_id), guest_id


def test_room_with_overlapping_booking_is_rejected(tmp_path):
    repository, hotel, guest_id = _build_repository(tmp_path, "room_overlap.db")
    room_id = repository.create_room(hotel.hotel_id, "101")
    repository.insert_reservation(
        hotel.hotel_id, guest_id, date(2024, 1, 1), date(2024, 1, 5), room_id=room_id
    )
    service = AvailabilityService(repository=repository)

    result = service.check_room(hotel, room_id, date(2024, 1, 3), date(2024, 1, 6))

    assert isinstance(result, Failure)
    assert isinstance(result.error, AvailabilityConflictError)
    assert result.message == "Room 101 is already booked for the requested period"


def test_back_to_back_booking_is_available(tmp_path):
    repository, hotel, guest_id = _build_repository(tmp_path, "back_to_back.db")
    room_id = repository.create_room(hotel.hotel_id, "101", category=RoomCategory.DELUXE)
    repository.insert_reservation(
        hotel.hotel_id, guest_id, date(2024, 1, 1), date(2024, 1, 5), room_id=room_id
    )
    service = AvailabilityService(repository=repository)

    result = service.check_room(hotel, room_id, date(2024, 1, 5), date(2024, 1, 7))

    assert isinstance(result, Success)
    assert result.value == RoomCategory.DELUXE


def test_non_blocking_reservations_do_not_conflict(tmp_path):
    repository, hotel, guest_id = _build_repository(tmp_path, "non_blocking.db")
    room_id = repository.create_room(hotel.hotel_id, "101")
    for status in (
        ReservationStatus.CANCELED,
        ReservationStatus.CHECKED_OUT,
        ReservationStatus.NO_SHOW,
    ):
        repository.insert_reservation(
            hotel.hotel_id,
            guest_id,
            date(2024, 1, 1),
            date(2024, 1, 5),
            room_id=room_id,
            status=status,
        )
    service = AvailabilityService(repository=repository)

    assert service.check_room(hotel, room_id, date(2024, 1, 2), date(2024, 1, 4)).ok


def test_excluded_reservation_does_not_conflict_with_itself(tmp_path):
    repository, hotel, guest_id = _build_repository(tmp_path, "exclude_self.db")
    room_id = repository.create_room(hotel.hotel_id, "101")
    reservation_id = repository.insert_reservation(
        hotel.hotel_id, guest_id, date(2024, 1, 1), date(2024, 1, 5), room_id=room_id
    )
    service = AvailabilityService(repository=repository)

    result = service.check_room(
        hotel,
        room_id,
        date(2024, 1, 2),
        date(2024, 1, 6),
        exclude_reservation_id=reservation_id,
    )

    assert isinstance(result, Success)


def test_blocked_room_is_unavailable(tmp_path):
    repository, hotel, _ = _build_repository(tmp_path, "blocked_room.db")
    room_id = repository.create_room(hotel.hotel_id, "305", status=RoomStatus.MAINTENANCE)
    service = AvailabilityService(repository=repository)

    result = service.check_room(hotel, room_id, date(2024, 2, 1), date(2024, 2, 3))

    assert isinstance(result, Failure)
    assert isinstance(result.error, AvailabilityConflictError)
    assert "Room 305 is unavailable" in result.message


def test_room_from_another_hotel_is_not_found(tmp_path):
    repository, hotel, _ = _build_repository(tmp_path, "other_hotel.db")
    other_hotel_id = repository.create_hotel("mountain", "Mountain Lodge")
    foreign_room_id = repository.create_room(other_hotel_id, "101")
    service = AvailabilityService(repository=repository)

    result = service.check_room(hotel, foreign_room_id, date(2024, 2, 1), date(2024, 2, 3))

    assert isinstance(result, Failure)
    assert isinstance(result.error, NotFoundError)


def test_inverted_window_is_a_validation_failure(tmp_path):
    repository, hotel, _ = _build_repository(tmp_path, "inverted_window.db")
    room_id = repository.create_room(hotel.hotel_id, "101")
    service = AvailabilityService(repository=repository)

    result = service.check_room(hotel, room_id, date(2024, 2, 3), date(2024, 2, 3))

    assert isinstance(result, Failure)
    assert isinstance(result.error, ReservationValidationError)


def test_room_check_is_idempotent(tmp_path):
    repository, hotel, guest_id = _build_repository(tmp_path, "idempotent.db")
    free_room = repository.create_room(hotel.hotel_id, "101")
    busy_room = repository.create_room(hotel.hotel_id, "102")
    repository.insert_reservation(
        hotel.hotel_id, guest_id, date(2024, 3, 1), date(2024, 3, 4), room_id=busy_room
    )
    service = AvailabilityService(repository=repository)

    for room_id in (free_room, busy_room):
        first = service.check_room(hotel, room_id, date(2024, 3, 2), date(2024, 3, 5))
        second = service.check_room(hotel, room_id, date(2024, 3, 2), date(2024, 3, 5))
        assert type(first) is type(second)
        assert first.ok == second.ok
        if isinstance(first, Failure):
            assert first.message == second.message
        else:
            assert first.value == second.value


def test_full_category_reports_no_available_rooms(tmp_path):
    repository, hotel, guest_id = _build_repository(tmp_path, "full_category.db")
    for number in ("101", "102", "103"):
        repository.create_room(hotel.hotel_id, number, category=RoomCategory.STANDARD)
    for _ in range(3):
        repository.insert_reservation(
            hotel.hotel_id,
            guest_id,
            date(2024, 4, 1),
            date(2024, 4, 4),
            room_category=RoomCategory.STANDARD,
        )
    service = AvailabilityService(repository=repository)

    result = service.check_category(
        hotel, RoomCategory.STANDARD, date(2024, 4, 2), date(2024, 4, 3)
    )

    assert isinstance(result, Success)
    assert result.value.total_rooms == 3
    assert result.value.reserved_rooms == 3
    assert result.value.available_rooms == 0


def test_category_capacity_ignores_blocked_rooms(tmp_path):
    repository, hotel, guest_id = _build_repository(tmp_path, "category_blocked.db")
    repository.create_room(hotel.hotel_id, "201", category=RoomCategory.DELUXE)
    repository.create_room(
        hotel.hotel_id,
        "202",
        category=RoomCategory.DELUXE,
        status=RoomStatus.OUT_OF_SERVICE,
    )
    repository.insert_reservation(
        hotel.hotel_id,
        guest_id,
        date(2024, 4, 1),
        date(2024, 4, 4),
        room_category=RoomCategory.DELUXE,
    )
    service = AvailabilityService(repository=repository)

    result = service.check_category(
        hotel, RoomCategory.DELUXE, date(2024, 4, 1), date(2024, 4, 2)
    )

    assert result.value.total_rooms == 1
    assert result.value.available_rooms == 0


def test_ledger_lists_assigned_stays_in_range(tmp_path):
    repository, hotel, guest_id = _build_repository(tmp_path, "ledger.db")
    first_room = repository.create_room(hotel.hotel_id, "102")
    second_room = repository.create_room(hotel.hotel_id, "101")
    in_range = repository.insert_reservation(
        hotel.hotel_id, guest_id, date(2024, 5, 2), date(2024, 5, 4), room_id=first_room
    )
    repository.insert_reservation(
        hotel.hotel_id,
        guest_id,
        date(2024, 5, 2),
        date(2024, 5, 4),
        room_id=second_room,
        status=ReservationStatus.CANCELED,
    )
    repository.insert_reservation(
        hotel.hotel_id, guest_id, date(2024, 5, 20), date(2024, 5, 22), room_id=second_room
    )
    repository.insert_reservation(hotel.hotel_id, guest_id, date(2024, 5, 2), date(2024, 5, 3))
    service = AvailabilityService(repository=repository)

    ledger = service.get_reservation_ledger(hotel, start=date(2024, 5, 1), end=date(2024, 5, 7))

    assert [room.number for room in ledger.rooms] == ["101", "102"]
    assert [entry.reservation_id for entry in ledger.reservations] == [in_range]
    assert ledger.reservations[0].guest_name == "Ana Souza"


def test_ledger_clamps_inverted_range(tmp_path):
    repository, hotel, _ = _build_repository(tmp_path, "ledger_clamp.db")
    service = AvailabilityService(repository=repository)

    ledger = service.get_reservation_ledger(hotel, start=date(2024, 5, 10), end=date(2024, 5, 1))

    assert ledger.start == ledger.end == date(2024, 5, 10)

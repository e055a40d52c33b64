from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

pytest.importorskip("ortools")

from backend.domain.models import (
    HotelContext,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    Room,
    RoomCategory,
    RoomStatus,
)
from backend.domain.results import Success
from backend.repository.data_repository import DataRepository
from backend.services.reassignment_service import (
    FirstFitStrategy,
    ReassignmentProblem,
    RoomService,
    build_strategy,
)
from backend.services.reassignment_solver import CpSatReassignmentStrategy
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        reassignment_strategy="cp_sat",
        reassignment_solver_max_time_seconds=5,
        reassignment_cp_sat_workers=1,
        reassignment_solver_random_seed=42,
    )


def _room(room_id: int, number: str, status: RoomStatus = RoomStatus.AVAILABLE) -> Room:
    return Room(
        room_id=room_id,
        hotel_id=1,
        number=number,
        category=RoomCategory.STANDARD,
        status=status,
        max_guests=2,
    )


def _reservation(reservation_id: int, check_in: date, check_out: date, status=ReservationStatus.BOOKED):
    return Reservation(
        reservation_id=reservation_id,
        hotel_id=1,
        room_id=99,
        guest_id=1,
        status=status,
        room_category=RoomCategory.STANDARD,
        check_in=check_in,
        check_out=check_out,
        adults=2,
        children=0,
        payment_status=PaymentStatus.PENDING,
    )


def _greedy_trap() -> ReassignmentProblem:
    # The early stay fits both rooms; the later one only fits the first room.
    return ReassignmentProblem(
        reservations=[
            _reservation(10, date(2024, 1, 1), date(2024, 1, 4)),
            _reservation(11, date(2024, 1, 3), date(2024, 1, 7)),
        ],
        candidates=[_room(1, "102"), _room(2, "103")],
        booked_intervals={1: [], 2: [(date(2024, 1, 5), date(2024, 1, 6))]},
    )


def test_build_strategy_selects_cp_sat(tmp_path):
    strategy = build_strategy(_build_test_settings(tmp_path, "unused.db"))

    assert isinstance(strategy, CpSatReassignmentStrategy)
    assert strategy.name == "cp_sat"


def test_cp_sat_places_where_first_fit_gets_stuck(tmp_path):
    problem = _greedy_trap()
    strategy = CpSatReassignmentStrategy(_build_test_settings(tmp_path, "unused.db"))

    greedy = FirstFitStrategy().plan(problem)
    solved = strategy.plan(problem)

    assert not greedy.complete
    assert solved.complete
    assert solved.assignments[10].room_id == 2
    assert solved.assignments[11].room_id == 1


def test_cp_sat_prefers_lowest_room_numbers(tmp_path):
    problem = ReassignmentProblem(
        reservations=[_reservation(10, date(2024, 1, 1), date(2024, 1, 4))],
        candidates=[_room(1, "102"), _room(2, "103")],
        booked_intervals={1: [], 2: []},
    )
    strategy = CpSatReassignmentStrategy(_build_test_settings(tmp_path, "unused.db"))

    plan = strategy.plan(problem)

    assert plan.assignments[10].room_id == 1


def test_cp_sat_keeps_one_checked_in_guest_per_room(tmp_path):
    problem = ReassignmentProblem(
        reservations=[
            _reservation(10, date(2024, 1, 1), date(2024, 1, 3), ReservationStatus.CHECKED_IN),
            _reservation(11, date(2024, 1, 4), date(2024, 1, 6), ReservationStatus.CHECKED_IN),
        ],
        candidates=[_room(1, "102"), _room(2, "103", status=RoomStatus.OCCUPIED)],
        booked_intervals={1: [], 2: []},
    )
    strategy = CpSatReassignmentStrategy(_build_test_settings(tmp_path, "unused.db"))

    plan = strategy.plan(problem)

    assert not plan.complete
    assert not plan.assignments


def test_cp_sat_reports_reservations_no_room_can_host(tmp_path):
    problem = ReassignmentProblem(
        reservations=[_reservation(10, date(2024, 1, 1), date(2024, 1, 4))],
        candidates=[_room(1, "102")],
        booked_intervals={1: [(date(2024, 1, 2), date(2024, 1, 3))]},
    )
    strategy = CpSatReassignmentStrategy(_build_test_settings(tmp_path, "unused.db"))

    plan = strategy.plan(problem)

    assert [reservation.reservation_id for reservation in plan.unplaced] == [10]


def test_room_service_uses_configured_solver(tmp_path):
    settings = _build_test_settings(tmp_path, "solver_room_service.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    hotel_id = repository.create_hotel("seaside", "Seaside Hotel")
    guest_id = repository.create_guest(hotel_id, "Ana", "Souza")
    hotel = HotelContext(hotel_id)
    source = repository.create_room(hotel_id, "101")
    first_spare = repository.create_room(hotel_id, "102")
    second_spare = repository.create_room(hotel_id, "103")
    repository.insert_reservation(
        hotel_id, guest_id, date(2024, 1, 5), date(2024, 1, 6), room_id=second_spare
    )
    early = repository.insert_reservation(
        hotel_id, guest_id, date(2024, 1, 1), date(2024, 1, 4), room_id=source
    )
    late = repository.insert_reservation(
        hotel_id, guest_id, date(2024, 1, 3), date(2024, 1, 7), room_id=source
    )
    service = RoomService(repository=repository, settings=settings)

    result = service.update_room_status(
        hotel, source, RoomStatus.MAINTENANCE, today=date(2023, 12, 31)
    )

    assert isinstance(result, Success)
    assert result.value.moved == 2
    with repository.session() as store:
        assert store.get_reservation(hotel_id, early).room_id == second_spare
        assert store.get_reservation(hotel_id, late).room_id == first_spare

"""CP-SAT reassignment strategy.

Solves the whole relocation at once, so it finds a placement in cases where
first-fit commits early to a room that a later reservation needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import Any

from ortools.sat.python import cp_model

from backend.domain.constraints import intervals_overlap
from backend.domain.models import Reservation, ReservationStatus, Room
from backend.services.reassignment_service import (
    ReassignmentPlan,
    ReassignmentProblem,
    can_host,
)
from backend.utils.config import Settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ReassignmentModel:
    model: Any
    variables: dict[tuple[int, int], Any]
    unplaceable: list[Reservation]


def build_model(problem: ReassignmentProblem) -> ReassignmentModel:
    """Build a CP-SAT model with one boolean per (reservation, candidate) pair.

    Reservations no candidate can host on its own are reported in
    ``unplaceable`` and left out of the model.
    """
    model = cp_model.CpModel()
    variables: dict[tuple[int, int], cp_model.IntVar] = {}
    unplaceable: list[Reservation] = []
    rank_by_room = {candidate.room_id: rank for rank, candidate in enumerate(problem.candidates)}

    for reservation in problem.reservations:
        options = []
        for candidate in problem.candidates:
            booked = problem.booked_intervals.get(candidate.room_id, ())
            if not can_host(reservation, candidate, set(), booked):
                continue
            pair = (reservation.reservation_id, candidate.room_id)
            variables[pair] = model.NewBoolVar(
                f"x_res_{reservation.reservation_id}_room_{candidate.room_id}"
            )
            options.append(variables[pair])
        if options:
            model.AddExactlyOne(options)
        else:
            unplaceable.append(reservation)

    for candidate in problem.candidates:
        for first, second in combinations(problem.reservations, 2):
            if not intervals_overlap(
                first.check_in, first.check_out, second.check_in, second.check_out
            ):
                continue
            first_var = variables.get((first.reservation_id, candidate.room_id))
            second_var = variables.get((second.reservation_id, candidate.room_id))
            if first_var is not None and second_var is not None:
                model.Add(first_var + second_var <= 1)

        checked_in_vars = [
            variables[(reservation.reservation_id, candidate.room_id)]
            for reservation in problem.reservations
            if reservation.status == ReservationStatus.CHECKED_IN
            and (reservation.reservation_id, candidate.room_id) in variables
        ]
        if len(checked_in_vars) > 1:
            model.Add(sum(checked_in_vars) <= 1)

    if variables:
        model.Minimize(
            sum(rank_by_room[room_id] * var for (_, room_id), var in variables.items())
        )
    return ReassignmentModel(model=model, variables=variables, unplaceable=unplaceable)


class CpSatReassignmentStrategy:
    """Global placement preferring low room numbers."""

    name = "cp_sat"

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def plan(self, problem: ReassignmentProblem) -> ReassignmentPlan:
        if not problem.reservations:
            return ReassignmentPlan()

        artifacts = build_model(problem)
        if artifacts.unplaceable:
            logger.info(
                "Reassignment skipped solve | unplaceable=%s",
                [reservation.reservation_id for reservation in artifacts.unplaceable],
            )
            return ReassignmentPlan(unplaced=list(artifacts.unplaceable))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = float(
            self._settings.reassignment_solver_max_time_seconds
        )
        solver.parameters.num_search_workers = self._settings.reassignment_cp_sat_workers
        solver.parameters.random_seed = self._settings.reassignment_solver_random_seed

        status = solver.Solve(artifacts.model)
        status_name = solver.StatusName(status)
        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            logger.warning("Reassignment solve failed | status=%s", status_name)
            return ReassignmentPlan(unplaced=list(problem.reservations))

        room_lookup: dict[int, Room] = {
            candidate.room_id: candidate for candidate in problem.candidates
        }
        plan = ReassignmentPlan()
        for (reservation_id, room_id), var in artifacts.variables.items():
            if solver.Value(var) == 1:
                plan.assignments[reservation_id] = room_lookup[room_id]
        plan.unplaced.extend(
            reservation
            for reservation in problem.reservations
            if reservation.reservation_id not in plan.assignments
        )
        logger.info(
            "Reassignment solve completed | status=%s | placed=%s | unplaced=%s",
            status_name,
            len(plan.assignments),
            len(plan.unplaced),
        )
        return plan

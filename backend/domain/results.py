"""Failure taxonomy and success/failure result types for allocation calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union


T = TypeVar("T")


class AllocationError(Exception):
    """Base failure for allocation workflows."""


class ReservationValidationError(AllocationError):
    """Raised when input is malformed or inconsistent before any write."""


class NotFoundError(AllocationError):
    """Raised when a room or reservation is absent in the hotel scope."""


class AvailabilityConflictError(AllocationError):
    """Raised when a room is blocked, double-booked or a category is full."""


class TransactionAbortedError(AllocationError):
    """Raised when an atomic swap or reassignment rolled back."""

    def __init__(self, cause: AllocationError) -> None:
        super().__init__(str(cause))
        self.cause = cause


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: AllocationError

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)


Result = Union[Success[T], Failure]

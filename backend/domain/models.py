"""Domain models for rooms, reservations and their audit records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class RoomCategory(str, Enum):
    STANDARD = "STANDARD"
    DELUXE = "DELUXE"
    SUITE = "SUITE"
    FAMILY = "FAMILY"
    VILLA = "VILLA"
    OTHER = "OTHER"


class RoomStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


class ReservationStatus(str, Enum):
    BOOKED = "BOOKED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELED = "CANCELED"
    NO_SHOW = "NO_SHOW"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


class NotificationType(str, Enum):
    CONFIRMATION = "CONFIRMATION"


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"


class DigitalKeyStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"


@dataclass(frozen=True)
class HotelContext:
    """Tenant scope passed explicitly into every allocation call."""

    hotel_id: int


@dataclass(frozen=True)
class Room:
    room_id: int
    hotel_id: int
    number: str
    category: RoomCategory
    status: RoomStatus
    max_guests: int
    features: Optional[str] = None
    base_rate: Optional[float] = None


@dataclass(frozen=True)
class Reservation:
    reservation_id: int
    hotel_id: int
    room_id: Optional[int]
    guest_id: int
    status: ReservationStatus
    room_category: RoomCategory
    check_in: date
    check_out: date
    adults: int
    children: int
    payment_status: PaymentStatus
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def party_size(self) -> int:
        return self.adults + self.children


@dataclass(frozen=True)
class RoomUsageLog:
    log_id: int
    room_id: int
    reservation_id: Optional[int]
    started_at: date
    ended_at: Optional[date]
    note: Optional[str]


@dataclass(frozen=True)
class DigitalKey:
    key_id: int
    hotel_id: int
    reservation_id: int
    room_id: Optional[int]
    status: DigitalKeyStatus
    key_code: str
    expires_at: date


@dataclass(frozen=True)
class CategoryAvailability:
    total_rooms: int
    reserved_rooms: int
    available_rooms: int


@dataclass(frozen=True)
class ReservationDraft:
    """Input for creating a reservation."""

    guest_id: int
    check_in: date
    check_out: date
    room_id: Optional[int] = None
    status: ReservationStatus = ReservationStatus.BOOKED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    room_category: Optional[RoomCategory] = None
    adults: Optional[int] = None
    children: int = 0
    notes: Optional[str] = None


@dataclass(frozen=True)
class ReservationChanges:
    """Partial update; ``None`` keeps the stored value.

    ``unassign_room`` detaches the current room explicitly since a ``None``
    ``room_id`` means "unchanged".
    """

    room_id: Optional[int] = None
    unassign_room: bool = False
    status: Optional[ReservationStatus] = None
    payment_status: Optional[PaymentStatus] = None
    room_category: Optional[RoomCategory] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class SwapOutcome:
    primary: Reservation
    target: Reservation
    same_room: bool


@dataclass(frozen=True)
class RoomStatusChange:
    room_id: int
    status: RoomStatus
    moved: int


@dataclass(frozen=True)
class LedgerEntry:
    reservation_id: int
    room_id: int
    check_in: date
    check_out: date
    status: ReservationStatus
    guest_name: str


@dataclass(frozen=True)
class ReservationLedger:
    start: date
    end: date
    rooms: list[Room]
    reservations: list[LedgerEntry]

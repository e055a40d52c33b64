"""Hotel-scoped queries executed on a caller-owned SQLite connection."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence

from backend.domain.constraints import (
    BLOCKED_ROOM_STATUSES,
    BLOCKING_RESERVATION_STATUSES,
)
from backend.domain.models import (
    DigitalKey,
    DigitalKeyStatus,
    LedgerEntry,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    Room,
    RoomCategory,
    RoomStatus,
    RoomUsageLog,
)


_BLOCKING = tuple(status.value for status in sorted(BLOCKING_RESERVATION_STATUSES))
_BLOCKED = tuple(status.value for status in sorted(BLOCKED_ROOM_STATUSES))


@dataclass(frozen=True)
class GuestRecord:
    """Guest projection used to address confirmations."""

    guest_id: int
    hotel_id: int
    first_name: str
    last_name: str
    email: Optional[str]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def _placeholders(values: Sequence[Any]) -> str:
    return ",".join("?" for _ in values)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(str(value))


def _room_from_row(row: sqlite3.Row) -> Room:
    return Room(
        room_id=int(row["id"]),
        hotel_id=int(row["hotel_id"]),
        number=str(row["number"]),
        category=RoomCategory(row["category"]),
        status=RoomStatus(row["status"]),
        max_guests=int(row["max_guests"]),
        features=row["features"],
        base_rate=float(row["base_rate"]) if row["base_rate"] is not None else None,
    )


def _reservation_from_row(row: sqlite3.Row) -> Reservation:
    return Reservation(
        reservation_id=int(row["id"]),
        hotel_id=int(row["hotel_id"]),
        room_id=int(row["room_id"]) if row["room_id"] is not None else None,
        guest_id=int(row["guest_id"]),
        status=ReservationStatus(row["status"]),
        room_category=RoomCategory(row["room_category"]),
        check_in=date.fromisoformat(row["check_in"]),
        check_out=date.fromisoformat(row["check_out"]),
        adults=int(row["adults"]),
        children=int(row["children"]),
        payment_status=PaymentStatus(row["payment_status"]),
        paid_at=_parse_datetime(row["paid_at"]),
        notes=row["notes"],
    )


def _usage_log_from_row(row: sqlite3.Row) -> RoomUsageLog:
    return RoomUsageLog(
        log_id=int(row["id"]),
        room_id=int(row["room_id"]),
        reservation_id=int(row["reservation_id"]) if row["reservation_id"] is not None else None,
        started_at=date.fromisoformat(row["started_at"]),
        ended_at=date.fromisoformat(row["ended_at"]) if row["ended_at"] else None,
        note=row["note"],
    )


def _digital_key_from_row(row: sqlite3.Row) -> DigitalKey:
    return DigitalKey(
        key_id=int(row["id"]),
        hotel_id=int(row["hotel_id"]),
        reservation_id=int(row["reservation_id"]),
        room_id=int(row["room_id"]) if row["room_id"] is not None else None,
        status=DigitalKeyStatus(row["status"]),
        key_code=str(row["key_code"]),
        expires_at=date.fromisoformat(row["expires_at"]),
    )


def append_note(existing: Optional[str], annotation: str) -> str:
    """Append an audit annotation, keeping whatever was already recorded."""
    return f"{existing} | {annotation}" if existing else annotation


class HotelStore:
    """Query surface over one connection.

    The store never commits or opens transactions itself; whoever owns the
    connection decides whether statements autocommit or run atomically.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    # --- Rooms ---

    def get_room(self, hotel_id: int, room_id: int) -> Optional[Room]:
        row = self._connection.execute(
            "SELECT * FROM Rooms WHERE id = ? AND hotel_id = ?;",
            (room_id, hotel_id),
        ).fetchone()
        return _room_from_row(row) if row is not None else None

    def list_rooms(self, hotel_id: int) -> list[Room]:
        rows = self._connection.execute(
            "SELECT * FROM Rooms WHERE hotel_id = ? ORDER BY number ASC;",
            (hotel_id,),
        ).fetchall()
        return [_room_from_row(row) for row in rows]

    def set_room_status(self, room_id: int, status: RoomStatus) -> None:
        self._connection.execute(
            "UPDATE Rooms SET status = ? WHERE id = ?;",
            (status.value, room_id),
        )

    def count_active_rooms_in_category(self, hotel_id: int, category: RoomCategory) -> int:
        row = self._connection.execute(
            f"""
            SELECT COUNT(*) AS count
            FROM Rooms
            WHERE hotel_id = ?
              AND category = ?
              AND status NOT IN ({_placeholders(_BLOCKED)});
            """,
            (hotel_id, category.value, *_BLOCKED),
        ).fetchone()
        return int(row["count"])

    def list_reassignment_candidates(self, source: Room) -> list[Room]:
        """Equivalent rooms: same category and capacity, not blocked, same features."""
        query = f"""
            SELECT *
            FROM Rooms
            WHERE hotel_id = ?
              AND id != ?
              AND category = ?
              AND max_guests = ?
              AND status NOT IN ({_placeholders(_BLOCKED)})
        """
        params: list[Any] = [
            source.hotel_id,
            source.room_id,
            source.category.value,
            source.max_guests,
            *_BLOCKED,
        ]
        if source.features:
            query += " AND features = ?"
            params.append(source.features)
        query += " ORDER BY number ASC;"
        rows = self._connection.execute(query, params).fetchall()
        return [_room_from_row(row) for row in rows]

    # --- Guests ---

    def get_guest(self, hotel_id: int, guest_id: int) -> Optional[GuestRecord]:
        row = self._connection.execute(
            "SELECT * FROM Guests WHERE id = ? AND hotel_id = ?;",
            (guest_id, hotel_id),
        ).fetchone()
        if row is None:
            return None
        return GuestRecord(
            guest_id=int(row["id"]),
            hotel_id=int(row["hotel_id"]),
            first_name=str(row["first_name"]),
            last_name=str(row["last_name"]),
            email=row["email"],
        )

    # --- Reservations ---

    def get_reservation(self, hotel_id: int, reservation_id: int) -> Optional[Reservation]:
        row = self._connection.execute(
            "SELECT * FROM Reservations WHERE id = ? AND hotel_id = ?;",
            (reservation_id, hotel_id),
        ).fetchone()
        return _reservation_from_row(row) if row is not None else None

    def count_overlapping_reservations(
        self,
        hotel_id: int,
        room_id: int,
        check_in: date,
        check_out: date,
        exclude_reservation_ids: Iterable[int] = (),
    ) -> int:
        """Count blocking reservations on a room intersecting ``[check_in, check_out)``."""
        excluded = list(exclude_reservation_ids)
        query = f"""
            SELECT COUNT(*) AS count
            FROM Reservations
            WHERE hotel_id = ?
              AND room_id = ?
              AND status IN ({_placeholders(_BLOCKING)})
              AND check_in < ?
              AND check_out > ?
        """
        params: list[Any] = [
            hotel_id,
            room_id,
            *_BLOCKING,
            check_out.isoformat(),
            check_in.isoformat(),
        ]
        if excluded:
            query += f" AND id NOT IN ({_placeholders(excluded)})"
            params.extend(excluded)
        row = self._connection.execute(query + ";", params).fetchone()
        return int(row["count"])

    def count_category_reservations(
        self,
        hotel_id: int,
        category: RoomCategory,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[int] = None,
    ) -> int:
        query = f"""
            SELECT COUNT(*) AS count
            FROM Reservations
            WHERE hotel_id = ?
              AND room_category = ?
              AND status IN ({_placeholders(_BLOCKING)})
              AND check_in < ?
              AND check_out > ?
        """
        params: list[Any] = [
            hotel_id,
            category.value,
            *_BLOCKING,
            check_out.isoformat(),
            check_in.isoformat(),
        ]
        if exclude_reservation_id is not None:
            query += " AND id != ?"
            params.append(exclude_reservation_id)
        row = self._connection.execute(query + ";", params).fetchone()
        return int(row["count"])

    def list_active_reservations_for_room(
        self,
        hotel_id: int,
        room_id: int,
        departing_after: date,
    ) -> list[Reservation]:
        rows = self._connection.execute(
            f"""
            SELECT *
            FROM Reservations
            WHERE hotel_id = ?
              AND room_id = ?
              AND status IN ({_placeholders(_BLOCKING)})
              AND check_out > ?
            ORDER BY check_in ASC, id ASC;
            """,
            (hotel_id, room_id, *_BLOCKING, departing_after.isoformat()),
        ).fetchall()
        return [_reservation_from_row(row) for row in rows]

    def list_blocking_intervals(
        self,
        hotel_id: int,
        room_ids: Sequence[int],
    ) -> dict[int, list[tuple[date, date]]]:
        """Return every blocking stay per room, used to plan conflict-free moves."""
        intervals: dict[int, list[tuple[date, date]]] = {room_id: [] for room_id in room_ids}
        if not room_ids:
            return intervals
        rows = self._connection.execute(
            f"""
            SELECT room_id, check_in, check_out
            FROM Reservations
            WHERE hotel_id = ?
              AND room_id IN ({_placeholders(room_ids)})
              AND status IN ({_placeholders(_BLOCKING)})
            ORDER BY room_id ASC, check_in ASC;
            """,
            (hotel_id, *room_ids, *_BLOCKING),
        ).fetchall()
        for row in rows:
            intervals[int(row["room_id"])].append(
                (date.fromisoformat(row["check_in"]), date.fromisoformat(row["check_out"]))
            )
        return intervals

    def list_ledger_entries(
        self,
        hotel_id: int,
        range_start: date,
        range_end_exclusive: date,
    ) -> list[LedgerEntry]:
        rows = self._connection.execute(
            """
            SELECT
                r.id,
                r.room_id,
                r.check_in,
                r.check_out,
                r.status,
                g.first_name,
                g.last_name
            FROM Reservations AS r
            INNER JOIN Guests AS g ON g.id = r.guest_id
            WHERE r.hotel_id = ?
              AND r.room_id IS NOT NULL
              AND r.status != ?
              AND r.check_in < ?
              AND r.check_out > ?
            ORDER BY r.check_in ASC, r.id ASC;
            """,
            (
                hotel_id,
                ReservationStatus.CANCELED.value,
                range_end_exclusive.isoformat(),
                range_start.isoformat(),
            ),
        ).fetchall()
        return [
            LedgerEntry(
                reservation_id=int(row["id"]),
                room_id=int(row["room_id"]),
                check_in=date.fromisoformat(row["check_in"]),
                check_out=date.fromisoformat(row["check_out"]),
                status=ReservationStatus(row["status"]),
                guest_name=f"{row['first_name']} {row['last_name']}",
            )
            for row in rows
        ]

    def insert_reservation(
        self,
        *,
        hotel_id: int,
        guest_id: int,
        room_id: Optional[int],
        status: ReservationStatus,
        room_category: RoomCategory,
        check_in: date,
        check_out: date,
        adults: int,
        children: int,
        payment_status: PaymentStatus,
        paid_at: Optional[datetime],
        notes: Optional[str],
    ) -> int:
        cursor = self._connection.execute(
            """
            INSERT INTO Reservations (
                hotel_id,
                room_id,
                guest_id,
                status,
                room_category,
                check_in,
                check_out,
                adults,
                children,
                payment_status,
                paid_at,
                notes
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                hotel_id,
                room_id,
                guest_id,
                status.value,
                room_category.value,
                check_in.isoformat(),
                check_out.isoformat(),
                adults,
                children,
                payment_status.value,
                paid_at.isoformat() if paid_at else None,
                notes,
            ),
        )
        return int(cursor.lastrowid)

    def save_reservation(self, reservation: Reservation) -> None:
        """Persist every mutable column of ``reservation``."""
        self._connection.execute(
            """
            UPDATE Reservations
            SET room_id = ?,
                status = ?,
                room_category = ?,
                check_in = ?,
                check_out = ?,
                adults = ?,
                children = ?,
                payment_status = ?,
                paid_at = ?,
                notes = ?
            WHERE id = ? AND hotel_id = ?;
            """,
            (
                reservation.room_id,
                reservation.status.value,
                reservation.room_category.value,
                reservation.check_in.isoformat(),
                reservation.check_out.isoformat(),
                reservation.adults,
                reservation.children,
                reservation.payment_status.value,
                reservation.paid_at.isoformat() if reservation.paid_at else None,
                reservation.notes,
                reservation.reservation_id,
                reservation.hotel_id,
            ),
        )

    # --- Room usage logs ---

    def get_usage_log(self, reservation_id: int) -> Optional[RoomUsageLog]:
        row = self._connection.execute(
            """
            SELECT *
            FROM RoomUsageLogs
            WHERE reservation_id = ?
            ORDER BY id ASC
            LIMIT 1;
            """,
            (reservation_id,),
        ).fetchone()
        return _usage_log_from_row(row) if row is not None else None

    def upsert_usage_log(
        self,
        *,
        reservation_id: int,
        room_id: int,
        started_at: date,
        ended_at: date,
        note: str,
        annotate_existing: bool,
    ) -> None:
        """Point the reservation's usage log at ``room_id``, creating it if missing.

        ``note`` becomes the note of a new log; an existing log keeps its note
        unless ``annotate_existing`` appends ``note`` to it.
        """
        existing = self.get_usage_log(reservation_id)
        if existing is None:
            self._connection.execute(
                """
                INSERT INTO RoomUsageLogs (room_id, reservation_id, started_at, ended_at, note)
                VALUES (?, ?, ?, ?, ?);
                """,
                (
                    room_id,
                    reservation_id,
                    started_at.isoformat(),
                    ended_at.isoformat(),
                    note,
                ),
            )
            return

        next_note = append_note(existing.note, note) if annotate_existing else existing.note
        self._connection.execute(
            """
            UPDATE RoomUsageLogs
            SET room_id = ?, started_at = ?, ended_at = ?, note = ?
            WHERE id = ?;
            """,
            (
                room_id,
                started_at.isoformat(),
                ended_at.isoformat(),
                next_note,
                existing.log_id,
            ),
        )

    def delete_usage_logs(self, reservation_id: int) -> int:
        cursor = self._connection.execute(
            "DELETE FROM RoomUsageLogs WHERE reservation_id = ?;",
            (reservation_id,),
        )
        return int(cursor.rowcount)

    # --- Digital keys ---

    def repoint_digital_keys(self, reservation_id: int, room_id: Optional[int]) -> int:
        cursor = self._connection.execute(
            "UPDATE DigitalKeys SET room_id = ? WHERE reservation_id = ?;",
            (room_id, reservation_id),
        )
        return int(cursor.rowcount)

    def has_digital_key(self, reservation_id: int) -> bool:
        row = self._connection.execute(
            "SELECT 1 FROM DigitalKeys WHERE reservation_id = ? LIMIT 1;",
            (reservation_id,),
        ).fetchone()
        return row is not None

    def create_digital_key(
        self,
        *,
        hotel_id: int,
        reservation_id: int,
        room_id: Optional[int],
        key_code: str,
        provider: str,
        expires_at: date,
        issued_at: datetime,
    ) -> int:
        cursor = self._connection.execute(
            """
            INSERT INTO DigitalKeys (
                hotel_id, reservation_id, room_id, status, provider, key_code, issued_at, expires_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                hotel_id,
                reservation_id,
                room_id,
                DigitalKeyStatus.ACTIVE.value,
                provider,
                key_code,
                issued_at.isoformat(),
                expires_at.isoformat(),
            ),
        )
        return int(cursor.lastrowid)

    def list_digital_keys(self, reservation_id: int) -> list[DigitalKey]:
        rows = self._connection.execute(
            "SELECT * FROM DigitalKeys WHERE reservation_id = ? ORDER BY id ASC;",
            (reservation_id,),
        ).fetchall()
        return [_digital_key_from_row(row) for row in rows]

    # --- Notifications ---

    def has_notification(self, reservation_id: int, notification_type: str) -> bool:
        row = self._connection.execute(
            "SELECT 1 FROM Notifications WHERE reservation_id = ? AND type = ? LIMIT 1;",
            (reservation_id, notification_type),
        ).fetchone()
        return row is not None

    def create_notification(
        self,
        *,
        hotel_id: int,
        reservation_id: int,
        channel: str,
        notification_type: str,
        to_address: str,
        subject: str,
        payload: dict[str, Any],
    ) -> int:
        cursor = self._connection.execute(
            """
            INSERT INTO Notifications (
                hotel_id, reservation_id, channel, type, status, to_address, subject, payload
            )
            VALUES (?, ?, ?, ?, 'QUEUED', ?, ?, ?);
            """,
            (
                hotel_id,
                reservation_id,
                channel,
                notification_type,
                to_address,
                subject,
                json.dumps(payload),
            ),
        )
        return int(cursor.lastrowid)

    def count_notifications(self, reservation_id: int) -> int:
        row = self._connection.execute(
            "SELECT COUNT(*) AS count FROM Notifications WHERE reservation_id = ?;",
            (reservation_id,),
        ).fetchone()
        return int(row["count"])

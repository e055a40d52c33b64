"""Repository layer responsible for connections, schema and transactions."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar

from backend.domain.models import (
    PaymentStatus,
    ReservationStatus,
    RoomCategory,
    RoomStatus,
)
from backend.domain.results import Failure, Result, TransactionAbortedError
from backend.repository.hotel_store import HotelStore
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS Hotels (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        slug TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Rooms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        hotel_id INTEGER NOT NULL,
        number TEXT NOT NULL,
        category TEXT NOT NULL DEFAULT 'STANDARD',
        status TEXT NOT NULL DEFAULT 'AVAILABLE',
        max_guests INTEGER NOT NULL DEFAULT 2 CHECK (max_guests > 0),
        features TEXT,
        base_rate REAL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (hotel_id, number),
        FOREIGN KEY (hotel_id) REFERENCES Hotels(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Guests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        hotel_id INTEGER NOT NULL,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        email TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (hotel_id) REFERENCES Hotels(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Reservations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        hotel_id INTEGER NOT NULL,
        room_id INTEGER,
        guest_id INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'BOOKED',
        room_category TEXT NOT NULL DEFAULT 'STANDARD',
        check_in TEXT NOT NULL,
        check_out TEXT NOT NULL,
        adults INTEGER NOT NULL DEFAULT 2 CHECK (adults >= 1),
        children INTEGER NOT NULL DEFAULT 0 CHECK (children >= 0),
        payment_status TEXT NOT NULL DEFAULT 'PENDING',
        paid_at DATETIME,
        notes TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        CHECK (check_out > check_in),
        FOREIGN KEY (hotel_id) REFERENCES Hotels(id),
        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE SET NULL,
        FOREIGN KEY (guest_id) REFERENCES Guests(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS RoomUsageLogs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        room_id INTEGER NOT NULL,
        reservation_id INTEGER,
        started_at TEXT NOT NULL,
        ended_at TEXT,
        note TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (room_id) REFERENCES Rooms(id),
        FOREIGN KEY (reservation_id) REFERENCES Reservations(id) ON DELETE SET NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS DigitalKeys (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        hotel_id INTEGER NOT NULL,
        reservation_id INTEGER NOT NULL,
        room_id INTEGER,
        status TEXT NOT NULL DEFAULT 'PENDING',
        provider TEXT,
        key_code TEXT NOT NULL,
        issued_at DATETIME,
        expires_at TEXT NOT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (hotel_id) REFERENCES Hotels(id),
        FOREIGN KEY (reservation_id) REFERENCES Reservations(id),
        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE SET NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        hotel_id INTEGER NOT NULL,
        reservation_id INTEGER,
        channel TEXT NOT NULL,
        type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'QUEUED',
        to_address TEXT,
        subject TEXT,
        payload TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (hotel_id) REFERENCES Hotels(id),
        FOREIGN KEY (reservation_id) REFERENCES Reservations(id) ON DELETE SET NULL
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_reservations_room_window
    ON Reservations(hotel_id, room_id, status, check_in, check_out);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_reservations_category_window
    ON Reservations(hotel_id, room_category, status, check_in, check_out);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_usage_logs_reservation
    ON RoomUsageLogs(reservation_id);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_digital_keys_reservation
    ON DigitalKeys(reservation_id);
    """,
)


class DataRepository:
    """Owns SQLite connections so business logic stays storage-agnostic.

    ``session`` hands out an autocommit store: every statement is durable on
    its own. ``run_in_transaction`` takes the write lock up-front and commits
    only when the body returns a success result.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.sqlite_busy_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def session(self) -> Iterator[HotelStore]:
        """Yield a store bound to a fresh autocommit connection."""
        connection = self._connect()
        try:
            yield HotelStore(connection)
        finally:
            connection.close()

    def run_in_transaction(
        self,
        body: Callable[[HotelStore], Result[T]],
        *,
        label: str,
    ) -> Result[T]:
        """Run ``body`` atomically.

        A ``Failure`` returned by the body rolls everything back and is
        surfaced as ``TransactionAbortedError``; unexpected exceptions roll
        back and propagate.
        """
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE;")
            try:
                result = body(HotelStore(connection))
            except Exception:
                connection.rollback()
                logger.exception("Transaction failed unexpectedly | label=%s", label)
                raise
            if isinstance(result, Failure):
                connection.rollback()
                logger.warning(
                    "Transaction aborted | label=%s | reason=%s",
                    label,
                    result.message,
                )
                return Failure(TransactionAbortedError(result.error))
            connection.commit()
            return result
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self.session() as store:
                for statement in _SCHEMA_STATEMENTS:
                    store.connection.execute(statement)
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Seed one demo hotel only when no hotel exists yet."""
        try:
            with self.session() as store:
                row = store.connection.execute(
                    "SELECT COUNT(*) AS count FROM Hotels;"
                ).fetchone()
                if int(row["count"]) > 0:
                    logger.info("Demo data already present; skipping seed")
                    return

            hotel_id = self.create_hotel("flagship", "Flagship Hotel")
            rooms = [
                ("101", RoomCategory.STANDARD, 2, "sea view"),
                ("102", RoomCategory.STANDARD, 2, "sea view"),
                ("103", RoomCategory.STANDARD, 2, None),
                ("201", RoomCategory.DELUXE, 3, "balcony"),
                ("202", RoomCategory.DELUXE, 3, "balcony"),
                ("301", RoomCategory.SUITE, 4, "balcony, jacuzzi"),
                ("401", RoomCategory.FAMILY, 5, None),
            ]
            for number, category, max_guests, features in rooms:
                self.create_room(
                    hotel_id,
                    number,
                    category=category,
                    max_guests=max_guests,
                    features=features,
                )
            self.create_guest(hotel_id, "Ana", "Souza", "ana@example.com")
            logger.info("Demo seed completed | hotel_id=%s | rooms=%s", hotel_id, len(rooms))
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    def create_hotel(self, slug: str, name: str) -> int:
        with self.session() as store:
            cursor = store.connection.execute(
                "INSERT INTO Hotels (slug, name) VALUES (?, ?);",
                (slug, name),
            )
            return int(cursor.lastrowid)

    def create_room(
        self,
        hotel_id: int,
        number: str,
        *,
        category: RoomCategory = RoomCategory.STANDARD,
        status: RoomStatus = RoomStatus.AVAILABLE,
        max_guests: int = 2,
        features: Optional[str] = None,
        base_rate: Optional[float] = None,
    ) -> int:
        with self.session() as store:
            cursor = store.connection.execute(
                """
                INSERT INTO Rooms (hotel_id, number, category, status, max_guests, features, base_rate)
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    hotel_id,
                    number,
                    category.value,
                    status.value,
                    max_guests,
                    features,
                    base_rate,
                ),
            )
            return int(cursor.lastrowid)

    def create_guest(
        self,
        hotel_id: int,
        first_name: str,
        last_name: str,
        email: Optional[str] = None,
    ) -> int:
        with self.session() as store:
            cursor = store.connection.execute(
                """
                INSERT INTO Guests (hotel_id, first_name, last_name, email)
                VALUES (?, ?, ?, ?);
                """,
                (hotel_id, first_name, last_name, email),
            )
            return int(cursor.lastrowid)

    def insert_reservation(
        self,
        hotel_id: int,
        guest_id: int,
        check_in: date,
        check_out: date,
        *,
        room_id: Optional[int] = None,
        status: ReservationStatus = ReservationStatus.BOOKED,
        room_category: RoomCategory = RoomCategory.STANDARD,
        adults: int = 2,
        children: int = 0,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
    ) -> int:
        """Insert a reservation row without availability checks (imports, fixtures)."""
        with self.session() as store:
            return store.insert_reservation(
                hotel_id=hotel_id,
                guest_id=guest_id,
                room_id=room_id,
                status=status,
                room_category=room_category,
                check_in=check_in,
                check_out=check_out,
                adults=adults,
                children=children,
                payment_status=payment_status,
                paid_at=None,
                notes=None,
            )

"""Guest confirmation queueing and digital-key issuance collaborators."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from backend.domain.models import (
    HotelContext,
    NotificationChannel,
    NotificationType,
)
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class ConfirmationService:
    """Queues confirmation messages; delivery happens elsewhere."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def has_confirmation(self, reservation_id: int) -> bool:
        with self._repository.session() as store:
            return store.has_notification(reservation_id, NotificationType.CONFIRMATION.value)

    def queue_confirmation(self, hotel: HotelContext, reservation_id: int) -> Optional[int]:
        with self._repository.session() as store:
            reservation = store.get_reservation(hotel.hotel_id, reservation_id)
            if reservation is None:
                return None
            guest = store.get_guest(hotel.hotel_id, reservation.guest_id)
            room = (
                store.get_room(hotel.hotel_id, reservation.room_id)
                if reservation.room_id is not None
                else None
            )
            payload = {
                "reservation_id": reservation.reservation_id,
                "guest": guest.full_name if guest else "",
                "room": room.number if room else "To be assigned",
                "check_in": reservation.check_in.isoformat(),
                "check_out": reservation.check_out.isoformat(),
                "rules_url": self._settings.confirmation_rules_url,
            }
            notification_id = store.create_notification(
                hotel_id=hotel.hotel_id,
                reservation_id=reservation.reservation_id,
                channel=NotificationChannel.EMAIL.value,
                notification_type=NotificationType.CONFIRMATION.value,
                to_address=(guest.email if guest and guest.email else ""),
                subject="Reservation confirmation",
                payload=payload,
            )
        logger.info(
            "Confirmation queued | reservation_id=%s | notification_id=%s",
            reservation_id,
            notification_id,
        )
        return notification_id


class DigitalKeyService:
    """Issues access credentials bound to a reservation's current room."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def has_key(self, reservation_id: int) -> bool:
        with self._repository.session() as store:
            return store.has_digital_key(reservation_id)

    def issue_digital_key(self, hotel: HotelContext, reservation_id: int) -> Optional[int]:
        with self._repository.session() as store:
            reservation = store.get_reservation(hotel.hotel_id, reservation_id)
            if reservation is None:
                return None
            key_id = store.create_digital_key(
                hotel_id=hotel.hotel_id,
                reservation_id=reservation.reservation_id,
                room_id=reservation.room_id,
                key_code=f"VK-{uuid.uuid4().hex[:8]}".upper(),
                provider=self._settings.digital_key_provider,
                expires_at=reservation.check_out,
                issued_at=datetime.now(timezone.utc),
            )
        logger.info("Digital key issued | reservation_id=%s | key_id=%s", reservation_id, key_id)
        return key_id

"""Reservation create/update/cancel orchestration.

Availability is checked and the write performed on one autocommit
connection without an enclosing transaction: two concurrent bookings at the
edge of availability can both pass validation. Atomic workflows (swap,
maintenance reassignment) live in their own services.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Optional

from backend.domain.constraints import (
    ROOM_REQUIRED_STATUSES,
    should_enforce_availability,
    validate_party,
    validate_stay_window,
)
from backend.domain.models import (
    HotelContext,
    PaymentStatus,
    Reservation,
    ReservationChanges,
    ReservationDraft,
    ReservationStatus,
    RoomCategory,
    RoomStatus,
)
from backend.domain.results import (
    AvailabilityConflictError,
    Failure,
    NotFoundError,
    Result,
    ReservationValidationError,
    Success,
)
from backend.domain.room_state import resolve_room_status
from backend.repository.data_repository import DataRepository
from backend.repository.hotel_store import HotelStore
from backend.services.availability_service import (
    get_category_availability,
    validate_room_availability,
)
from backend.services.notification_service import ConfirmationService, DigitalKeyService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

CREATED_NOTE = "Reservation created manually."
UPDATED_NOTE = "Reservation updated manually."
SIDE_EFFECT_WARNING = "Reservation saved, but the automatic confirmation could not be sent."


def _check_room_requirements(
    store: HotelStore,
    hotel: HotelContext,
    *,
    room_id: Optional[int],
    status: ReservationStatus,
    room_category: RoomCategory,
    check_in: date,
    check_out: date,
    exclude_reservation_id: Optional[int] = None,
) -> Result[RoomCategory]:
    """Shared create/update gate; resolves the category the reservation ends up in."""
    enforce = should_enforce_availability(status)

    if room_id is not None:
        room_check = validate_room_availability(
            store,
            hotel,
            room_id,
            check_in,
            check_out,
            exclude_reservation_id=exclude_reservation_id,
            enforce=enforce,
        )
        if isinstance(room_check, Failure):
            return room_check
        room_category = room_check.value

    if status in ROOM_REQUIRED_STATUSES and room_id is None:
        return Failure(
            ReservationValidationError("A room is required to check in or check out")
        )

    if room_id is None and enforce:
        availability = get_category_availability(
            store,
            hotel,
            room_category,
            check_in,
            check_out,
            exclude_reservation_id=exclude_reservation_id,
        )
        if availability.total_rooms == 0:
            return Failure(
                AvailabilityConflictError(
                    f"No active rooms in category {room_category.value}"
                )
            )
        if availability.available_rooms <= 0:
            return Failure(
                AvailabilityConflictError(
                    f"No availability for category {room_category.value} in the requested period"
                )
            )

    return Success(room_category)


def _apply_room_state(store: HotelStore, room_id: Optional[int], status: ReservationStatus) -> None:
    if room_id is None:
        return
    next_room_status = resolve_room_status(status)
    if next_room_status is not None:
        store.set_room_status(room_id, next_room_status)


class ReservationAllocator:
    """Keeps a single reservation's room assignment consistent."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        confirmation_service: Optional[ConfirmationService] = None,
        key_service: Optional[DigitalKeyService] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._confirmation_service = confirmation_service or ConfirmationService(
            repository=self._repository,
            settings=self._settings,
        )
        self._key_service = key_service or DigitalKeyService(
            repository=self._repository,
            settings=self._settings,
        )

    def create_reservation(
        self,
        hotel: HotelContext,
        draft: ReservationDraft,
    ) -> Result[Reservation]:
        adults = draft.adults if draft.adults is not None else self._settings.default_adults
        try:
            validate_stay_window(draft.check_in, draft.check_out)
            validate_party(adults, draft.children)
        except ValueError as exc:
            return Failure(ReservationValidationError(str(exc)))

        with self._repository.session() as store:
            if store.get_guest(hotel.hotel_id, draft.guest_id) is None:
                return Failure(NotFoundError(f"Guest {draft.guest_id} not found"))

            gate = _check_room_requirements(
                store,
                hotel,
                room_id=draft.room_id,
                status=draft.status,
                room_category=draft.room_category or RoomCategory.STANDARD,
                check_in=draft.check_in,
                check_out=draft.check_out,
            )
            if isinstance(gate, Failure):
                logger.info(
                    "Reservation rejected | hotel_id=%s | room_id=%s | reason=%s",
                    hotel.hotel_id,
                    draft.room_id,
                    gate.message,
                )
                return gate

            paid_at = (
                datetime.now(timezone.utc)
                if draft.payment_status == PaymentStatus.PAID
                else None
            )
            reservation_id = store.insert_reservation(
                hotel_id=hotel.hotel_id,
                guest_id=draft.guest_id,
                room_id=draft.room_id,
                status=draft.status,
                room_category=gate.value,
                check_in=draft.check_in,
                check_out=draft.check_out,
                adults=adults,
                children=draft.children,
                payment_status=draft.payment_status,
                paid_at=paid_at,
                notes=draft.notes,
            )
            if draft.room_id is not None:
                store.upsert_usage_log(
                    reservation_id=reservation_id,
                    room_id=draft.room_id,
                    started_at=draft.check_in,
                    ended_at=draft.check_out,
                    note=CREATED_NOTE,
                    annotate_existing=False,
                )
            _apply_room_state(store, draft.room_id, draft.status)
            reservation = store.get_reservation(hotel.hotel_id, reservation_id)

        logger.info(
            "Reservation created | hotel_id=%s | reservation_id=%s | room_id=%s | status=%s",
            hotel.hotel_id,
            reservation.reservation_id,
            reservation.room_id,
            reservation.status.value,
        )
        warning = None
        if reservation.payment_status == PaymentStatus.PAID:
            warning = self._run_payment_side_effects(hotel, reservation)
        return Success(reservation, warning=warning)

    def update_reservation(
        self,
        hotel: HotelContext,
        reservation_id: int,
        changes: ReservationChanges,
    ) -> Result[Reservation]:
        with self._repository.session() as store:
            current = store.get_reservation(hotel.hotel_id, reservation_id)
            if current is None:
                return Failure(NotFoundError(f"Reservation {reservation_id} not found"))

            check_in = changes.check_in or current.check_in
            check_out = changes.check_out or current.check_out
            adults = changes.adults if changes.adults is not None else current.adults
            children = changes.children if changes.children is not None else current.children
            try:
                validate_stay_window(check_in, check_out)
                validate_party(adults, children)
            except ValueError as exc:
                return Failure(ReservationValidationError(str(exc)))

            if changes.unassign_room:
                next_room_id = None
            elif changes.room_id is not None:
                next_room_id = changes.room_id
            else:
                next_room_id = current.room_id
            next_status = changes.status or current.status
            next_payment = changes.payment_status or current.payment_status

            gate = _check_room_requirements(
                store,
                hotel,
                room_id=next_room_id,
                status=next_status,
                room_category=changes.room_category or current.room_category,
                check_in=check_in,
                check_out=check_out,
                exclude_reservation_id=current.reservation_id,
            )
            if isinstance(gate, Failure):
                logger.info(
                    "Reservation update rejected | hotel_id=%s | reservation_id=%s | reason=%s",
                    hotel.hotel_id,
                    reservation_id,
                    gate.message,
                )
                return gate

            became_paid = (
                next_payment == PaymentStatus.PAID
                and current.payment_status != PaymentStatus.PAID
            )
            updated = replace(
                current,
                room_id=next_room_id,
                status=next_status,
                payment_status=next_payment,
                room_category=gate.value,
                check_in=check_in,
                check_out=check_out,
                adults=adults,
                children=children,
                paid_at=datetime.now(timezone.utc) if became_paid else current.paid_at,
                notes=changes.notes if changes.notes is not None else current.notes,
            )
            store.save_reservation(updated)

            room_changed = current.room_id != next_room_id
            if current.room_id is not None and room_changed:
                store.set_room_status(current.room_id, RoomStatus.AVAILABLE)

            if next_room_id is not None:
                store.upsert_usage_log(
                    reservation_id=current.reservation_id,
                    room_id=next_room_id,
                    started_at=check_in,
                    ended_at=check_out,
                    note=UPDATED_NOTE,
                    annotate_existing=False,
                )
            else:
                store.delete_usage_logs(current.reservation_id)

            if room_changed:
                store.repoint_digital_keys(current.reservation_id, next_room_id)
            _apply_room_state(store, next_room_id, next_status)

        logger.info(
            "Reservation updated | hotel_id=%s | reservation_id=%s | room_id=%s->%s | status=%s",
            hotel.hotel_id,
            reservation_id,
            current.room_id,
            next_room_id,
            next_status.value,
        )
        warning = self._run_payment_side_effects(hotel, updated) if became_paid else None
        return Success(updated, warning=warning)

    def cancel_reservation(
        self,
        hotel: HotelContext,
        reservation_id: int,
    ) -> Result[Reservation]:
        with self._repository.session() as store:
            current = store.get_reservation(hotel.hotel_id, reservation_id)
            if current is None:
                return Failure(NotFoundError(f"Reservation {reservation_id} not found"))
            if current.status == ReservationStatus.CANCELED:
                return Failure(ReservationValidationError("Reservation is already canceled"))

            canceled = replace(current, status=ReservationStatus.CANCELED)
            store.save_reservation(canceled)
            if current.room_id is not None:
                store.set_room_status(current.room_id, RoomStatus.AVAILABLE)

        logger.info(
            "Reservation canceled | hotel_id=%s | reservation_id=%s | room_id=%s",
            hotel.hotel_id,
            reservation_id,
            current.room_id,
        )
        return Success(canceled)

    def _run_payment_side_effects(
        self,
        hotel: HotelContext,
        reservation: Reservation,
    ) -> Optional[str]:
        """Queue confirmation and issue a key at most once; never undoes the allocation."""
        try:
            if not self._confirmation_service.has_confirmation(reservation.reservation_id):
                self._confirmation_service.queue_confirmation(hotel, reservation.reservation_id)
            if reservation.room_id is not None and not self._key_service.has_key(
                reservation.reservation_id
            ):
                self._key_service.issue_digital_key(hotel, reservation.reservation_id)
        except Exception:
            logger.exception(
                "Payment side effects failed | hotel_id=%s | reservation_id=%s",
                hotel.hotel_id,
                reservation.reservation_id,
            )
            return SIDE_EFFECT_WARNING
        return None

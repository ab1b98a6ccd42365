from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone

from booking_engine.application.exceptions import ConflictError, PersistenceError
from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.application.use_cases.policy import validate_booking_settings, validate_hours_policy
from booking_engine.domain.entities.booking import STATUS_CANCELLED, STATUS_CONFIRMED, Booking
from booking_engine.domain.entities.business import Business
from booking_engine.domain.entities.interval import overlaps
from booking_engine.domain.entities.service import Service


class MemoryBookingStore(BookingStorePort):
    """In-process ledger. Commits are serialized by one lock, so it is only safe within a single process."""

    def __init__(self) -> None:
        self._businesses: dict[str, Business] = {}
        self._services: dict[str, Service] = {}
        self._bookings: dict[str, Booking] = {}
        self._lock = threading.Lock()

    def get_business(self, business_id: str) -> Business | None:
        return self._businesses.get(business_id)

    def save_business(self, business: Business) -> Business:
        validate_hours_policy(business.hours)
        validate_booking_settings(business.settings)
        with self._lock:
            self._businesses[business.id] = business
        return business

    def get_service(self, service_id: str) -> Service | None:
        return self._services.get(service_id)

    def list_services(self, business_id: str, active_only: bool = True) -> list[Service]:
        services = [
            s for s in self._services.values() if s.business_id == business_id and (s.active or not active_only)
        ]
        return sorted(services, key=lambda s: s.name)

    def save_service(self, service: Service) -> Service:
        if service.duration_minutes <= 0:
            raise ValueError("Service duration must be positive")
        with self._lock:
            self._services[service.id] = service
        return service

    def list_confirmed_bookings(self, business_id: str, start: datetime, end: datetime) -> list[Booking]:
        with self._lock:
            bookings = [
                b
                for b in self._bookings.values()
                if b.business_id == business_id and b.is_confirmed and overlaps(b.start, b.end, start, end)
            ]
        return sorted(bookings, key=lambda b: b.start)

    def get_booking(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def insert_booking(self, booking: Booking) -> Booking:
        with self._lock:
            self._ensure_free(booking.business_id, booking.start, booking.end, ignore_id=None)
            stored = replace(booking, status=STATUS_CONFIRMED)
            self._bookings[stored.id] = stored
            return stored

    def reschedule_booking(self, booking_id: str, start: datetime, end: datetime) -> Booking:
        with self._lock:
            current = self._require(booking_id)
            if not current.is_confirmed:
                raise ConflictError("Only confirmed bookings can be rescheduled", reason="not_confirmed")
            self._ensure_free(current.business_id, start, end, ignore_id=booking_id)
            updated = replace(current, start=start, end=end, updated_at=_now())
            self._bookings[booking_id] = updated
            return updated

    def cancel_booking(self, booking_id: str, reason: str | None) -> Booking:
        with self._lock:
            current = self._require(booking_id)
            if not current.is_confirmed:
                raise ConflictError("Booking is already cancelled", reason="not_confirmed")
            updated = replace(current, status=STATUS_CANCELLED, cancellation_reason=reason, updated_at=_now())
            self._bookings[booking_id] = updated
            return updated

    def set_calendar_event(self, booking_id: str, event_ref: str | None) -> None:
        with self._lock:
            current = self._require(booking_id)
            self._bookings[booking_id] = replace(current, calendar_event_ref=event_ref, updated_at=_now())

    def list_reminder_candidates(self, start: datetime, end: datetime) -> list[Booking]:
        with self._lock:
            bookings = [
                b
                for b in self._bookings.values()
                if b.is_confirmed and not b.reminder_sent and start <= b.start <= end
            ]
        return sorted(bookings, key=lambda b: b.start)

    def mark_reminder_sent(self, booking_id: str) -> bool:
        with self._lock:
            current = self._require(booking_id)
            if current.reminder_sent:
                return False
            self._bookings[booking_id] = replace(current, reminder_sent=True, updated_at=_now())
            return True

    def list_customer_bookings(self, business_id: str, customer_phone: str, since: datetime) -> list[Booking]:
        with self._lock:
            bookings = [
                b
                for b in self._bookings.values()
                if b.business_id == business_id
                and b.customer_phone == customer_phone
                and b.is_confirmed
                and b.start >= since
            ]
        return sorted(bookings, key=lambda b: b.start)

    def list_unmirrored_bookings(self, business_id: str, since: datetime) -> list[Booking]:
        with self._lock:
            bookings = [
                b
                for b in self._bookings.values()
                if b.business_id == business_id and b.is_confirmed and b.calendar_event_ref is None and b.start >= since
            ]
        return sorted(bookings, key=lambda b: b.start)

    def _require(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise PersistenceError(f"Booking {booking_id} does not exist")
        return booking

    def _ensure_free(self, business_id: str, start: datetime, end: datetime, ignore_id: str | None) -> None:
        for other in self._bookings.values():
            if other.id == ignore_id or other.business_id != business_id or not other.is_confirmed:
                continue
            if overlaps(start, end, other.start, other.end):
                raise ConflictError(
                    f"Interval overlaps confirmed booking {other.id}",
                    reason="already_booked",
                )


def _now() -> datetime:
    return datetime.now(timezone.utc)

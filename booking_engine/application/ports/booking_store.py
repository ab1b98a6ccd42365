from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import Business
from booking_engine.domain.entities.service import Service


class BookingStorePort(ABC):
    """
    Datastore for businesses, services and the booking ledger.

    Implementations raise PersistenceError for datastore failures and
    ConflictError when a commit would overlap a confirmed booking.
    """

    @abstractmethod
    def get_business(self, business_id: str) -> Business | None:
        raise NotImplementedError

    @abstractmethod
    def save_business(self, business: Business) -> Business:
        """Validate hours/settings and upsert. Raises ConfigError if malformed."""
        raise NotImplementedError

    @abstractmethod
    def get_service(self, service_id: str) -> Service | None:
        raise NotImplementedError

    @abstractmethod
    def list_services(self, business_id: str, active_only: bool = True) -> list[Service]:
        raise NotImplementedError

    @abstractmethod
    def save_service(self, service: Service) -> Service:
        raise NotImplementedError

    @abstractmethod
    def list_confirmed_bookings(self, business_id: str, start: datetime, end: datetime) -> list[Booking]:
        """Confirmed bookings whose [start, end) intersects the given window, earliest first."""
        raise NotImplementedError

    @abstractmethod
    def get_booking(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def insert_booking(self, booking: Booking) -> Booking:
        """
        Atomically insert a confirmed booking.
        Raises ConflictError if it overlaps another confirmed booking of the same business.
        """
        raise NotImplementedError

    @abstractmethod
    def reschedule_booking(self, booking_id: str, start: datetime, end: datetime) -> Booking:
        """
        Atomically move a confirmed booking, ignoring its own current interval.
        Raises ConflictError on overlap; the booking is left untouched in that case.
        """
        raise NotImplementedError

    @abstractmethod
    def cancel_booking(self, booking_id: str, reason: str | None) -> Booking:
        """
        Cancel a confirmed booking, keeping the record.
        Raises ConflictError(reason="not_confirmed") if it is no longer confirmed.
        """
        raise NotImplementedError

    @abstractmethod
    def set_calendar_event(self, booking_id: str, event_ref: str | None) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_reminder_candidates(self, start: datetime, end: datetime) -> list[Booking]:
        """Confirmed bookings starting within [start, end] with reminder_sent=False."""
        raise NotImplementedError

    @abstractmethod
    def mark_reminder_sent(self, booking_id: str) -> bool:
        """Flip reminder_sent false->true. Returns False if it was already true."""
        raise NotImplementedError

    @abstractmethod
    def list_customer_bookings(self, business_id: str, customer_phone: str, since: datetime) -> list[Booking]:
        """Confirmed bookings of a customer starting at or after `since`, earliest first."""
        raise NotImplementedError

    @abstractmethod
    def list_unmirrored_bookings(self, business_id: str, since: datetime) -> list[Booking]:
        """Confirmed upcoming bookings with no calendar event ref."""
        raise NotImplementedError

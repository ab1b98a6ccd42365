from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from itertools import islice
from typing import Callable

from booking_engine.application.exceptions import ConfigError, ConflictError, PersistenceError, ValidationError
from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.application.use_cases.availability import AvailabilityResult, ConflictDetector
from booking_engine.application.use_cases.calendar_mirror import CalendarMirror
from booking_engine.application.use_cases.owner_alerts import OwnerAlerts
from booking_engine.application.use_cases.policy import PolicyResolver, business_timezone
from booking_engine.application.use_cases.slots import SlotGenerator
from booking_engine.application.utils.date_parser import parse_date_preference, parse_time_preference
from booking_engine.application.utils.messages import (
    CONFIG_ERROR_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    cancellation_message,
    confirmation_message,
    missing_fields_message,
    reschedule_message,
    unavailable_message,
)
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.booking_request import BookingRequest
from booking_engine.domain.entities.business import Business
from booking_engine.domain.entities.interval import CandidateInterval
from booking_engine.domain.entities.service import Service


@dataclass(frozen=True)
class BookingResult:
    action: str  # "booked", "rescheduled", "cancelled", "available", "unavailable", "invalid", "not_found", "error"
    message: str | None
    booking: Booking | None = None
    reason: str | None = None
    alternatives: list[CandidateInterval] = field(default_factory=list)
    warnings: tuple[str, ...] = ()
    late_cancellation: bool = False
    fee: float = 0.0

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


@dataclass(frozen=True)
class ValidatedSlot:
    service: Service
    candidate: CandidateInterval


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingOrchestrator:
    """
    Drives a booking through Requested -> Validated -> Committed and the
    compensating Cancelled / Rescheduled transitions. Every transition is
    all-or-nothing against the ledger; calendar mirroring happens afterwards.
    """

    def __init__(
        self,
        store: BookingStorePort,
        detector: ConflictDetector,
        slots: SlotGenerator,
        mirror: CalendarMirror,
        policy: PolicyResolver,
        clock: Callable[[], datetime] = _utc_now,
        max_alternatives: int = 3,
        alerts: OwnerAlerts | None = None,
    ) -> None:
        self._store = store
        self._detector = detector
        self._slots = slots
        self._mirror = mirror
        self._policy = policy
        self._clock = clock
        self._max_alternatives = max_alternatives
        self._alerts = alerts
        self._logger = logging.getLogger(__name__)

    def book(self, business_id: str, request: BookingRequest) -> BookingResult:
        return self._guarded(business_id, "book", lambda: self._book(business_id, request))

    def check(self, business_id: str, service: str | None, date_text: str | None, time_text: str | None) -> BookingResult:
        """Run validation and the conflict check without committing anything."""
        return self._guarded(business_id, "check", lambda: self._check(business_id, service, date_text, time_text))

    def cancel(self, booking_id: str, reason: str | None = None) -> BookingResult:
        return self._guarded(None, "cancel", lambda: self._cancel(booking_id, reason))

    def reschedule(self, booking_id: str, date_text: str | None, time_text: str | None) -> BookingResult:
        return self._guarded(None, "reschedule", lambda: self._reschedule(booking_id, date_text, time_text))

    def upcoming_bookings(self, business_id: str, customer_phone: str) -> list[Booking]:
        return self._store.list_customer_bookings(business_id, customer_phone, self._clock())

    def _guarded(self, business_id: str | None, operation: str, step: Callable[[], BookingResult]) -> BookingResult:
        try:
            return step()
        except ValidationError as e:
            return BookingResult(action="invalid", message=str(e))
        except ConfigError as e:
            self._logger.error(
                "Business configuration needs admin attention",
                extra={"business_id": business_id, "operation": operation, "error": str(e)},
            )
            return BookingResult(action="error", message=CONFIG_ERROR_MESSAGE, reason="config_error")
        except PersistenceError as e:
            self._logger.error(
                "Datastore failure",
                extra={"business_id": business_id, "operation": operation, "error": str(e)},
            )
            return BookingResult(action="error", message=GENERIC_ERROR_MESSAGE, reason="persistence_error")

    def _book(self, business_id: str, request: BookingRequest) -> BookingResult:
        business = self._store.get_business(business_id)
        if business is None:
            return BookingResult(action="not_found", message="Business not found.")

        missing = [
            name
            for name, value in (("service", request.service), ("date", request.date), ("time", request.time))
            if not value or not str(value).strip()
        ]
        if missing:
            raise ValidationError(missing_fields_message(missing))
        if not request.customer_phone or not request.customer_phone.strip():
            raise ValidationError("A customer phone number is required to book.")
        if request.party_size is not None and (not isinstance(request.party_size, int) or request.party_size < 1):
            raise ValidationError("Party size must be a positive number.")

        validated = self._validate_slot(business, request.service, request.date, request.time)
        candidate = validated.candidate

        availability = self._detector.check_availability(business, candidate)
        if not availability.available:
            return self._unavailable(business, validated, availability.reason, availability)

        now = self._clock()
        booking = Booking(
            id=uuid.uuid4().hex,
            business_id=business.id,
            service_id=validated.service.id,
            service_name=validated.service.name,
            customer_phone=request.customer_phone.strip(),
            customer_name=request.customer_name,
            party_size=request.party_size,
            notes=request.notes,
            start=candidate.start,
            end=candidate.end,
            created_at=now,
            updated_at=now,
        )
        try:
            saved = self._store.insert_booking(booking)
        except ConflictError as e:
            self._logger.info(
                "Commit-time conflict",
                extra=self._context(business, candidate, "insert_booking", reason=e.reason),
            )
            return self._unavailable(business, validated, e.reason, availability)

        self._logger.info("Booking committed", extra=self._context(business, candidate, "book", booking_id=saved.id))
        self._mirror.mirror_created(business, saved)
        if self._alerts is not None:
            self._alerts.booking_created(business, saved)
        return BookingResult(
            action="booked",
            message=confirmation_message(business, saved),
            booking=saved,
            warnings=self._warnings(availability),
        )

    def _check(self, business_id: str, service: str | None, date_text: str | None, time_text: str | None) -> BookingResult:
        business = self._store.get_business(business_id)
        if business is None:
            return BookingResult(action="not_found", message="Business not found.")
        validated = self._validate_slot(business, service, date_text, time_text)
        availability = self._detector.check_availability(business, validated.candidate)
        if not availability.available:
            return self._unavailable(business, validated, availability.reason, availability)
        return BookingResult(action="available", message=None, warnings=self._warnings(availability))

    def _cancel(self, booking_id: str, reason: str | None) -> BookingResult:
        booking = self._store.get_booking(booking_id)
        if booking is None:
            return BookingResult(action="not_found", message="Booking not found.")
        if not booking.is_confirmed:
            return BookingResult(action="invalid", message="That booking is already cancelled.", booking=booking)
        business = self._store.get_business(booking.business_id)
        if business is None:
            return BookingResult(action="not_found", message="Business not found.")

        effective = self._policy.booking_settings(business)
        hours_left = (booking.start - self._clock()).total_seconds() / 3600
        late = hours_left < effective.cancellation_hours
        fee = effective.late_cancellation_fee if late else 0.0

        try:
            cancelled = self._store.cancel_booking(booking.id, reason)
        except ConflictError:
            # cancelled concurrently since the read above
            return BookingResult(action="invalid", message="That booking is already cancelled.", booking=booking)
        self._logger.info(
            "Booking cancelled",
            extra=self._context(business, booking.interval, "cancel", booking_id=booking.id, reason=reason),
        )
        self._mirror.mirror_cancelled(business, cancelled)
        if self._alerts is not None:
            self._alerts.booking_cancelled(business, cancelled)
        return BookingResult(
            action="cancelled",
            message=cancellation_message(business, cancelled, fee),
            booking=cancelled,
            late_cancellation=late,
            fee=fee,
        )

    def _reschedule(self, booking_id: str, date_text: str | None, time_text: str | None) -> BookingResult:
        booking = self._store.get_booking(booking_id)
        if booking is None:
            return BookingResult(action="not_found", message="Booking not found.")
        if not booking.is_confirmed:
            return BookingResult(action="invalid", message="Cancelled bookings can't be rescheduled.", booking=booking)
        business = self._store.get_business(booking.business_id)
        if business is None:
            return BookingResult(action="not_found", message="Business not found.")

        start = self._parse_start(business, date_text, time_text)
        self._check_booking_window(business, start)
        candidate = CandidateInterval(start=start, end=start + (booking.end - booking.start))
        service = self._store.get_service(booking.service_id) or Service(
            id=booking.service_id,
            business_id=business.id,
            name=booking.service_name,
            duration_minutes=candidate.duration_minutes,
        )
        validated = ValidatedSlot(service=service, candidate=candidate)

        availability = self._detector.check_availability(business, candidate, ignore_booking_id=booking.id)
        if not availability.available:
            return self._unavailable(business, validated, availability.reason, availability, ignore_booking_id=booking.id)

        try:
            updated = self._store.reschedule_booking(booking.id, candidate.start, candidate.end)
        except ConflictError as e:
            self._logger.info(
                "Commit-time conflict",
                extra=self._context(business, candidate, "reschedule_booking", booking_id=booking.id, reason=e.reason),
            )
            return self._unavailable(business, validated, e.reason, availability, ignore_booking_id=booking.id)

        self._logger.info(
            "Booking rescheduled",
            extra=self._context(business, candidate, "reschedule", booking_id=booking.id),
        )
        self._mirror.mirror_rescheduled(business, updated)
        return BookingResult(
            action="rescheduled",
            message=reschedule_message(business, updated),
            booking=updated,
            warnings=self._warnings(availability),
        )

    def _validate_slot(
        self,
        business: Business,
        service_text: str | None,
        date_text: str | None,
        time_text: str | None,
    ) -> ValidatedSlot:
        service = self._resolve_service(business, service_text)
        start = self._parse_start(business, date_text, time_text)
        self._check_booking_window(business, start)
        return ValidatedSlot(service=service, candidate=CandidateInterval.starting_at(start, service.duration_minutes))

    def _resolve_service(self, business: Business, service_text: str | None) -> Service:
        if not service_text or not service_text.strip():
            raise ValidationError(missing_fields_message(["service"]))
        wanted = service_text.lower().strip()
        services = self._store.list_services(business.id, active_only=False)

        match = next((s for s in services if s.name.lower() == wanted), None)
        if match is None:
            match = next(
                (s for s in services if s.name.lower() in wanted or wanted in s.name.lower()),
                None,
            )
        if match is None or not match.active:
            offered = ", ".join(s.name for s in services if s.active)
            raise ValidationError(f'Service "{service_text}" is not available. Available services: {offered}.')
        return match

    def _parse_start(self, business: Business, date_text: str | None, time_text: str | None) -> datetime:
        tz = business_timezone(business)
        today = self._clock().astimezone(tz).date()
        day = parse_date_preference(date_text or "", today)
        parsed_time = parse_time_preference(time_text or "")
        if day is None or parsed_time is None:
            raise ValidationError(
                "I couldn't understand the date or time. Please use something like 'tomorrow at 3pm' or '2026-03-14 14:30'."
            )
        hour, minute = parsed_time
        return datetime.combine(day, time(hour, minute), tzinfo=tz).astimezone(timezone.utc)

    def _check_booking_window(self, business: Business, start: datetime) -> None:
        now = self._clock()
        if start <= now:
            raise ValidationError("You can't book appointments in the past. Please choose a future date and time.")

        effective = self._policy.booking_settings(business)
        today = self._policy.local_date(business, now)
        day = self._policy.local_date(business, start)
        if not effective.same_day_allowed and day == today:
            raise ValidationError("Same-day bookings aren't available. Please choose a later date.")
        if (day - today).days > effective.max_advance_days:
            raise ValidationError(f"Bookings can only be made up to {effective.max_advance_days} days in advance.")

    def _unavailable(
        self,
        business: Business,
        validated: ValidatedSlot,
        reason: str | None,
        availability: AvailabilityResult,
        ignore_booking_id: str | None = None,
    ) -> BookingResult:
        day = self._policy.local_date(business, validated.candidate.start)
        alternatives = self._alternatives(business, day, validated.candidate.duration_minutes, ignore_booking_id)
        return BookingResult(
            action="unavailable",
            message=unavailable_message(business, reason, alternatives),
            reason=reason,
            alternatives=alternatives,
            warnings=self._warnings(availability),
        )

    def _alternatives(
        self,
        business: Business,
        day: date,
        duration_minutes: int,
        ignore_booking_id: str | None,
    ) -> list[CandidateInterval]:
        if self._max_alternatives <= 0:
            return []
        now = self._clock()
        try:
            sequence = self._slots.available_slots(business, day, duration_minutes, ignore_booking_id)
            future = (slot for slot in sequence if slot.start > now)
            return list(islice(future, self._max_alternatives))
        except (ConfigError, PersistenceError) as e:
            self._logger.warning(
                "Could not compute alternative slots",
                extra={"business_id": business.id, "operation": "available_slots", "error": str(e)},
            )
            return []

    def _warnings(self, availability: AvailabilityResult) -> tuple[str, ...]:
        if availability.degraded and availability.warning:
            return (availability.warning,)
        return ()

    def _context(self, business: Business, candidate: CandidateInterval, operation: str, **extra: object) -> dict:
        return {
            "business_id": business.id,
            "operation": operation,
            "start": candidate.start.isoformat(),
            "end": candidate.end.isoformat(),
            **extra,
        }

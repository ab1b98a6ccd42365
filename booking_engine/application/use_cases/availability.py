from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from booking_engine.application.exceptions import CalendarUnavailable
from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.application.ports.calendar import CalendarPort
from booking_engine.application.use_cases.policy import PolicyResolver
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import Business
from booking_engine.domain.entities.interval import BusyWindow, CandidateInterval, OpenWindow, overlaps

REASON_OUTSIDE_HOURS = "outside_hours"
REASON_ALREADY_BOOKED = "already_booked"
REASON_FULLY_BOOKED = "fully_booked"
REASON_CALENDAR_BUSY = "calendar_busy"

DEGRADED_WARNING = "External calendar unavailable; availability checked against internal bookings only."


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    reason: str | None = None
    busy_windows: tuple[BusyWindow, ...] = ()
    degraded: bool = False
    warning: str | None = None


@dataclass(frozen=True)
class DaySnapshot:
    """Everything needed to evaluate candidates of one day without further I/O."""

    window: OpenWindow | None
    bookings: tuple[Booking, ...] = ()
    busy_windows: tuple[BusyWindow, ...] = ()
    buffer: timedelta = timedelta(0)
    max_bookings_per_day: int | None = None
    booked_that_day: int = 0
    degraded: bool = False
    warning: str | None = None

    def evaluate(self, candidate: CandidateInterval) -> AvailabilityResult:
        if self.window is None or not self.window.contains(candidate):
            return self._result(False, REASON_OUTSIDE_HOURS)

        # internal ledger first, inflated by the buffer on both ends
        for booking in self.bookings:
            if overlaps(candidate.start, candidate.end, booking.start - self.buffer, booking.end + self.buffer):
                return self._result(False, REASON_ALREADY_BOOKED)

        if self.max_bookings_per_day is not None and self.booked_that_day >= self.max_bookings_per_day:
            return self._result(False, REASON_FULLY_BOOKED)

        busy = tuple(w for w in self.busy_windows if overlaps(candidate.start, candidate.end, w.start, w.end))
        if busy:
            return self._result(False, REASON_CALENDAR_BUSY, busy)

        return self._result(True, None)

    def _result(self, available: bool, reason: str | None, busy: tuple[BusyWindow, ...] = ()) -> AvailabilityResult:
        return AvailabilityResult(
            available=available,
            reason=reason,
            busy_windows=busy,
            degraded=self.degraded,
            warning=self.warning,
        )


class ConflictDetector:
    def __init__(
        self,
        store: BookingStorePort,
        calendar: CalendarPort | None,
        policy: PolicyResolver,
    ) -> None:
        self._store = store
        self._calendar = calendar
        self._policy = policy
        self._logger = logging.getLogger(__name__)

    def check_availability(
        self,
        business: Business,
        candidate: CandidateInterval,
        ignore_booking_id: str | None = None,
    ) -> AvailabilityResult:
        """
        Evaluate one exact interval against business hours, the internal ledger
        and, when bound, the external calendar. Internal conflicts take precedence
        and short-circuit before the calendar is queried.
        """
        day = self._policy.local_date(business, candidate.start)
        window = self._policy.resolve_window(business, day)
        if window is None or not window.contains(candidate):
            return AvailabilityResult(available=False, reason=REASON_OUTSIDE_HOURS)

        snapshot = self._internal_snapshot(business, day, window, ignore_booking_id)
        result = snapshot.evaluate(candidate)
        if not result.available:
            return result

        busy, warning = self._fetch_busy_windows(business, candidate.start, candidate.end)
        if warning:
            return AvailabilityResult(available=True, degraded=True, warning=warning)
        return replace(snapshot, busy_windows=tuple(busy)).evaluate(candidate)

    def day_snapshot(self, business: Business, day: date, ignore_booking_id: str | None = None) -> DaySnapshot:
        """Preload one day's bookings and busy windows, fetching the calendar once for the whole window."""
        window = self._policy.resolve_window(business, day)
        if window is None:
            return DaySnapshot(window=None)

        snapshot = self._internal_snapshot(business, day, window, ignore_booking_id)
        busy, warning = self._fetch_busy_windows(business, window.open, window.close)
        if warning:
            return replace(snapshot, degraded=True, warning=warning)
        return replace(snapshot, busy_windows=tuple(busy))

    def _internal_snapshot(
        self,
        business: Business,
        day: date,
        window: OpenWindow,
        ignore_booking_id: str | None,
    ) -> DaySnapshot:
        effective = self._policy.booking_settings(business)
        buffer = timedelta(minutes=effective.buffer_minutes)
        day_start, day_end = self._policy.day_bounds(business, day)
        # neighbours within the buffer can block edge-of-day candidates
        bookings = [
            b
            for b in self._store.list_confirmed_bookings(business.id, day_start - buffer, day_end + buffer)
            if b.id != ignore_booking_id
        ]
        return DaySnapshot(
            window=window,
            bookings=tuple(bookings),
            buffer=buffer,
            max_bookings_per_day=effective.max_bookings_per_day,
            booked_that_day=sum(1 for b in bookings if day_start <= b.start < day_end),
        )

    def _fetch_busy_windows(
        self,
        business: Business,
        start: datetime,
        end: datetime,
    ) -> tuple[list[BusyWindow], str | None]:
        if business.calendar is None:
            return [], None

        if self._calendar is None:
            self._logger.warning(
                "Calendar bound but no calendar adapter configured",
                extra={"business_id": business.id, "operation": "get_busy_windows"},
            )
            return [], DEGRADED_WARNING

        try:
            return self._calendar.get_busy_windows(business.calendar, start, end), None
        except CalendarUnavailable as e:
            self._logger.warning(
                "Calendar unavailable, degrading to internal-only check",
                extra={
                    "business_id": business.id,
                    "operation": "get_busy_windows",
                    "start": start.isoformat(),
                    "end": end.isoformat(),
                    "error": str(e),
                },
            )
            return [], DEGRADED_WARNING

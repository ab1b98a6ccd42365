from __future__ import annotations

import logging
from datetime import datetime

from booking_engine.application.exceptions import CalendarUnavailable
from booking_engine.application.ports.calendar import CalendarPort
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import CalendarBinding
from booking_engine.domain.entities.interval import BusyWindow, overlaps


class MockCalendar(CalendarPort):
    """In-memory calendar for dev and tests. Set `failure` to make every call raise it."""

    def __init__(self, busy: list[BusyWindow] | None = None) -> None:
        self.busy: list[BusyWindow] = list(busy or [])
        self.events: dict[str, tuple[datetime, datetime, str]] = {}
        self.cancelled: set[str] = set()
        self.failure: CalendarUnavailable | None = None
        self.busy_queries: list[tuple[datetime, datetime]] = []
        self._logger = logging.getLogger(__name__)

    def get_busy_windows(self, binding: CalendarBinding, start: datetime, end: datetime) -> list[BusyWindow]:
        self._maybe_fail()
        self.busy_queries.append((start, end))
        return [w for w in self.busy if overlaps(w.start, w.end, start, end)]

    def create_event(
        self,
        binding: CalendarBinding,
        booking: Booking,
        title: str,
        description: str | None = None,
    ) -> str:
        self._maybe_fail()
        event_id = f"mock_event_{len(self.events) + 1}"
        self.events[event_id] = (booking.start, booking.end, title)
        self._logger.info("Mock calendar event created", extra={"booking_id": booking.id, "operation": "create_event"})
        return event_id

    def update_event(self, binding: CalendarBinding, event_ref: str, start: datetime, end: datetime) -> None:
        self._maybe_fail()
        if event_ref not in self.events:
            raise CalendarUnavailable(f"Unknown event {event_ref}")
        _, _, title = self.events[event_ref]
        self.events[event_ref] = (start, end, title)

    def cancel_event(self, binding: CalendarBinding, event_ref: str, reason: str | None = None) -> None:
        self._maybe_fail()
        self.cancelled.add(event_ref)
        self._logger.info("Mock calendar event cancelled", extra={"operation": "cancel_event", "reason": reason})

    def _maybe_fail(self) -> None:
        if self.failure is not None:
            raise self.failure

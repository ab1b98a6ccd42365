from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import CalendarBinding
from booking_engine.domain.entities.interval import BusyWindow


class CalendarPort(ABC):
    """External calendar. Every method raises CalendarUnavailable on failure."""

    @abstractmethod
    def get_busy_windows(self, binding: CalendarBinding, start: datetime, end: datetime) -> list[BusyWindow]:
        """Return busy windows intersecting [start, end]."""
        raise NotImplementedError

    @abstractmethod
    def create_event(
        self,
        binding: CalendarBinding,
        booking: Booking,
        title: str,
        description: str | None = None,
    ) -> str:
        """Create calendar event. Returns event ref."""
        raise NotImplementedError

    @abstractmethod
    def update_event(self, binding: CalendarBinding, event_ref: str, start: datetime, end: datetime) -> None:
        raise NotImplementedError

    @abstractmethod
    def cancel_event(self, binding: CalendarBinding, event_ref: str, reason: str | None = None) -> None:
        raise NotImplementedError

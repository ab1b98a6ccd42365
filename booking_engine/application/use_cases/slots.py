from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator

from booking_engine.application.exceptions import ValidationError
from booking_engine.application.use_cases.availability import ConflictDetector
from booking_engine.domain.entities.business import Business
from booking_engine.domain.entities.interval import CandidateInterval

DEFAULT_GRANULARITY_MINUTES = 15


class SlotSequence:
    """
    Lazy, finite, restartable sequence of free slots for one day.
    Every iteration takes a fresh snapshot, so restarting reflects new bookings.
    """

    def __init__(
        self,
        detector: ConflictDetector,
        business: Business,
        day: date,
        duration_minutes: int,
        granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
        ignore_booking_id: str | None = None,
    ) -> None:
        self._detector = detector
        self._business = business
        self._day = day
        self._duration = timedelta(minutes=duration_minutes)
        self._step = timedelta(minutes=granularity_minutes)
        self._ignore_booking_id = ignore_booking_id
        self.degraded = False

    def __iter__(self) -> Iterator[CandidateInterval]:
        snapshot = self._detector.day_snapshot(self._business, self._day, self._ignore_booking_id)
        self.degraded = snapshot.degraded
        window = snapshot.window
        if window is None:
            return

        start = window.open
        while start + self._duration <= window.close:
            candidate = CandidateInterval(start=start, end=start + self._duration)
            if snapshot.evaluate(candidate).available:
                yield candidate
            start += self._step

    def first(self, n: int) -> list[CandidateInterval]:
        slots: list[CandidateInterval] = []
        if n <= 0:
            return slots
        for slot in self:
            slots.append(slot)
            if len(slots) >= n:
                break
        return slots


class SlotGenerator:
    def __init__(self, detector: ConflictDetector, granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES) -> None:
        if granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be positive")
        self._detector = detector
        self._granularity = granularity_minutes

    def available_slots(
        self,
        business: Business,
        day: date,
        duration_minutes: int,
        ignore_booking_id: str | None = None,
    ) -> SlotSequence:
        if duration_minutes <= 0:
            raise ValidationError("Duration must be a positive number of minutes")
        return SlotSequence(
            self._detector,
            business,
            day,
            duration_minutes,
            granularity_minutes=self._granularity,
            ignore_booking_id=ignore_booking_id,
        )

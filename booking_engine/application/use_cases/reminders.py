from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from booking_engine.application.exceptions import PersistenceError
from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.application.ports.notifications import NotificationPort
from booking_engine.application.utils.messages import reminder_message
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import Business


@dataclass(frozen=True)
class SweepReport:
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def considered(self) -> int:
        return self.sent + self.failed + self.skipped


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReminderSweep:
    """
    Periodic reminder job. The persisted reminder_sent flag is the only state:
    it is flipped after a confirmed send, so a crash mid-sweep just leaves the
    remaining bookings for the next run.
    """

    def __init__(
        self,
        store: BookingStorePort,
        notifier: NotificationPort,
        clock: Callable[[], datetime] = _utc_now,
        send_delay_seconds: float = 1.0,
        max_attempts: int = 2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock
        self._send_delay_seconds = send_delay_seconds
        self._max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._logger = logging.getLogger(__name__)

    def run_sweep(self, threshold_hours: float = 24) -> SweepReport:
        now = self._clock()
        candidates = self._store.list_reminder_candidates(now, now + timedelta(hours=threshold_hours))
        self._logger.info("Reminder sweep started", extra={"operation": "run_sweep", "reason": f"{len(candidates)} due"})

        sent = failed = skipped = 0
        businesses: dict[str, Business | None] = {}
        for index, booking in enumerate(candidates):
            if index and self._send_delay_seconds > 0:
                self._sleep(self._send_delay_seconds)

            if booking.business_id not in businesses:
                businesses[booking.business_id] = self._store.get_business(booking.business_id)
            business = businesses[booking.business_id]
            if business is None:
                self._logger.warning(
                    "Reminder skipped, business missing",
                    extra={"business_id": booking.business_id, "booking_id": booking.id},
                )
                skipped += 1
                continue

            if not self._send(business, booking):
                failed += 1
                continue

            try:
                flipped = self._store.mark_reminder_sent(booking.id)
            except PersistenceError as e:
                # left false, so the next run retries (at-least-once)
                self._logger.error(
                    "Reminder sent but flag not persisted",
                    extra={"business_id": business.id, "booking_id": booking.id, "error": str(e)},
                )
                failed += 1
                continue

            if flipped:
                sent += 1
            else:
                skipped += 1

        report = SweepReport(sent=sent, failed=failed, skipped=skipped)
        self._logger.info(
            "Reminder sweep finished",
            extra={"operation": "run_sweep", "reason": f"sent={sent} failed={failed} skipped={skipped}"},
        )
        return report

    def _send(self, business: Business, booking: Booking) -> bool:
        text = reminder_message(business, booking)
        for attempt in range(1, self._max_attempts + 1):
            try:
                if self._notifier.send_text(recipient_id=booking.customer_phone, text=text):
                    return True
            except Exception as e:
                self._logger.warning(
                    "Reminder send raised",
                    extra={"business_id": business.id, "booking_id": booking.id, "error": str(e)},
                )
            self._logger.info(
                "Reminder send failed",
                extra={"business_id": business.id, "booking_id": booking.id, "reason": f"attempt {attempt}"},
            )
            if attempt < self._max_attempts and self._send_delay_seconds > 0:
                self._sleep(self._send_delay_seconds)
        return False

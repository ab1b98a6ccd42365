from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from datetime import datetime
from typing import Callable

from booking_engine.application.exceptions import CalendarUnavailable
from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.application.ports.calendar import CalendarPort
from booking_engine.application.utils.messages import event_description
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import Business
from booking_engine.domain.entities.interval import CandidateInterval

LOCK_STRIPES = 64


class CalendarMirror:
    """
    Best-effort copy of ledger changes to the external calendar.

    The ledger is authoritative: mirror failures are logged and never raised,
    and with an executor the work runs outside the caller's request. Queued
    work may run after later ledger changes, so every action re-reads the
    booking and converges the event to its current state. Actions for one
    booking never run concurrently.
    """

    def __init__(
        self,
        calendar: CalendarPort | None,
        store: BookingStorePort,
        executor: Executor | None = None,
    ) -> None:
        self._calendar = calendar
        self._store = store
        self._executor = executor
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]
        self._logger = logging.getLogger(__name__)

    def mirror_created(self, business: Business, booking: Booking) -> None:
        if self._bound(business):
            self._submit("create_event", business, booking, self._create)

    def mirror_rescheduled(self, business: Business, booking: Booking) -> None:
        if not self._bound(business):
            return
        if booking.calendar_event_ref:
            self._submit("update_event", business, booking, self._update)
        else:
            self._submit("create_event", business, booking, self._create)

    def mirror_cancelled(self, business: Business, booking: Booking) -> None:
        # submitted even without a ref; a create may be in flight
        if self._bound(business):
            self._submit("cancel_event", business, booking, self._cancel)

    def retry_pending(self, business: Business, now: datetime) -> int:
        """Mirror upcoming bookings whose create failed earlier. Runs inline; returns how many succeeded."""
        if not self._bound(business):
            return 0
        mirrored = 0
        for booking in self._store.list_unmirrored_bookings(business.id, now):
            if self._run("create_event", business, booking, self._create):
                mirrored += 1
        return mirrored

    def _bound(self, business: Business) -> bool:
        return self._calendar is not None and business.calendar is not None

    def _submit(
        self,
        operation: str,
        business: Business,
        booking: Booking,
        action: Callable[[Business, Booking], None],
    ) -> None:
        if self._executor is None:
            self._run(operation, business, booking, action)
            return
        self._executor.submit(self._run, operation, business, booking, action)

    def _run(
        self,
        operation: str,
        business: Business,
        booking: Booking,
        action: Callable[[Business, Booking], None],
    ) -> bool:
        context = {
            "business_id": business.id,
            "booking_id": booking.id,
            "operation": operation,
            "start": booking.start.isoformat(),
            "end": booking.end.isoformat(),
        }
        try:
            with self._locks[hash(booking.id) % LOCK_STRIPES]:
                action(business, booking)
        except CalendarUnavailable as e:
            self._logger.warning("Calendar mirror failed", extra={**context, "error": str(e)})
            return False
        except Exception as e:
            self._logger.exception("Unexpected calendar mirror error", extra={**context, "error": str(e)})
            return False
        self._logger.info("Calendar mirrored", extra=context)
        return True

    def _current(self, booking: Booking) -> Booking:
        return self._store.get_booking(booking.id) or booking

    def _create(self, business: Business, booking: Booking) -> None:
        current = self._current(booking)
        if current.calendar_event_ref:
            # an earlier create already won; its event may hold an older interval
            self._converge(business, current, current.calendar_event_ref, None)
            return
        if not current.is_confirmed:
            return

        event_ref = self._calendar.create_event(
            business.calendar,
            current,
            title=f"{current.service_name} - {current.customer_name or 'Customer'}",
            description=event_description(current),
        )
        self._store.set_calendar_event(current.id, event_ref)
        self._converge(business, self._current(current), event_ref, current.interval)

    def _update(self, business: Business, booking: Booking) -> None:
        current = self._current(booking)
        if current.calendar_event_ref:
            self._converge(business, current, current.calendar_event_ref, None)

    def _cancel(self, business: Business, booking: Booking) -> None:
        current = self._current(booking)
        event_ref = current.calendar_event_ref or booking.calendar_event_ref
        if not event_ref:
            return
        self._calendar.cancel_event(business.calendar, event_ref, current.cancellation_reason)

    def _converge(
        self,
        business: Business,
        current: Booking,
        event_ref: str,
        mirrored_interval: CandidateInterval | None,
    ) -> None:
        """Bring an existing event in line with the booking as the ledger has it now."""
        if not current.is_confirmed:
            self._calendar.cancel_event(business.calendar, event_ref, current.cancellation_reason)
        elif current.interval != mirrored_interval:
            self._calendar.update_event(business.calendar, event_ref, current.start, current.end)

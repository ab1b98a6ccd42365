from __future__ import annotations

import logging
from concurrent.futures import Executor

from booking_engine.application.ports.notifications import NotificationPort
from booking_engine.application.utils.messages import owner_booking_message, owner_cancellation_message
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import Business


class OwnerAlerts:
    """Best-effort texts to the business owner on new and cancelled bookings. Failures are logged, never raised."""

    def __init__(self, notifier: NotificationPort | None, executor: Executor | None = None) -> None:
        self._notifier = notifier
        self._executor = executor
        self._logger = logging.getLogger(__name__)

    def booking_created(self, business: Business, booking: Booking) -> None:
        self._submit("owner_booking_alert", business, booking, owner_booking_message(business, booking))

    def booking_cancelled(self, business: Business, booking: Booking) -> None:
        self._submit("owner_cancellation_alert", business, booking, owner_cancellation_message(business, booking))

    def _submit(self, operation: str, business: Business, booking: Booking, text: str) -> None:
        if self._notifier is None or not business.owner_phone:
            return
        if self._executor is None:
            self._send(operation, business, booking, text)
            return
        self._executor.submit(self._send, operation, business, booking, text)

    def _send(self, operation: str, business: Business, booking: Booking, text: str) -> bool:
        context = {"business_id": business.id, "booking_id": booking.id, "operation": operation}
        try:
            sent = self._notifier.send_text(recipient_id=business.owner_phone, text=text)
        except Exception as e:
            self._logger.exception("Owner alert raised", extra={**context, "error": str(e)})
            return False
        if not sent:
            self._logger.warning("Owner alert not delivered", extra=context)
            return False
        self._logger.info("Owner alerted", extra=context)
        return True

from __future__ import annotations

import logging

from booking_engine.application.ports.notifications import NotificationPort


class MockNotifier(NotificationPort):
    """Records outgoing texts. `fail_for` makes sends to those recipients fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail_for: set[str] = set()
        self._logger = logging.getLogger(__name__)

    def send_text(self, recipient_id: str, text: str) -> bool:
        if recipient_id in self.fail_for:
            self._logger.info("Mock send failed", extra={"reason": recipient_id})
            return False
        self.sent.append((recipient_id, text))
        self._logger.info("Mock send", extra={"reason": recipient_id})
        return True

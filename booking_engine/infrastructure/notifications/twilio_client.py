from __future__ import annotations

import logging

import httpx

from booking_engine.application.ports.notifications import NotificationPort
from booking_engine.core.config import settings


class TwilioNotifier(NotificationPort):
    """Sends WhatsApp/SMS text through the Twilio Messages REST API."""

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._account_sid = account_sid or settings.TWILIO_ACCOUNT_SID
        self._auth_token = auth_token or settings.TWILIO_AUTH_TOKEN
        self._from_number = from_number or settings.TWILIO_FROM_NUMBER
        self._base_url = (base_url or settings.TWILIO_BASE_URL).rstrip("/")
        self._client = client or httpx.Client(timeout=timeout or settings.NOTIFY_TIMEOUT_SECONDS)
        self._logger = logging.getLogger(__name__)

        if not self._account_sid or not self._auth_token:
            raise ValueError("TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN are required for Twilio notifications")

    def send_text(self, recipient_id: str, text: str) -> bool:
        to = recipient_id
        if self._from_number.startswith("whatsapp:") and not to.startswith("whatsapp:"):
            to = f"whatsapp:{to}"

        url = f"{self._base_url}/Accounts/{self._account_sid}/Messages.json"
        data = {"From": self._from_number, "To": to, "Body": text}
        try:
            resp = self._client.post(url, data=data, auth=(self._account_sid, self._auth_token))
        except httpx.HTTPError as e:
            self._logger.error("Twilio send failed", extra={"operation": "send_text", "error": str(e)})
            return False

        if resp.status_code >= 400:
            try:
                error_json = resp.json()
                error_message = error_json.get("message")
                error_code = error_json.get("code")
            except ValueError:
                error_message = resp.text
                error_code = None
            self._logger.error(
                "Twilio send failed",
                extra={
                    "operation": "send_text",
                    "reason": f"status={resp.status_code} code={error_code}",
                    "error": error_message,
                },
            )
            return False

        self._logger.info("Message sent", extra={"operation": "send_text"})
        return True

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable
from urllib.parse import quote

import httpx

from booking_engine.application.exceptions import CalendarUnavailable
from booking_engine.application.ports.calendar import CalendarPort
from booking_engine.core.config import settings
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import CalendarBinding
from booking_engine.domain.entities.interval import BusyWindow


def _static_token(credential_ref: str) -> str | None:
    return settings.GOOGLE_CALENDAR_ACCESS_TOKEN


class GoogleCalendar(CalendarPort):
    """
    Google Calendar v3 over httpx. Access tokens come from `token_provider`,
    keyed by the binding's credential ref; obtaining and refreshing them is
    someone else's job. Every failure surfaces as CalendarUnavailable.
    """

    def __init__(
        self,
        token_provider: Callable[[str], str | None] = _static_token,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._base_url = (base_url or settings.GOOGLE_CALENDAR_BASE_URL).rstrip("/")
        self._client = client or httpx.Client(timeout=timeout or settings.CALENDAR_TIMEOUT_SECONDS)
        self._logger = logging.getLogger(__name__)

    def get_busy_windows(self, binding: CalendarBinding, start: datetime, end: datetime) -> list[BusyWindow]:
        payload = {
            "timeMin": start.isoformat(),
            "timeMax": end.isoformat(),
            "items": [{"id": binding.calendar_id}],
        }
        data = self._request("POST", "/freeBusy", binding, json=payload)

        calendar = (data.get("calendars") or {}).get(binding.calendar_id) or {}
        if calendar.get("errors"):
            raise CalendarUnavailable(f"Free/busy query failed: {calendar['errors']}")

        windows: list[BusyWindow] = []
        for busy in calendar.get("busy", []):
            try:
                windows.append(BusyWindow(start=_parse_ts(busy["start"]), end=_parse_ts(busy["end"])))
            except (KeyError, ValueError, AttributeError):
                self._logger.warning("Skipping malformed busy window", extra={"error": str(busy)})
        return windows

    def create_event(
        self,
        binding: CalendarBinding,
        booking: Booking,
        title: str,
        description: str | None = None,
    ) -> str:
        payload = {
            "summary": title,
            "description": description or "",
            "start": {"dateTime": booking.start.isoformat()},
            "end": {"dateTime": booking.end.isoformat()},
            "extendedProperties": {
                "private": {
                    "bookingId": booking.id,
                    "businessId": booking.business_id,
                    "customerPhone": booking.customer_phone,
                    "source": "booking-engine",
                }
            },
        }
        data = self._request("POST", f"/calendars/{quote(binding.calendar_id, safe='')}/events", binding, json=payload)
        event_id = data.get("id")
        if not event_id:
            raise CalendarUnavailable("No event ID returned from Google Calendar")

        self._logger.info("Calendar event created", extra={"booking_id": booking.id, "operation": "create_event"})
        return str(event_id)

    def update_event(self, binding: CalendarBinding, event_ref: str, start: datetime, end: datetime) -> None:
        payload = {"start": {"dateTime": start.isoformat()}, "end": {"dateTime": end.isoformat()}}
        self._request("PATCH", self._event_path(binding, event_ref), binding, json=payload)

    def cancel_event(self, binding: CalendarBinding, event_ref: str, reason: str | None = None) -> None:
        payload: dict[str, Any] = {"status": "cancelled"}
        if reason:
            payload["description"] = f"CANCELLED: {reason}"
        self._request("PATCH", self._event_path(binding, event_ref), binding, json=payload)

    def _event_path(self, binding: CalendarBinding, event_ref: str) -> str:
        return f"/calendars/{quote(binding.calendar_id, safe='')}/events/{quote(event_ref, safe='')}"

    def _request(self, method: str, path: str, binding: CalendarBinding, json: dict[str, Any]) -> dict[str, Any]:
        token = self._token_provider(binding.credential_ref)
        if not token:
            raise CalendarUnavailable("No access token for calendar credential", auth_expired=True)

        headers = {"Authorization": f"Bearer {token}"}
        try:
            resp = self._client.request(method, f"{self._base_url}{path}", json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise CalendarUnavailable(f"Google Calendar timed out: {e}") from e
        except httpx.HTTPError as e:
            raise CalendarUnavailable(f"Google Calendar request failed: {e}") from e

        if resp.status_code in (401, 403):
            self._logger.warning(
                "Google Calendar rejected credentials",
                extra={"operation": path, "reason": resp.status_code},
            )
            raise CalendarUnavailable("Google Calendar credentials expired or revoked", auth_expired=True)
        if resp.status_code >= 400:
            self._logger.error(
                "Google Calendar request failed",
                extra={"operation": path, "reason": resp.status_code, "error": resp.text[:200]},
            )
            raise CalendarUnavailable(f"Google Calendar returned HTTP {resp.status_code}")

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise CalendarUnavailable("Google Calendar returned invalid JSON") from e


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))

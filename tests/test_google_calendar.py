"""
Tests for the Google Calendar adapter against a mocked HTTP transport.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from booking_engine.application.exceptions import CalendarUnavailable
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import CalendarBinding
from booking_engine.domain.entities.interval import BusyWindow
from booking_engine.infrastructure.calendar.google_calendar import GoogleCalendar

BINDING = CalendarBinding("cred-1", "studio@example.com")
START = datetime(2030, 6, 5, 6, 0, tzinfo=timezone.utc)
END = datetime(2030, 6, 5, 14, 0, tzinfo=timezone.utc)


def _calendar(handler, token="tok-123"):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GoogleCalendar(token_provider=lambda ref: token, base_url="https://calendar.test/v3", client=client)


def _booking():
    return Booking(
        id="bk-1",
        business_id="biz-1",
        service_id="svc-haircut",
        service_name="Haircut",
        customer_phone="+254711000111",
        start=START,
        end=START.replace(hour=6, minute=30),
    )


def test_free_busy_windows_are_parsed():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "calendars": {
                    "studio@example.com": {
                        "busy": [
                            {"start": "2030-06-05T07:00:00Z", "end": "2030-06-05T08:00:00Z"},
                            {"start": "broken"},
                        ]
                    }
                }
            },
        )

    windows = _calendar(handler).get_busy_windows(BINDING, START, END)

    assert windows == [
        BusyWindow(
            datetime(2030, 6, 5, 7, 0, tzinfo=timezone.utc),
            datetime(2030, 6, 5, 8, 0, tzinfo=timezone.utc),
        )
    ]
    assert seen["path"] == "/v3/freeBusy"
    assert seen["auth"] == "Bearer tok-123"
    assert seen["body"]["items"] == [{"id": "studio@example.com"}]
    assert seen["body"]["timeMin"] == START.isoformat()


def test_free_busy_calendar_errors_raise():
    def handler(request):
        return httpx.Response(200, json={"calendars": {"studio@example.com": {"errors": [{"reason": "notFound"}]}}})

    with pytest.raises(CalendarUnavailable):
        _calendar(handler).get_busy_windows(BINDING, START, END)


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_credentials_flag_auth_expiry(status):
    with pytest.raises(CalendarUnavailable) as exc:
        _calendar(lambda request: httpx.Response(status)).get_busy_windows(BINDING, START, END)

    assert exc.value.auth_expired


def test_server_errors_and_timeouts_raise_calendar_unavailable():
    with pytest.raises(CalendarUnavailable) as exc:
        _calendar(lambda request: httpx.Response(503, text="backend error")).get_busy_windows(BINDING, START, END)
    assert not exc.value.auth_expired

    def timeout(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(CalendarUnavailable):
        _calendar(timeout).get_busy_windows(BINDING, START, END)


def test_missing_token_never_hits_the_network():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(CalendarUnavailable) as exc:
        _calendar(handler, token=None).get_busy_windows(BINDING, START, END)

    assert exc.value.auth_expired
    assert calls == []


def test_create_update_and_cancel_event():
    requests = []

    def handler(request):
        requests.append((request.method, request.url.path, json.loads(request.content)))
        if request.method == "POST":
            return httpx.Response(200, json={"id": "evt-42"})
        return httpx.Response(200, json={"id": "evt-42", "status": "confirmed"})

    calendar = _calendar(handler)

    event_ref = calendar.create_event(BINDING, _booking(), title="Haircut - Amina", description="Phone: +254711000111")
    calendar.update_event(BINDING, event_ref, START.replace(hour=7), START.replace(hour=7, minute=30))
    calendar.cancel_event(BINDING, event_ref, reason="customer request")

    assert event_ref == "evt-42"
    method, path, body = requests[0]
    assert (method, path) == ("POST", "/v3/calendars/studio@example.com/events")
    assert body["summary"] == "Haircut - Amina"
    assert body["extendedProperties"]["private"]["bookingId"] == "bk-1"

    assert requests[1][:2] == ("PATCH", "/v3/calendars/studio@example.com/events/evt-42")
    assert requests[1][2]["start"] == {"dateTime": "2030-06-05T07:00:00+00:00"}
    assert requests[2][2]["status"] == "cancelled"
    assert requests[2][2]["description"] == "CANCELLED: customer request"


def test_create_event_without_id_raises():
    with pytest.raises(CalendarUnavailable):
        _calendar(lambda request: httpx.Response(200, json={})).create_event(BINDING, _booking(), title="Haircut")

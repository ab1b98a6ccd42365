"""
Tests for texts to the business owner.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import timezone

from booking_engine.application.use_cases.booking import BookingOrchestrator
from booking_engine.application.use_cases.calendar_mirror import CalendarMirror
from booking_engine.application.use_cases.owner_alerts import OwnerAlerts
from booking_engine.domain.entities.booking_request import BookingRequest
from booking_engine.infrastructure.notifications.mock_notifier import MockNotifier

from conftest import NOW

OWNER = "+254700999000"


class ExplodingNotifier(MockNotifier):
    def send_text(self, recipient_id, text):
        raise ConnectionError("twilio unreachable")


def _orchestrator(store, detector, slot_generator, policy, calendar, notifier):
    return BookingOrchestrator(
        store=store,
        detector=detector,
        slots=slot_generator,
        mirror=CalendarMirror(calendar=calendar, store=store),
        policy=policy,
        clock=lambda: NOW.astimezone(timezone.utc),
        alerts=OwnerAlerts(notifier),
    )


def _request():
    return BookingRequest(
        customer_phone="+254711000111",
        customer_name="Amina",
        service="Haircut",
        date="2030-06-05",
        time="10:00",
    )


def test_owner_is_texted_on_booking_and_cancellation(store, business, services, detector, slot_generator, policy, calendar):
    store.save_business(replace(business, owner_phone=OWNER))
    notifier = MockNotifier()
    orchestrator = _orchestrator(store, detector, slot_generator, policy, calendar, notifier)

    booked = orchestrator.book("biz-1", _request()).booking
    orchestrator.cancel(booked.id, "running late")

    assert [recipient for recipient, _ in notifier.sent] == [OWNER, OWNER]
    created_text, cancelled_text = (text for _, text in notifier.sent)
    assert "New booking!" in created_text
    assert "Customer: Amina" in created_text
    assert "Time: 10:00 AM" in created_text
    assert f"Booking ID: {booked.id}" in created_text
    assert "Booking cancelled" in cancelled_text
    assert "Reason: running late" in cancelled_text


def test_cancellation_without_reason_says_not_specified(store, business, services, detector, slot_generator, policy, calendar):
    store.save_business(replace(business, owner_phone=OWNER))
    notifier = MockNotifier()
    orchestrator = _orchestrator(store, detector, slot_generator, policy, calendar, notifier)

    booked = orchestrator.book("biz-1", _request()).booking
    orchestrator.cancel(booked.id)

    assert "Reason: Not specified" in notifier.sent[-1][1]


def test_failing_owner_text_never_breaks_booking(store, business, services, detector, slot_generator, policy, calendar):
    store.save_business(replace(business, owner_phone=OWNER))
    orchestrator = _orchestrator(store, detector, slot_generator, policy, calendar, ExplodingNotifier())

    result = orchestrator.book("biz-1", _request())
    assert result.action == "booked"
    assert store.get_booking(result.booking.id).is_confirmed
    assert orchestrator.cancel(result.booking.id).action == "cancelled"


def test_undelivered_owner_text_is_not_retried(store, business, services, detector, slot_generator, policy, calendar):
    store.save_business(replace(business, owner_phone=OWNER))
    notifier = MockNotifier()
    notifier.fail_for.add(OWNER)
    orchestrator = _orchestrator(store, detector, slot_generator, policy, calendar, notifier)

    assert orchestrator.book("biz-1", _request()).action == "booked"
    assert notifier.sent == []


def test_no_owner_phone_means_no_text(store, business, services, detector, slot_generator, policy, calendar):
    notifier = MockNotifier()
    orchestrator = _orchestrator(store, detector, slot_generator, policy, calendar, notifier)

    booked = orchestrator.book("biz-1", _request()).booking
    orchestrator.cancel(booked.id)

    assert notifier.sent == []

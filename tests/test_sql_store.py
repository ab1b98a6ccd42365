"""
Tests for the SQLAlchemy ledger on a throwaway SQLite file.
"""

from __future__ import annotations

from datetime import timezone

import pytest

from booking_engine.application.exceptions import ConflictError, PersistenceError
from booking_engine.application.use_cases.availability import ConflictDetector
from booking_engine.application.use_cases.booking import BookingOrchestrator
from booking_engine.application.use_cases.calendar_mirror import CalendarMirror
from booking_engine.application.use_cases.policy import PolicyResolver
from booking_engine.application.use_cases.slots import SlotGenerator
from booking_engine.domain.entities.booking_request import BookingRequest
from booking_engine.domain.entities.business import BookingSettings, Business, CalendarBinding, HoursPolicy
from booking_engine.domain.entities.service import Service
from booking_engine.infrastructure.calendar.mock_calendar import MockCalendar
from booking_engine.infrastructure.store.database import build_engine, build_session_factory, init_schema
from booking_engine.infrastructure.store.sql_store import SqlBookingStore

from conftest import DAY, NOW, SUNDAY, WEEKLY_HOURS, add_booking, at


@pytest.fixture
def sql_store(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    init_schema(engine)
    yield SqlBookingStore(build_session_factory(engine))
    engine.dispose()


@pytest.fixture
def sql_business(sql_store):
    business = Business(
        id="biz-1",
        name="Studio One",
        timezone="Africa/Nairobi",
        hours=HoursPolicy(weekly=dict(WEEKLY_HOURS), overrides={SUNDAY: "11:00-13:00"}),
        settings=BookingSettings(buffer_minutes=15, late_cancellation_fee=5.0),
        calendar=CalendarBinding("cred-1", "studio@example.com"),
        owner_phone="+254700999999",
    )
    sql_store.save_business(business)
    sql_store.save_service(Service(id="svc-haircut", business_id="biz-1", name="Haircut", duration_minutes=30, price=25))
    return business


def test_business_round_trip(sql_store, sql_business):
    loaded = sql_store.get_business("biz-1")

    assert loaded == sql_business
    assert loaded.hours.overrides == {SUNDAY: "11:00-13:00"}
    assert loaded.settings.max_advance_days is None
    assert sql_store.get_business("missing") is None


def test_services_round_trip(sql_store, sql_business):
    sql_store.save_service(Service(id="svc-off", business_id="biz-1", name="Old Perm", duration_minutes=60, active=False))

    assert [s.id for s in sql_store.list_services("biz-1")] == ["svc-haircut"]
    assert [s.id for s in sql_store.list_services("biz-1", active_only=False)] == ["svc-haircut", "svc-off"]
    assert sql_store.get_service("svc-haircut").price == 25


def test_booking_times_come_back_as_utc(sql_store, sql_business):
    booking = add_booking(sql_store, at(10), at(10, 30))

    loaded = sql_store.get_booking(booking.id)
    assert loaded.start == at(10)
    assert loaded.start.tzinfo == timezone.utc
    assert loaded.is_confirmed


def test_overlapping_insert_is_rejected(sql_store, sql_business):
    add_booking(sql_store, at(10), at(10, 30))

    with pytest.raises(ConflictError) as exc:
        add_booking(sql_store, at(10, 15), at(10, 45))
    assert exc.value.reason == "already_booked"

    # touching endpoints are fine
    add_booking(sql_store, at(10, 30), at(11))
    assert len(sql_store.list_confirmed_bookings("biz-1", at(0), at(23))) == 2


def test_cancelled_bookings_free_the_interval(sql_store, sql_business):
    booking = add_booking(sql_store, at(10), at(10, 30))

    cancelled = sql_store.cancel_booking(booking.id, "no show")
    assert cancelled.status == "cancelled"
    assert cancelled.cancellation_reason == "no show"

    add_booking(sql_store, at(10), at(10, 30))
    assert sql_store.get_booking(booking.id).status == "cancelled"


def test_second_cancel_is_a_conflict_and_keeps_the_first_reason(sql_store, sql_business):
    booking = add_booking(sql_store, at(10), at(10, 30))
    sql_store.cancel_booking(booking.id, "no show")

    with pytest.raises(ConflictError) as excinfo:
        sql_store.cancel_booking(booking.id, "duplicate request")
    assert excinfo.value.reason == "not_confirmed"
    assert sql_store.get_booking(booking.id).cancellation_reason == "no show"
    with pytest.raises(PersistenceError):
        sql_store.cancel_booking("missing", None)


def test_insert_for_unknown_business_fails(sql_store, sql_business):
    with pytest.raises(PersistenceError):
        add_booking(sql_store, at(10), at(10, 30), business_id="biz-unknown")


def test_reschedule_conflict_leaves_booking_untouched(sql_store, sql_business):
    add_booking(sql_store, at(10), at(10, 30))
    other = add_booking(sql_store, at(12), at(12, 30))

    with pytest.raises(ConflictError):
        sql_store.reschedule_booking(other.id, at(10, 15), at(10, 45))
    assert sql_store.get_booking(other.id).start == at(12)

    moved = sql_store.reschedule_booking(other.id, at(12, 15), at(12, 45))
    assert moved.start == at(12, 15)
    with pytest.raises(PersistenceError):
        sql_store.reschedule_booking("missing", at(13), at(13, 30))


def test_reminder_flag_is_claimed_once(sql_store, sql_business):
    booking = add_booking(sql_store, at(10), at(10, 30))

    assert [b.id for b in sql_store.list_reminder_candidates(at(0), at(23))] == [booking.id]
    assert sql_store.mark_reminder_sent(booking.id) is True
    assert sql_store.mark_reminder_sent(booking.id) is False
    assert sql_store.list_reminder_candidates(at(0), at(23)) == []


def test_customer_and_unmirrored_queries(sql_store, sql_business):
    mine = add_booking(sql_store, at(10), at(10, 30), phone="+254711000111")
    add_booking(sql_store, at(12), at(12, 30), phone="+254722000222")
    sql_store.set_calendar_event(mine.id, "evt-1")

    assert [b.id for b in sql_store.list_customer_bookings("biz-1", "+254711000111", at(0))] == [mine.id]
    assert [b.customer_phone for b in sql_store.list_unmirrored_bookings("biz-1", at(0))] == ["+254722000222"]
    assert sql_store.get_booking(mine.id).calendar_event_ref == "evt-1"


def test_orchestrator_on_sql_ledger(sql_store, sql_business):
    calendar = MockCalendar()
    policy = PolicyResolver()
    detector = ConflictDetector(store=sql_store, calendar=calendar, policy=policy)
    orchestrator = BookingOrchestrator(
        store=sql_store,
        detector=detector,
        slots=SlotGenerator(detector),
        mirror=CalendarMirror(calendar=calendar, store=sql_store),
        policy=policy,
        clock=lambda: NOW.astimezone(timezone.utc),
    )
    request = BookingRequest(customer_phone="+254711000111", service="Haircut", date=DAY.isoformat(), time="10:00")

    booked = orchestrator.book("biz-1", request)
    assert booked.action == "booked"
    assert sql_store.get_booking(booked.booking.id).calendar_event_ref == "mock_event_1"

    again = orchestrator.book("biz-1", request)
    assert again.action == "unavailable"
    assert again.reason == "already_booked"
    assert len(again.alternatives) == 3

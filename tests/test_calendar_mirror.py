"""
Tests for mirroring when calendar work runs after later ledger changes.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future
from datetime import timezone

from booking_engine.application.use_cases.availability import ConflictDetector
from booking_engine.application.use_cases.booking import BookingOrchestrator
from booking_engine.application.use_cases.calendar_mirror import CalendarMirror
from booking_engine.application.use_cases.policy import PolicyResolver
from booking_engine.application.use_cases.slots import SlotGenerator
from booking_engine.domain.entities.booking_request import BookingRequest
from booking_engine.infrastructure.calendar.mock_calendar import MockCalendar

from conftest import NOW, at, bind_calendar


class DeferredExecutor(Executor):
    """Queues submitted work until `drain` runs it in order."""

    def __init__(self):
        self.queued = []

    def submit(self, fn, *args, **kwargs):
        self.queued.append((fn, args, kwargs))
        return Future()

    def drain(self):
        while self.queued:
            fn, args, kwargs = self.queued.pop(0)
            fn(*args, **kwargs)


class HookedCalendar(MockCalendar):
    """Runs `on_create` while an event is being created, like a request landing mid-call."""

    def __init__(self):
        super().__init__()
        self.on_create = None

    def create_event(self, binding, booking, title, description=None):
        event_ref = super().create_event(binding, booking, title, description)
        if self.on_create is not None:
            hook, self.on_create = self.on_create, None
            hook()
        return event_ref


def _deferred_orchestrator(store, calendar, executor):
    policy = PolicyResolver()
    detector = ConflictDetector(store=store, calendar=calendar, policy=policy)
    return BookingOrchestrator(
        store=store,
        detector=detector,
        slots=SlotGenerator(detector),
        mirror=CalendarMirror(calendar=calendar, store=store, executor=executor),
        policy=policy,
        clock=lambda: NOW.astimezone(timezone.utc),
    )


def _request(time="10:00"):
    return BookingRequest(customer_phone="+254711000111", service="Haircut", date="2030-06-05", time=time)


def _live_events(calendar):
    return {ref: event for ref, event in calendar.events.items() if ref not in calendar.cancelled}


def test_cancel_before_queued_create_leaves_no_live_event(store, business, services):
    bind_calendar(store, business)
    calendar = MockCalendar()
    executor = DeferredExecutor()
    orchestrator = _deferred_orchestrator(store, calendar, executor)

    booked = orchestrator.book("biz-1", _request()).booking
    assert orchestrator.cancel(booked.id, "plans changed").action == "cancelled"
    executor.drain()

    assert calendar.events == {}
    assert store.get_booking(booked.id).calendar_event_ref is None


def test_cancel_landing_during_create_cancels_the_new_event(store, business, services):
    bind_calendar(store, business)
    calendar = HookedCalendar()
    executor = DeferredExecutor()
    orchestrator = _deferred_orchestrator(store, calendar, executor)

    booked = orchestrator.book("biz-1", _request()).booking
    calendar.on_create = lambda: orchestrator.cancel(booked.id, "plans changed")
    executor.drain()

    assert store.get_booking(booked.id).status == "cancelled"
    assert list(calendar.events) == ["mock_event_1"]
    assert _live_events(calendar) == {}


def test_reschedule_before_queued_create_mirrors_one_event(store, business, services):
    bind_calendar(store, business)
    calendar = MockCalendar()
    executor = DeferredExecutor()
    orchestrator = _deferred_orchestrator(store, calendar, executor)

    booked = orchestrator.book("biz-1", _request()).booking
    assert orchestrator.reschedule(booked.id, "2030-06-05", "11:00").action == "rescheduled"
    executor.drain()

    assert list(calendar.events) == ["mock_event_1"]
    assert calendar.events["mock_event_1"][:2] == (at(11), at(11, 30))
    assert store.get_booking(booked.id).calendar_event_ref == "mock_event_1"


def test_reschedule_landing_during_create_moves_the_new_event(store, business, services):
    bind_calendar(store, business)
    calendar = HookedCalendar()
    executor = DeferredExecutor()
    orchestrator = _deferred_orchestrator(store, calendar, executor)

    booked = orchestrator.book("biz-1", _request()).booking
    calendar.on_create = lambda: orchestrator.reschedule(booked.id, "2030-06-05", "14:00")
    executor.drain()

    assert list(calendar.events) == ["mock_event_1"]
    assert calendar.events["mock_event_1"][:2] == (at(14), at(14, 30))
    assert _live_events(calendar) == calendar.events


def test_unbound_business_is_never_mirrored(store, business, services):
    calendar = MockCalendar()
    executor = DeferredExecutor()
    orchestrator = _deferred_orchestrator(store, calendar, executor)

    booked = orchestrator.book("biz-1", _request()).booking
    orchestrator.cancel(booked.id)

    assert executor.queued == []
    assert calendar.events == {}

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from booking_engine.application.use_cases.availability import ConflictDetector
from booking_engine.application.use_cases.booking import BookingOrchestrator
from booking_engine.application.use_cases.calendar_mirror import CalendarMirror
from booking_engine.application.use_cases.policy import PolicyResolver
from booking_engine.application.use_cases.slots import SlotGenerator
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import BookingSettings, Business, CalendarBinding, HoursPolicy
from booking_engine.domain.entities.service import Service
from booking_engine.infrastructure.calendar.mock_calendar import MockCalendar
from booking_engine.infrastructure.store.memory_store import MemoryBookingStore

TZ = ZoneInfo("Africa/Nairobi")
DAY = date(2030, 6, 5)  # Wednesday
SUNDAY = date(2030, 6, 9)
NOW = datetime(2030, 6, 3, 8, 0, tzinfo=TZ)  # Monday morning

WEEKLY_HOURS = {
    "mon": "09:00-17:00",
    "tue": "09:00-17:00",
    "wed": "09:00-17:00",
    "thu": "09:00-17:00",
    "fri": "09:00-17:00",
    "sat": "10:00-14:00",
    "sun": "closed",
}


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    """Business-local wall clock time as a UTC datetime."""
    return datetime.combine(day, time(hour, minute), tzinfo=TZ).astimezone(timezone.utc)


def add_booking(
    store: MemoryBookingStore,
    start: datetime,
    end: datetime,
    business_id: str = "biz-1",
    phone: str = "+254700000001",
    booking_id: str | None = None,
) -> Booking:
    return store.insert_booking(
        Booking(
            id=booking_id or uuid.uuid4().hex,
            business_id=business_id,
            service_id="svc-haircut",
            service_name="Haircut",
            customer_phone=phone,
            start=start,
            end=end,
        )
    )


def bind_calendar(store: MemoryBookingStore, business: Business) -> Business:
    return store.save_business(replace(business, calendar=CalendarBinding("cred-1", "studio@example.com")))


@pytest.fixture
def store() -> MemoryBookingStore:
    return MemoryBookingStore()


@pytest.fixture
def business(store: MemoryBookingStore) -> Business:
    return store.save_business(
        Business(
            id="biz-1",
            name="Studio One",
            timezone="Africa/Nairobi",
            hours=HoursPolicy(weekly=dict(WEEKLY_HOURS)),
            settings=BookingSettings(buffer_minutes=15),
        )
    )


@pytest.fixture
def services(store: MemoryBookingStore, business: Business) -> dict[str, Service]:
    entries = [
        Service(id="svc-haircut", business_id=business.id, name="Haircut", duration_minutes=30),
        Service(id="svc-massage", business_id=business.id, name="Massage", duration_minutes=60),
        Service(id="svc-perm", business_id=business.id, name="Perm", duration_minutes=120, active=False),
    ]
    return {s.id: store.save_service(s) for s in entries}


@pytest.fixture
def calendar() -> MockCalendar:
    return MockCalendar()


@pytest.fixture
def policy() -> PolicyResolver:
    return PolicyResolver()


@pytest.fixture
def detector(store, calendar, policy) -> ConflictDetector:
    return ConflictDetector(store=store, calendar=calendar, policy=policy)


@pytest.fixture
def slot_generator(detector) -> SlotGenerator:
    return SlotGenerator(detector)


@pytest.fixture
def orchestrator(store, calendar, policy, detector, slot_generator) -> BookingOrchestrator:
    return BookingOrchestrator(
        store=store,
        detector=detector,
        slots=slot_generator,
        mirror=CalendarMirror(calendar=calendar, store=store),
        policy=policy,
        clock=lambda: NOW.astimezone(timezone.utc),
    )

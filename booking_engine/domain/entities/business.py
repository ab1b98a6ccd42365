from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
CLOSED = "closed"


@dataclass(frozen=True)
class HoursPolicy:
    weekly: dict[str, str] = field(default_factory=dict)  # "mon" -> "09:00-18:00" | "closed"
    overrides: dict[date, str] = field(default_factory=dict)  # holidays, blackouts, special hours


@dataclass(frozen=True)
class BookingSettings:
    buffer_minutes: int | None = None
    max_advance_days: int | None = None
    same_day_allowed: bool | None = None
    max_bookings_per_day: int | None = None
    cancellation_hours: int | None = None
    late_cancellation_fee: float | None = None


@dataclass(frozen=True)
class CalendarBinding:
    credential_ref: str
    calendar_id: str = "primary"


@dataclass(frozen=True)
class Business:
    id: str
    name: str
    timezone: str
    hours: HoursPolicy = HoursPolicy()
    settings: BookingSettings = BookingSettings()
    calendar: CalendarBinding | None = None
    business_type: str = "salon"
    owner_phone: str | None = None
    address: str | None = None

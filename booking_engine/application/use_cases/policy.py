from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_engine.application.exceptions import ConfigError
from booking_engine.domain.entities.business import CLOSED, WEEKDAY_KEYS, BookingSettings, Business, HoursPolicy
from booking_engine.domain.entities.interval import OpenWindow

_HOURS_RANGE = re.compile(r"^(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class EffectiveSettings:
    buffer_minutes: int = 15
    max_advance_days: int = 90
    same_day_allowed: bool = True
    max_bookings_per_day: int | None = None
    cancellation_hours: int = 24
    late_cancellation_fee: float = 0.0


DEFAULT_SETTINGS = EffectiveSettings()


def parse_hours_range(value: str) -> tuple[time, time]:
    """Parse "HH:MM-HH:MM" into (open, close). Raises ConfigError if malformed."""
    if not isinstance(value, str) or "-" not in value:
        raise ConfigError(f"Business hours {value!r} are missing the '-' separator")
    match = _HOURS_RANGE.match(value.strip())
    if not match:
        raise ConfigError(f"Business hours {value!r} are not in HH:MM-HH:MM format")

    oh, om, ch, cm = (int(g) for g in match.groups())
    try:
        open_time = time(oh, om)
        close_time = time(ch, cm)
    except ValueError as e:
        raise ConfigError(f"Business hours {value!r} are out of range: {e}") from e

    if close_time <= open_time:
        raise ConfigError(f"Business hours {value!r} close at or before they open")
    return open_time, close_time


def validate_hours_policy(hours: HoursPolicy) -> None:
    """Validate on write so malformed hours never reach the ledger."""
    for key, value in hours.weekly.items():
        if key not in WEEKDAY_KEYS:
            raise ConfigError(f"Unknown weekday key {key!r}")
        if value != CLOSED:
            parse_hours_range(value)
    for day, value in hours.overrides.items():
        if not isinstance(day, date):
            raise ConfigError(f"Override key {day!r} is not a date")
        if value != CLOSED:
            parse_hours_range(value)


def validate_booking_settings(booking_settings: BookingSettings) -> None:
    if booking_settings.buffer_minutes is not None and booking_settings.buffer_minutes < 0:
        raise ConfigError("Buffer minutes must not be negative")
    if booking_settings.max_advance_days is not None and booking_settings.max_advance_days < 1:
        raise ConfigError("Advance booking days must be at least 1")
    if booking_settings.max_bookings_per_day is not None and booking_settings.max_bookings_per_day < 1:
        raise ConfigError("Max bookings per day must be at least 1")
    if booking_settings.cancellation_hours is not None and booking_settings.cancellation_hours < 0:
        raise ConfigError("Cancellation hours must not be negative")
    if booking_settings.late_cancellation_fee is not None and booking_settings.late_cancellation_fee < 0:
        raise ConfigError("Late cancellation fee must not be negative")


def business_timezone(business: Business) -> ZoneInfo:
    try:
        return ZoneInfo(business.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone {business.timezone!r} for business {business.id}") from e


class PolicyResolver:
    def __init__(self, defaults: EffectiveSettings = DEFAULT_SETTINGS) -> None:
        self._defaults = defaults
        self._logger = logging.getLogger(__name__)

    def resolve_window(self, business: Business, day: date) -> OpenWindow | None:
        """
        Return the open window for `day` in UTC, or None when the business is closed.
        A per-date override wins over the weekly map.
        """
        tz = business_timezone(business)
        if day in business.hours.overrides:
            raw = business.hours.overrides[day]
        else:
            raw = business.hours.weekly.get(WEEKDAY_KEYS[day.weekday()])

        if raw is None or str(raw).strip().lower() == CLOSED:
            return None

        try:
            open_time, close_time = parse_hours_range(raw)
        except ConfigError:
            self._logger.error(
                "Malformed business hours",
                extra={"business_id": business.id, "operation": "resolve_window", "error": raw},
            )
            raise

        return OpenWindow(
            open=datetime.combine(day, open_time, tzinfo=tz).astimezone(timezone.utc),
            close=datetime.combine(day, close_time, tzinfo=tz).astimezone(timezone.utc),
        )

    def day_bounds(self, business: Business, day: date) -> tuple[datetime, datetime]:
        """UTC bounds of the business-local calendar day."""
        tz = business_timezone(business)
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def local_date(self, business: Business, moment: datetime) -> date:
        return moment.astimezone(business_timezone(business)).date()

    def booking_settings(self, business: Business) -> EffectiveSettings:
        s = business.settings
        d = self._defaults
        return EffectiveSettings(
            buffer_minutes=s.buffer_minutes if s.buffer_minutes is not None else d.buffer_minutes,
            max_advance_days=s.max_advance_days if s.max_advance_days is not None else d.max_advance_days,
            same_day_allowed=s.same_day_allowed if s.same_day_allowed is not None else d.same_day_allowed,
            max_bookings_per_day=(
                s.max_bookings_per_day if s.max_bookings_per_day is not None else d.max_bookings_per_day
            ),
            cancellation_hours=(
                s.cancellation_hours if s.cancellation_hours is not None else d.cancellation_hours
            ),
            late_cancellation_fee=(
                s.late_cancellation_fee if s.late_cancellation_fee is not None else d.late_cancellation_fee
            ),
        )

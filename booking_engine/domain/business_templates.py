from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from booking_engine.domain.entities.business import BookingSettings, HoursPolicy


class BusinessType(str, Enum):
    salon = "salon"
    barbershop = "barbershop"
    dentist = "dentist"
    restaurant = "restaurant"


@dataclass(frozen=True)
class ServiceTemplate:
    name: str
    duration_minutes: int
    price: float


@dataclass(frozen=True)
class BusinessTemplate:
    hours: dict[str, str]
    settings: BookingSettings
    services: tuple[ServiceTemplate, ...]


_WEEKDAY_HOURS = {
    "mon": "09:00-18:00",
    "tue": "09:00-18:00",
    "wed": "09:00-18:00",
    "thu": "09:00-18:00",
    "fri": "09:00-18:00",
    "sat": "10:00-16:00",
    "sun": "closed",
}

_EVENING_HOURS = {
    "mon": "17:00-22:00",
    "tue": "17:00-22:00",
    "wed": "17:00-22:00",
    "thu": "17:00-22:00",
    "fri": "17:00-23:00",
    "sat": "12:00-23:00",
    "sun": "12:00-21:00",
}


BUSINESS_TEMPLATES: dict[BusinessType, BusinessTemplate] = {
    BusinessType.salon: BusinessTemplate(
        hours=_WEEKDAY_HOURS,
        settings=BookingSettings(buffer_minutes=15, max_advance_days=90, max_bookings_per_day=30),
        services=(
            ServiceTemplate("Haircut", 30, 25),
            ServiceTemplate("Hair Color", 90, 80),
            ServiceTemplate("Styling", 45, 35),
        ),
    ),
    BusinessType.barbershop: BusinessTemplate(
        hours=_WEEKDAY_HOURS,
        settings=BookingSettings(buffer_minutes=10, max_advance_days=90, max_bookings_per_day=40),
        services=(
            ServiceTemplate("Haircut", 30, 20),
            ServiceTemplate("Beard Trim", 15, 10),
            ServiceTemplate("Shave", 30, 25),
        ),
    ),
    BusinessType.dentist: BusinessTemplate(
        hours=_WEEKDAY_HOURS,
        settings=BookingSettings(buffer_minutes=15, max_advance_days=90, max_bookings_per_day=30),
        services=(
            ServiceTemplate("Cleaning", 45, 80),
            ServiceTemplate("Check-up", 30, 60),
            ServiceTemplate("Filling", 60, 150),
        ),
    ),
    BusinessType.restaurant: BusinessTemplate(
        hours=_EVENING_HOURS,
        settings=BookingSettings(buffer_minutes=30, max_advance_days=90, max_bookings_per_day=30),
        services=(
            ServiceTemplate("Table for 2", 90, 0),
            ServiceTemplate("Table for 4", 90, 0),
            ServiceTemplate("Table for 6", 120, 0),
        ),
    ),
}


def template_for(business_type: str | BusinessType | None) -> BusinessTemplate:
    """Unknown or missing types fall back to the salon template."""
    try:
        key = BusinessType(business_type)
    except ValueError:
        key = BusinessType.salon
    return BUSINESS_TEMPLATES[key]


def default_hours_policy(business_type: str | BusinessType | None) -> HoursPolicy:
    return HoursPolicy(weekly=dict(template_for(business_type).hours))

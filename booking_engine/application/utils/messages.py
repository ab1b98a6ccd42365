from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.business import Business
from booking_engine.domain.entities.interval import CandidateInterval

GENERIC_ERROR_MESSAGE = "Something went wrong while handling your booking. Please try again in a moment."
CONFIG_ERROR_MESSAGE = "We can't take bookings for that day right now. Please contact us directly."

UNAVAILABLE_REASONS = {
    "outside_hours": "that time is outside our opening hours",
    "already_booked": "that time slot is already booked",
    "calendar_busy": "that time slot is already taken",
    "fully_booked": "we're fully booked that day",
}


def _local(business: Business, moment: datetime) -> datetime:
    try:
        return moment.astimezone(ZoneInfo(business.timezone))
    except (ZoneInfoNotFoundError, ValueError):
        return moment


def format_time(business: Business, moment: datetime) -> str:
    return _local(business, moment).strftime("%I:%M %p").lstrip("0")


def format_day(business: Business, moment: datetime) -> str:
    return _local(business, moment).strftime("%A, %B %d")


def missing_fields_message(missing: list[str]) -> str:
    return f"I need a few more details to book your appointment: {', '.join(missing)}."


def unavailable_message(business: Business, reason: str | None, alternatives: list[CandidateInterval]) -> str:
    text = f"Sorry, {UNAVAILABLE_REASONS.get(reason or '', 'that time is not available')}."
    if alternatives:
        times = ", ".join(format_time(business, slot.start) for slot in alternatives)
        return f"{text} Available times: {times}."
    return f"{text} Please choose another time."


def confirmation_message(business: Business, booking: Booking) -> str:
    lines = [
        "Booking confirmed!",
        f"Service: {booking.service_name}",
        f"Date: {format_day(business, booking.start)}",
        f"Time: {format_time(business, booking.start)}",
    ]
    if booking.customer_name:
        lines.append(f"Name: {booking.customer_name}")
    if booking.party_size:
        lines.append(f"Party size: {booking.party_size}")
    if booking.notes:
        lines.append(f"Notes: {booking.notes}")
    lines.append(f"Booking ID: {booking.id}")
    if business.address:
        lines.append(f"Location: {business.address}")
    lines.append("Reply CANCEL to cancel or RESCHEDULE to change the time.")
    return "\n".join(lines)


def cancellation_message(business: Business, booking: Booking, fee: float) -> str:
    text = (
        f"Your {booking.service_name} booking on {format_day(business, booking.start)} "
        f"at {format_time(business, booking.start)} has been cancelled."
    )
    if fee > 0:
        text += f" A late cancellation fee of {fee:.2f} may apply."
    return text


def reschedule_message(business: Business, booking: Booking) -> str:
    return (
        f"Your {booking.service_name} booking has been moved to "
        f"{format_day(business, booking.start)} at {format_time(business, booking.start)}."
    )


def reminder_message(business: Business, booking: Booking) -> str:
    return (
        f"Reminder: your {booking.service_name} appointment at {business.name} is on "
        f"{format_day(business, booking.start)} at {format_time(business, booking.start)}. "
        "Reply CANCEL if you need to reschedule."
    )


def event_description(booking: Booking) -> str:
    lines = [
        f"Service: {booking.service_name}",
        f"Customer: {booking.customer_name or 'N/A'}",
        f"Phone: {booking.customer_phone}",
        f"Booking ID: {booking.id}",
        f"Notes: {booking.notes or 'None'}",
    ]
    return "\n".join(lines)


def owner_booking_message(business: Business, booking: Booking) -> str:
    lines = [
        "New booking!",
        f"Service: {booking.service_name}",
        f"Customer: {booking.customer_name or booking.customer_phone}",
        f"Date: {format_day(business, booking.start)}",
        f"Time: {format_time(business, booking.start)}",
        f"Booking ID: {booking.id}",
    ]
    return "\n".join(lines)


def owner_cancellation_message(business: Business, booking: Booking) -> str:
    lines = [
        "Booking cancelled",
        f"Service: {booking.service_name}",
        f"Customer: {booking.customer_name or booking.customer_phone}",
        f"Original time: {format_day(business, booking.start)} at {format_time(business, booking.start)}",
        f"Reason: {booking.cancellation_reason or 'Not specified'}",
        f"Booking ID: {booking.id}",
    ]
    return "\n".join(lines)

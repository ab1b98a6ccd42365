from __future__ import annotations

import re
from datetime import date, timedelta

DAY_NAMES = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

MONTH_NAMES = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}

_ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")


def parse_date_preference(text: str, reference_date: date) -> date | None:
    """Parse a date from an extractor payload. Returns date or None if not understood."""
    if not text:
        return None
    normalized = text.lower().strip()

    iso_match = _ISO_DATE.search(normalized)
    if iso_match:
        try:
            return date(int(iso_match.group(1)), int(iso_match.group(2)), int(iso_match.group(3)))
        except ValueError:
            return None

    if "today" in normalized:
        return reference_date

    if "tomorrow" in normalized:
        return reference_date + timedelta(days=1)

    for day_name, day_num in DAY_NAMES.items():
        if day_name in normalized or re.search(rf"\b{day_name[:3]}\b", normalized):
            days_ahead = (day_num - reference_date.weekday()) % 7
            if days_ahead == 0:
                days_ahead = 7
            if "next" in normalized and days_ahead < 7:
                days_ahead += 7
            return reference_date + timedelta(days=days_ahead)

    for month_name, month_num in MONTH_NAMES.items():
        if month_name in normalized or re.search(rf"\b{month_name[:3]}\b", normalized):
            day_match = re.search(r"\b(\d{1,2})(?:st|nd|rd|th)?\b", normalized)
            if day_match:
                day = int(day_match.group(1))
                year = reference_date.year
                if month_num < reference_date.month or (month_num == reference_date.month and day < reference_date.day):
                    year += 1
                try:
                    return date(year, month_num, day)
                except ValueError:
                    return None

    numeric = re.search(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b", normalized)
    if numeric:
        month = int(numeric.group(1))
        day = int(numeric.group(2))
        if numeric.group(3):
            year = int(numeric.group(3))
            if year < 100:
                year += 2000
        else:
            year = reference_date.year
            if month < reference_date.month or (month == reference_date.month and day < reference_date.day):
                year += 1
        try:
            return date(year, month, day)
        except ValueError:
            return None

    return None


def parse_time_preference(text: str) -> tuple[int, int] | None:
    """Parse time preference from text. Returns (hour, minute) or None."""
    if not text:
        return None
    normalized = text.lower().strip()

    if normalized in ("noon", "midday"):
        return (12, 0)

    time_patterns = [
        r"\b(\d{1,2}):(\d{2})\s*(am|pm)?\b",
        r"\b(\d{1,2})\s*(am|pm)\b",
        r"^(\d{1,2})$",
    ]

    for pattern in time_patterns:
        match = re.search(pattern, normalized)
        if not match:
            continue
        groups = match.groups()
        hour = int(groups[0])
        minute = int(groups[1]) if len(groups) >= 2 and groups[1] and groups[1].isdigit() else 0
        am_pm = groups[-1] if groups[-1] in ("am", "pm") else None

        if am_pm and not 1 <= hour <= 12:
            return None
        if am_pm == "pm" and hour != 12:
            hour += 12
        elif am_pm == "am" and hour == 12:
            hour = 0

        if 0 <= hour <= 23 and 0 <= minute <= 59:
            return (hour, minute)
        return None

    return None

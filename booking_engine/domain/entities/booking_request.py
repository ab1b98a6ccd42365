from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BookingRequest:
    """Structured payload handed over by the intent extractor."""

    customer_phone: str
    service: str | None = None
    date: str | None = None  # "2026-03-14", "tomorrow", "friday"
    time: str | None = None  # "14:30", "3pm"
    party_size: int | None = None
    notes: str | None = None
    customer_name: str | None = None

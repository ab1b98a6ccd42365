from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from booking_engine.domain.entities.interval import CandidateInterval

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"


@dataclass(frozen=True)
class Booking:
    id: str
    business_id: str
    service_id: str
    service_name: str
    customer_phone: str
    start: datetime  # UTC
    end: datetime  # UTC
    status: str = STATUS_CONFIRMED  # "confirmed", "cancelled"
    customer_name: str | None = None
    party_size: int | None = None
    notes: str | None = None
    calendar_event_ref: str | None = None
    reminder_sent: bool = False
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.status == STATUS_CONFIRMED

    @property
    def interval(self) -> CandidateInterval:
        return CandidateInterval(start=self.start, end=self.end)

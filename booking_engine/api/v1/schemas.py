from datetime import date, datetime

from pydantic import BaseModel, Field


class BookingRequestSchema(BaseModel):
    customer_phone: str
    service: str | None = None
    date: str | None = None
    time: str | None = None
    party_size: int | None = None
    notes: str | None = None
    customer_name: str | None = None


class AvailabilityRequestSchema(BaseModel):
    service: str
    date: str
    time: str


class CancelRequestSchema(BaseModel):
    reason: str | None = None


class RescheduleRequestSchema(BaseModel):
    date: str
    time: str


class SlotSchema(BaseModel):
    start: datetime
    end: datetime
    duration_minutes: int


class BookingSchema(BaseModel):
    id: str
    business_id: str
    service_id: str
    service_name: str
    customer_phone: str
    customer_name: str | None = None
    party_size: int | None = None
    notes: str | None = None
    start: datetime
    end: datetime
    status: str
    calendar_event_ref: str | None = None
    reminder_sent: bool = False
    cancellation_reason: str | None = None


class BookingResultSchema(BaseModel):
    action: str
    message: str | None = None
    reason: str | None = None
    booking: BookingSchema | None = None
    alternatives: list[SlotSchema] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    degraded: bool = False
    late_cancellation: bool = False
    fee: float = 0.0


class SlotsResponseSchema(BaseModel):
    business_id: str
    date: date
    duration_minutes: int
    slots: list[SlotSchema]
    degraded: bool = False

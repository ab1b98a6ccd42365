from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from booking_engine.api.v1.schemas import (
    AvailabilityRequestSchema,
    BookingRequestSchema,
    BookingResultSchema,
    BookingSchema,
    CancelRequestSchema,
    RescheduleRequestSchema,
    SlotSchema,
    SlotsResponseSchema,
)
from booking_engine.application.exceptions import ConfigError, PersistenceError, ValidationError
from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.application.use_cases.booking import BookingOrchestrator, BookingResult
from booking_engine.application.use_cases.slots import SlotGenerator
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.booking_request import BookingRequest
from booking_engine.domain.entities.interval import CandidateInterval
from booking_engine.wiring.dependencies import get_booking_orchestrator, get_slot_generator, get_store

router = APIRouter()

STATUS_BY_ACTION = {
    "booked": 201,
    "rescheduled": 200,
    "cancelled": 200,
    "available": 200,
    "unavailable": 409,
    "invalid": 422,
    "not_found": 404,
    "error": 503,
}


def _slot(slot: CandidateInterval) -> SlotSchema:
    return SlotSchema(start=slot.start, end=slot.end, duration_minutes=slot.duration_minutes)


def _booking(booking: Booking) -> BookingSchema:
    data = asdict(booking)
    data.pop("created_at", None)
    data.pop("updated_at", None)
    return BookingSchema(**data)


def _respond(result: BookingResult, response: Response) -> BookingResultSchema:
    response.status_code = STATUS_BY_ACTION.get(result.action, 200)
    return BookingResultSchema(
        action=result.action,
        message=result.message,
        reason=result.reason,
        booking=_booking(result.booking) if result.booking else None,
        alternatives=[_slot(s) for s in result.alternatives],
        warnings=list(result.warnings),
        degraded=result.degraded,
        late_cancellation=result.late_cancellation,
        fee=result.fee,
    )


@router.post("/businesses/{business_id}/bookings", response_model=BookingResultSchema)
def create_booking(
    business_id: str,
    req: BookingRequestSchema,
    response: Response,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    result = orchestrator.book(business_id, BookingRequest(**req.model_dump()))
    return _respond(result, response)


@router.post("/businesses/{business_id}/availability", response_model=BookingResultSchema)
def check_availability(
    business_id: str,
    req: AvailabilityRequestSchema,
    response: Response,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    result = orchestrator.check(business_id, req.service, req.date, req.time)
    return _respond(result, response)


@router.get("/businesses/{business_id}/slots", response_model=SlotsResponseSchema)
def list_slots(
    business_id: str,
    day: date = Query(..., alias="date"),
    service_id: str = Query(...),
    limit: int = Query(10, ge=1, le=100),
    store: BookingStorePort = Depends(get_store),
    generator: SlotGenerator = Depends(get_slot_generator),
):
    business = store.get_business(business_id)
    service = store.get_service(service_id)
    if business is None or service is None or service.business_id != business_id:
        raise HTTPException(status_code=404, detail="Business or service not found")
    if not service.active:
        raise HTTPException(status_code=422, detail="Service is not active")

    try:
        sequence = generator.available_slots(business, day, service.duration_minutes)
        slots = sequence.first(limit)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except (ConfigError, PersistenceError):
        raise HTTPException(status_code=503, detail="Availability is temporarily unavailable")

    return SlotsResponseSchema(
        business_id=business_id,
        date=day,
        duration_minutes=service.duration_minutes,
        slots=[_slot(s) for s in slots],
        degraded=sequence.degraded,
    )


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResultSchema)
def cancel_booking(
    booking_id: str,
    req: CancelRequestSchema,
    response: Response,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    return _respond(orchestrator.cancel(booking_id, req.reason), response)


@router.post("/bookings/{booking_id}/reschedule", response_model=BookingResultSchema)
def reschedule_booking(
    booking_id: str,
    req: RescheduleRequestSchema,
    response: Response,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    return _respond(orchestrator.reschedule(booking_id, req.date, req.time), response)


@router.get("/businesses/{business_id}/customers/{customer_phone}/bookings", response_model=list[BookingSchema])
def customer_bookings(
    business_id: str,
    customer_phone: str,
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
):
    try:
        bookings = orchestrator.upcoming_bookings(business_id, customer_phone)
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Bookings are temporarily unavailable")
    return [_booking(b) for b in bookings]

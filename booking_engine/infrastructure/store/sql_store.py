from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterator

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from booking_engine.application.exceptions import ConflictError, PersistenceError
from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.application.use_cases.policy import validate_booking_settings, validate_hours_policy
from booking_engine.domain.entities.booking import STATUS_CANCELLED, STATUS_CONFIRMED, Booking
from booking_engine.domain.entities.business import BookingSettings, Business, CalendarBinding, HoursPolicy
from booking_engine.domain.entities.service import Service
from booking_engine.infrastructure.store.database import BookingRow, BusinessRow, ServiceRow

SETTINGS_FIELDS = (
    "buffer_minutes",
    "max_advance_days",
    "same_day_allowed",
    "max_bookings_per_day",
    "cancellation_hours",
    "late_cancellation_fee",
)


class SqlBookingStore(BookingStorePort):
    """
    SQLAlchemy ledger. Inserts and reschedules lock the business row
    (SELECT ... FOR UPDATE) and re-check overlap inside the same transaction,
    which serializes commits for one business across processes. PostgreSQL
    additionally carries an exclusion constraint; its violation maps to ConflictError.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._logger = logging.getLogger(__name__)

    def get_business(self, business_id: str) -> Business | None:
        with self._read() as session:
            row = session.get(BusinessRow, business_id)
            return _business_from_row(row) if row else None

    def save_business(self, business: Business) -> Business:
        validate_hours_policy(business.hours)
        validate_booking_settings(business.settings)
        now = _now()

        def write(session: Session) -> None:
            row = session.get(BusinessRow, business.id)
            if row is None:
                row = BusinessRow(id=business.id, created_at=now)
                session.add(row)
            row.name = business.name
            row.business_type = business.business_type
            row.timezone = business.timezone
            row.owner_phone = business.owner_phone
            row.address = business.address
            row.hours = dict(business.hours.weekly)
            row.date_overrides = {day.isoformat(): value for day, value in business.hours.overrides.items()}
            row.settings = {
                name: getattr(business.settings, name)
                for name in SETTINGS_FIELDS
                if getattr(business.settings, name) is not None
            }
            row.calendar_credential_ref = business.calendar.credential_ref if business.calendar else None
            row.calendar_id = business.calendar.calendar_id if business.calendar else None
            row.updated_at = now

        self._write("save_business", write)
        return business

    def get_service(self, service_id: str) -> Service | None:
        with self._read() as session:
            row = session.get(ServiceRow, service_id)
            return _service_from_row(row) if row else None

    def list_services(self, business_id: str, active_only: bool = True) -> list[Service]:
        query = select(ServiceRow).where(ServiceRow.business_id == business_id)
        if active_only:
            query = query.where(ServiceRow.is_active.is_(True))
        with self._read() as session:
            rows = session.scalars(query.order_by(ServiceRow.name)).all()
            return [_service_from_row(r) for r in rows]

    def save_service(self, service: Service) -> Service:
        if service.duration_minutes <= 0:
            raise ValueError("Service duration must be positive")

        def write(session: Session) -> None:
            row = session.get(ServiceRow, service.id)
            if row is None:
                row = ServiceRow(id=service.id)
                session.add(row)
            row.business_id = service.business_id
            row.name = service.name
            row.duration_minutes = service.duration_minutes
            row.is_active = service.active
            row.price = service.price

        self._write("save_service", write)
        return service

    def list_confirmed_bookings(self, business_id: str, start: datetime, end: datetime) -> list[Booking]:
        query = (
            select(BookingRow)
            .where(
                BookingRow.business_id == business_id,
                BookingRow.status == STATUS_CONFIRMED,
                BookingRow.start_time < _utc(end),
                BookingRow.end_time > _utc(start),
            )
            .order_by(BookingRow.start_time)
        )
        with self._read() as session:
            return [_booking_from_row(r) for r in session.scalars(query).all()]

    def get_booking(self, booking_id: str) -> Booking | None:
        with self._read() as session:
            row = session.get(BookingRow, booking_id)
            return _booking_from_row(row) if row else None

    def insert_booking(self, booking: Booking) -> Booking:
        now = _now()

        def write(session: Session) -> Booking:
            self._lock_business(session, booking.business_id)
            self._ensure_free(session, booking.business_id, booking.start, booking.end, ignore_id=None)
            row = BookingRow(
                id=booking.id,
                business_id=booking.business_id,
                service_id=booking.service_id,
                service_name=booking.service_name,
                customer_phone=booking.customer_phone,
                customer_name=booking.customer_name,
                party_size=booking.party_size,
                notes=booking.notes,
                start_time=_utc(booking.start),
                end_time=_utc(booking.end),
                status=STATUS_CONFIRMED,
                calendar_event_ref=booking.calendar_event_ref,
                reminder_sent=booking.reminder_sent,
                created_at=booking.created_at or now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            return _booking_from_row(row)

        return self._write("insert_booking", write)

    def reschedule_booking(self, booking_id: str, start: datetime, end: datetime) -> Booking:
        def write(session: Session) -> Booking:
            row = self._require(session, booking_id)
            if row.status != STATUS_CONFIRMED:
                raise ConflictError("Only confirmed bookings can be rescheduled", reason="not_confirmed")
            self._lock_business(session, row.business_id)
            self._ensure_free(session, row.business_id, start, end, ignore_id=booking_id)
            row.start_time = _utc(start)
            row.end_time = _utc(end)
            row.updated_at = _now()
            session.flush()
            return _booking_from_row(row)

        return self._write("reschedule_booking", write)

    def cancel_booking(self, booking_id: str, reason: str | None) -> Booking:
        def write(session: Session) -> Booking:
            # conditional so two concurrent cancels cannot both succeed
            result = session.execute(
                BookingRow.__table__.update()
                .where(and_(BookingRow.id == booking_id, BookingRow.status == STATUS_CONFIRMED))
                .values(status=STATUS_CANCELLED, cancellation_reason=reason, updated_at=_now())
            )
            if result.rowcount != 1:
                self._require(session, booking_id)
                raise ConflictError("Booking is already cancelled", reason="not_confirmed")
            return _booking_from_row(self._require(session, booking_id))

        return self._write("cancel_booking", write)

    def set_calendar_event(self, booking_id: str, event_ref: str | None) -> None:
        def write(session: Session) -> None:
            row = self._require(session, booking_id)
            row.calendar_event_ref = event_ref
            row.updated_at = _now()

        self._write("set_calendar_event", write)

    def list_reminder_candidates(self, start: datetime, end: datetime) -> list[Booking]:
        query = (
            select(BookingRow)
            .where(
                BookingRow.status == STATUS_CONFIRMED,
                BookingRow.reminder_sent.is_(False),
                BookingRow.start_time >= _utc(start),
                BookingRow.start_time <= _utc(end),
            )
            .order_by(BookingRow.start_time)
        )
        with self._read() as session:
            return [_booking_from_row(r) for r in session.scalars(query).all()]

    def mark_reminder_sent(self, booking_id: str) -> bool:
        def write(session: Session) -> bool:
            # conditional update so two sweeps can never both claim the flip
            result = session.execute(
                BookingRow.__table__.update()
                .where(and_(BookingRow.id == booking_id, BookingRow.reminder_sent.is_(False)))
                .values(reminder_sent=True, updated_at=_now())
            )
            return result.rowcount == 1

        return self._write("mark_reminder_sent", write)

    def list_customer_bookings(self, business_id: str, customer_phone: str, since: datetime) -> list[Booking]:
        query = (
            select(BookingRow)
            .where(
                BookingRow.business_id == business_id,
                BookingRow.customer_phone == customer_phone,
                BookingRow.status == STATUS_CONFIRMED,
                BookingRow.start_time >= _utc(since),
            )
            .order_by(BookingRow.start_time)
        )
        with self._read() as session:
            return [_booking_from_row(r) for r in session.scalars(query).all()]

    def list_unmirrored_bookings(self, business_id: str, since: datetime) -> list[Booking]:
        query = (
            select(BookingRow)
            .where(
                BookingRow.business_id == business_id,
                BookingRow.status == STATUS_CONFIRMED,
                BookingRow.calendar_event_ref.is_(None),
                BookingRow.start_time >= _utc(since),
            )
            .order_by(BookingRow.start_time)
        )
        with self._read() as session:
            return [_booking_from_row(r) for r in session.scalars(query).all()]

    @contextmanager
    def _read(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            self._logger.error("Datastore read failed", extra={"error": str(e)})
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def _write(self, operation: str, work: Callable[[Session], Any]) -> Any:
        try:
            with self._session_factory.begin() as session:
                return work(session)
        except IntegrityError as e:
            if operation in ("insert_booking", "reschedule_booking"):
                self._logger.info("Overlap rejected by database constraint", extra={"operation": operation})
                raise ConflictError("Interval overlaps a confirmed booking", reason="already_booked") from e
            self._logger.error("Integrity error", extra={"operation": operation, "error": str(e)})
            raise PersistenceError(str(e)) from e
        except SQLAlchemyError as e:
            self._logger.error("Datastore write failed", extra={"operation": operation, "error": str(e)})
            raise PersistenceError(str(e)) from e

    def _lock_business(self, session: Session, business_id: str) -> None:
        locked = session.execute(
            select(BusinessRow.id).where(BusinessRow.id == business_id).with_for_update()
        ).scalar_one_or_none()
        if locked is None:
            raise PersistenceError(f"Business {business_id} does not exist")

    def _ensure_free(
        self,
        session: Session,
        business_id: str,
        start: datetime,
        end: datetime,
        ignore_id: str | None,
    ) -> None:
        query = select(BookingRow.id).where(
            BookingRow.business_id == business_id,
            BookingRow.status == STATUS_CONFIRMED,
            BookingRow.start_time < _utc(end),
            BookingRow.end_time > _utc(start),
        )
        if ignore_id is not None:
            query = query.where(BookingRow.id != ignore_id)
        clash = session.execute(query.limit(1)).scalar_one_or_none()
        if clash is not None:
            raise ConflictError(f"Interval overlaps confirmed booking {clash}", reason="already_booked")

    def _require(self, session: Session, booking_id: str) -> BookingRow:
        row = session.get(BookingRow, booking_id)
        if row is None:
            raise PersistenceError(f"Booking {booking_id} does not exist")
        return row


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _business_from_row(row: BusinessRow) -> Business:
    calendar = None
    if row.calendar_credential_ref:
        calendar = CalendarBinding(credential_ref=row.calendar_credential_ref, calendar_id=row.calendar_id or "primary")
    settings = row.settings or {}
    return Business(
        id=row.id,
        name=row.name,
        timezone=row.timezone,
        hours=HoursPolicy(
            weekly=dict(row.hours or {}),
            overrides={date.fromisoformat(day): value for day, value in (row.date_overrides or {}).items()},
        ),
        settings=BookingSettings(**{name: settings.get(name) for name in SETTINGS_FIELDS}),
        calendar=calendar,
        business_type=row.business_type,
        owner_phone=row.owner_phone,
        address=row.address,
    )


def _service_from_row(row: ServiceRow) -> Service:
    return Service(
        id=row.id,
        business_id=row.business_id,
        name=row.name,
        duration_minutes=row.duration_minutes,
        active=row.is_active,
        price=row.price,
    )


def _booking_from_row(row: BookingRow) -> Booking:
    return Booking(
        id=row.id,
        business_id=row.business_id,
        service_id=row.service_id,
        service_name=row.service_name,
        customer_phone=row.customer_phone,
        customer_name=row.customer_name,
        party_size=row.party_size,
        notes=row.notes,
        start=_utc(row.start_time),
        end=_utc(row.end_time),
        status=row.status,
        cancellation_reason=row.cancellation_reason,
        calendar_event_ref=row.calendar_event_ref,
        reminder_sent=bool(row.reminder_sent),
        created_at=_utc(row.created_at) if row.created_at else None,
        updated_at=_utc(row.updated_at) if row.updated_at else None,
    )

from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from pathlib import Path
import logging

from booking_engine.core.config import settings
from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.application.ports.calendar import CalendarPort
from booking_engine.application.ports.notifications import NotificationPort
from booking_engine.application.use_cases.availability import ConflictDetector
from booking_engine.application.use_cases.booking import BookingOrchestrator
from booking_engine.application.use_cases.calendar_mirror import CalendarMirror
from booking_engine.application.use_cases.owner_alerts import OwnerAlerts
from booking_engine.application.use_cases.policy import EffectiveSettings, PolicyResolver
from booking_engine.application.use_cases.reminders import ReminderSweep
from booking_engine.application.use_cases.slots import SlotGenerator
from booking_engine.infrastructure.calendar.google_calendar import GoogleCalendar
from booking_engine.infrastructure.calendar.mock_calendar import MockCalendar
from booking_engine.infrastructure.notifications.mock_notifier import MockNotifier
from booking_engine.infrastructure.notifications.twilio_client import TwilioNotifier
from booking_engine.infrastructure.store.database import build_engine, build_session_factory, init_schema
from booking_engine.infrastructure.store.memory_store import MemoryBookingStore
from booking_engine.infrastructure.store.sql_store import SqlBookingStore


_store: BookingStorePort | None = None
_background_executor: ThreadPoolExecutor | None = None


def _is_dev() -> bool:
    return settings.ENV.lower() in {"dev", "local", "test"}


def get_store() -> BookingStorePort:
    global _store
    if _store is None:
        if settings.STORE_PROVIDER.lower() == "sql":
            if settings.DATABASE_URL.startswith("sqlite:///"):
                Path(settings.DATABASE_URL.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
            engine = build_engine(settings.DATABASE_URL)
            init_schema(engine)
            _store = SqlBookingStore(build_session_factory(engine))
        else:
            _store = MemoryBookingStore()
    return _store


@lru_cache
def get_calendar() -> CalendarPort | None:
    if _is_dev():
        return MockCalendar()
    if not settings.GOOGLE_CALENDAR_ACCESS_TOKEN:
        # bound businesses degrade to internal-only checks
        logging.getLogger(__name__).warning("GOOGLE_CALENDAR_ACCESS_TOKEN missing; calendar checks disabled")
        return None
    return GoogleCalendar()


@lru_cache
def get_notifier() -> NotificationPort:
    logger = logging.getLogger(__name__)
    if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
        if _is_dev():
            logger.info("Using MockNotifier (Twilio credentials missing, ENV=dev/local)")
            return MockNotifier()
        raise ValueError("TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN are required to send reminders.")
    return TwilioNotifier()


def get_policy() -> PolicyResolver:
    return PolicyResolver(
        EffectiveSettings(
            buffer_minutes=settings.BOOKING_BUFFER_MINUTES,
            max_advance_days=settings.MAX_ADVANCE_BOOKING_DAYS,
            same_day_allowed=settings.ALLOW_SAME_DAY_BOOKING,
        )
    )


def get_conflict_detector() -> ConflictDetector:
    return ConflictDetector(store=get_store(), calendar=get_calendar(), policy=get_policy())


def get_slot_generator() -> SlotGenerator:
    return SlotGenerator(get_conflict_detector(), granularity_minutes=settings.SLOT_GRANULARITY_MINUTES)


def get_background_executor() -> ThreadPoolExecutor | None:
    """Executor for post-commit side effects; None in dev so they run inline."""
    global _background_executor
    if _background_executor is None and not _is_dev():
        _background_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="booking-side-effects")
    return _background_executor


def get_calendar_mirror() -> CalendarMirror:
    return CalendarMirror(calendar=get_calendar(), store=get_store(), executor=get_background_executor())


@lru_cache
def get_owner_alerts() -> OwnerAlerts:
    if not _is_dev() and not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN):
        logging.getLogger(__name__).warning("Twilio credentials missing; owner alerts disabled")
        return OwnerAlerts(notifier=None)
    return OwnerAlerts(notifier=get_notifier(), executor=get_background_executor())


def get_booking_orchestrator() -> BookingOrchestrator:
    return BookingOrchestrator(
        store=get_store(),
        detector=get_conflict_detector(),
        slots=get_slot_generator(),
        mirror=get_calendar_mirror(),
        policy=get_policy(),
        max_alternatives=settings.MAX_ALTERNATIVE_SLOTS,
        alerts=get_owner_alerts(),
    )


def get_reminder_sweep() -> ReminderSweep:
    return ReminderSweep(
        store=get_store(),
        notifier=get_notifier(),
        send_delay_seconds=settings.REMINDER_SEND_DELAY_SECONDS,
        max_attempts=settings.REMINDER_MAX_ATTEMPTS,
    )

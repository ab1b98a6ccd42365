import logging

from sqlalchemy import DDL, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


class BusinessRow(Base):
    __tablename__ = "businesses"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    business_type = Column(String(32), nullable=False, default="salon")
    timezone = Column(String(64), nullable=False)
    owner_phone = Column(String(32), nullable=True)
    address = Column(String(500), nullable=True)

    # HoursPolicy / BookingSettings, validated before they are written
    hours = Column(JSON, nullable=False, default=dict)
    date_overrides = Column(JSON, nullable=False, default=dict)
    settings = Column(JSON, nullable=False, default=dict)

    calendar_credential_ref = Column(String(255), nullable=True)
    calendar_id = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class ServiceRow(Base):
    __tablename__ = "services"

    id = Column(String(64), primary_key=True)
    business_id = Column(String(64), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    price = Column(Float, nullable=True)


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True)
    business_id = Column(String(64), ForeignKey("businesses.id"), nullable=False)
    service_id = Column(String(64), nullable=False)
    service_name = Column(String(255), nullable=False)

    customer_phone = Column(String(32), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    party_size = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    # UTC
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(16), nullable=False, default="confirmed")
    cancellation_reason = Column(Text, nullable=True)
    calendar_event_ref = Column(String(500), nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_bookings_business_start", "business_id", "start_time"),
        Index("ix_bookings_reminders", "status", "reminder_sent", "start_time"),
    )


# On PostgreSQL the no-overlap rule is also a database constraint.
event.listen(
    Base.metadata,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    BookingRow.__table__,
    "after_create",
    DDL(
        "ALTER TABLE bookings ADD CONSTRAINT bookings_no_overlap EXCLUDE USING gist "
        "(business_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
        "WHERE (status = 'confirmed')"
    ).execute_if(dialect="postgresql"),
)


def build_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
    logger.info("Database engine created", extra={"operation": "build_engine"})
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    Base.metadata.create_all(engine)

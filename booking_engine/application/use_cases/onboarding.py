from __future__ import annotations

import logging
import uuid

from booking_engine.application.ports.booking_store import BookingStorePort
from booking_engine.core.config import settings
from booking_engine.domain.business_templates import BusinessType, template_for
from booking_engine.domain.entities.business import Business, CalendarBinding, HoursPolicy
from booking_engine.domain.entities.service import Service

logger = logging.getLogger(__name__)


def create_business_from_template(
    store: BookingStorePort,
    name: str,
    business_type: str | BusinessType,
    timezone: str | None = None,
    business_id: str | None = None,
    owner_phone: str | None = None,
    calendar: CalendarBinding | None = None,
) -> tuple[Business, list[Service]]:
    """Create a business with the default hours, settings and services of its type."""
    template = template_for(business_type)
    type_name = business_type.value if isinstance(business_type, BusinessType) else str(business_type)
    business = store.save_business(
        Business(
            id=business_id or uuid.uuid4().hex,
            name=name,
            timezone=timezone or settings.DEFAULT_TIMEZONE,
            hours=HoursPolicy(weekly=dict(template.hours)),
            settings=template.settings,
            calendar=calendar,
            business_type=type_name,
            owner_phone=owner_phone,
        )
    )
    services = [
        store.save_service(
            Service(
                id=uuid.uuid4().hex,
                business_id=business.id,
                name=entry.name,
                duration_minutes=entry.duration_minutes,
                price=entry.price,
            )
        )
        for entry in template.services
    ]
    logger.info("Business created from template", extra={"business_id": business.id, "operation": type_name})
    return business, services

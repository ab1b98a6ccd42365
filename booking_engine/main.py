from fastapi import FastAPI

from booking_engine.api.v1.bookings import router as bookings_router
from booking_engine.core.log_config import configure_logging

configure_logging()

app = FastAPI(title="Booking Engine", version="1.0.0")

app.include_router(bookings_router, prefix="/api/v1", tags=["bookings"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}

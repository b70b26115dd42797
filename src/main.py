import logging

from fastapi import FastAPI

from src.api.routes.routes import router
from src.config import BOOKING_ENTRY_WINDOW_MINUTES, configure_logging
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import engine, settings, wait_for_database

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SmartPark Booking Service",
    description="Parking reservations, kiosk entry and exit, wallet and dues settlement.",
)
app.include_router(router, prefix="/api")


@app.on_event("startup")
def on_startup() -> None:
    # API containers often start before Postgres accepts connections.
    wait_for_database(engine, settings.connect_max_retries, settings.connect_retry_delay)
    Base.metadata.create_all(bind=engine)
    logger.info(
        "SmartPark booking service ready. entry_window_minutes=%s",
        BOOKING_ENTRY_WINDOW_MINUTES,
    )

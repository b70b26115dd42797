# src/config.py

import logging
import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# -----------------------------
# Backend settings
# -----------------------------
BOOKING_ENTRY_WINDOW_MINUTES = int(os.getenv("BOOKING_ENTRY_WINDOW_MINUTES", "15"))
DEFAULT_SPOT_NUMBER = "Any Available Spot"


# -----------------------------
# Database settings
# -----------------------------
@dataclass(frozen=True)
class DatabaseSettings:
    url: str | None = None
    connect_max_retries: int = 30
    connect_retry_delay: float = 1.5
    echo: bool = False

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        return cls(
            url=os.getenv("DATABASE_URL") or None,
            connect_max_retries=int(
                os.getenv("DB_CONNECT_MAX_RETRIES", str(cls.connect_max_retries))
            ),
            connect_retry_delay=float(
                os.getenv("DB_CONNECT_RETRY_DELAY", str(cls.connect_retry_delay))
            ),
            echo=_env_bool("DB_ECHO", cls.echo),
        )


# -----------------------------
# Client settings
# -----------------------------
@dataclass(frozen=True)
class ClientSettings:
    api_base_url: str = "http://localhost:5000/api"
    user_id: str | None = None
    poll_interval_seconds: float = 5.0
    timeout_seconds: float = 10.0
    active_booking_fail_open: bool = True

    @classmethod
    def from_env(cls) -> "ClientSettings":
        return cls(
            api_base_url=os.getenv("PARKING_API_BASE_URL", cls.api_base_url),
            user_id=os.getenv("PARKING_USER_ID"),
            poll_interval_seconds=float(
                os.getenv("PAYMENT_POLL_INTERVAL_SECONDS", str(cls.poll_interval_seconds))
            ),
            timeout_seconds=float(
                os.getenv("GATEWAY_TIMEOUT_SECONDS", str(cls.timeout_seconds))
            ),
            active_booking_fail_open=_env_bool(
                "ACTIVE_BOOKING_FAIL_OPEN", cls.active_booking_fail_open
            ),
        )


# -----------------------------
# Logging
# -----------------------------
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )

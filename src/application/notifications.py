import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, title: str, description: str) -> None: ...


class LoggingNotifier:
    """Default notifier: user-facing messages go to the log."""

    def notify(self, title: str, description: str) -> None:
        logger.info("%s: %s", title, description)

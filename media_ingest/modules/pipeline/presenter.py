"""Presentation boundary for user-facing messages."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class MessagePresenter(Protocol):
    """Receives human-readable messages, e.g. to show as a toast."""

    def show_error(self, message: str) -> None:
        ...

    def show_info(self, message: str) -> None:
        ...


class LoggingPresenter:
    """Presenter that writes messages to the log."""

    def show_error(self, message: str) -> None:
        logger.error(message)

    def show_info(self, message: str) -> None:
        logger.info(message)

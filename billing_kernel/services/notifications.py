"""
Notification surface -- how the engine talks to whoever is watching.

The engine may ask for a notification or a yes/no confirmation; it never
controls how either is presented.  A desktop or web front end supplies its
own implementation.  ``LoggingNotificationSurface`` serves headless runs
(scheduler daemon, CLI with ``--yes``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from billing_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationSurface(ABC):

    @abstractmethod
    def notify(self, title: str, message: str) -> None:
        """Show ``message`` to the operator.  Must not raise."""

    @abstractmethod
    def confirm(self, title: str, message: str) -> bool:
        """Ask the operator to approve an action.  False means declined."""


class LoggingNotificationSurface(NotificationSurface):
    """
    Writes notifications to the structured log.

    Confirmations are answered with ``auto_confirm`` (False by default, so
    an unattended process never approves a destructive action by itself).
    """

    def __init__(self, auto_confirm: bool = False):
        self._auto_confirm = auto_confirm

    def notify(self, title: str, message: str) -> None:
        logger.info("notification", extra={"title": title, "body": message})

    def confirm(self, title: str, message: str) -> bool:
        logger.info(
            "confirmation_requested",
            extra={"title": title, "body": message, "answer": self._auto_confirm},
        )
        return self._auto_confirm

"""Notification collaborator for job outcomes.

Delivery itself (email, in-app inbox, ...) lives outside this service; the
default notifier only writes a log line. ``notify_safely`` never raises, so
a broken notifier cannot undo a committed integration.
"""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, user_id: str, title: str, message: str, link: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that records notifications in the application log."""

    def notify(self, user_id: str, title: str, message: str, link: str) -> None:
        logger.info(
            f"Notify {user_id}: {title}",
            extra={"user_id": user_id, "notification": message, "link": link},
        )


def notify_safely(notifier: Notifier, user_id: str, title: str, message: str, link: str) -> None:
    """Send a notification. Never raises; failures are logged and dropped."""
    try:
        notifier.notify(user_id, title, message, link)
    except Exception as e:
        logger.warning("Failed to deliver notification to %s: %s", user_id, e)

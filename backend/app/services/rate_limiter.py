"""Per-user, per-action fixed-window rate limiter backed by the database.

One counter row per (user, action). When the window has expired the
counter resets; otherwise a call succeeds only while count < limit. Bursts
straddling a window boundary are accepted (fixed window, not sliding).

The limiter works inside the caller's transaction: it flushes but never
commits, so an increment made during ``accept`` is rolled back together
with the job insert if that insert fails.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import StorageFailureError
from ..models import RateLimitWindow

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RateLimiter:
    """Gates expensive operations such as AI integration."""

    def __init__(self, db: Session):
        self.db = db

    def try_consume(
        self,
        user_id: str,
        action: str,
        limit: int,
        window: timedelta,
        now: Optional[datetime] = None,
    ) -> bool:
        """Consume one unit of *action* for *user_id*.

        Args:
            user_id: Caller identity.
            action: Name of the gated action, e.g. ``"ai_integration"``.
            limit: Calls allowed per window.
            window: Window length.
            now: Current time (injectable for testing).

        Returns:
            True if the call is allowed (counter incremented), False otherwise.

        Raises:
            StorageFailureError: the counter row could not be read or written.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        try:
            row = (
                self.db.query(RateLimitWindow)
                .filter(RateLimitWindow.user_id == user_id, RateLimitWindow.action == action)
                .with_for_update()
                .first()
            )
            if row is None:
                row = RateLimitWindow(user_id=user_id, action=action, count=0, window_start=now)
                self.db.add(row)
            elif now - _as_utc(row.window_start) > window:
                row.count = 0
                row.window_start = now

            if row.count >= limit:
                logger.info(
                    "Rate limit reached",
                    extra={"user_id": user_id, "action": action, "limit": limit},
                )
                self.db.flush()
                return False

            row.count += 1
            self.db.flush()
            return True
        except SQLAlchemyError as e:
            raise StorageFailureError("Rate limit counter unavailable", original_error=e) from e

    def retry_after(
        self,
        user_id: str,
        action: str,
        window: timedelta,
        now: Optional[datetime] = None,
    ) -> float:
        """Seconds until the current window for (user, action) resets."""
        if now is None:
            now = datetime.now(timezone.utc)
        row = self.db.get(RateLimitWindow, (user_id, action))
        if row is None:
            return 0.0
        remaining = (_as_utc(row.window_start) + window - now).total_seconds()
        return max(0.0, remaining)

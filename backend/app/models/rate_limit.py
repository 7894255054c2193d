"""Rate limit window model."""

from sqlalchemy import Column, String, Integer, DateTime
from ..database import Base


class RateLimitWindow(Base):
    """Fixed-window counter, one row per (user, action)."""

    __tablename__ = "rate_limit_windows"

    user_id = Column(String(100), primary_key=True)
    action = Column(String(100), primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    window_start = Column(DateTime(timezone=True), nullable=False)

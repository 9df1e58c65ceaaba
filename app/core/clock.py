# app/core/clock.py
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from app.core.config import settings


class Clock(ABC):
    """Time source for salary status and edit-lock decisions"""

    def __init__(self, tz_name: Optional[str] = None):
        self.tz = ZoneInfo(tz_name or settings.TIMEZONE)

    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC"""

    def today(self) -> date:
        """Current calendar date in the business timezone"""
        return self.now().astimezone(self.tz).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency; override in tests to freeze time"""
    return system_clock

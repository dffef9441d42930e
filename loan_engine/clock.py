"""
Clock Module

Source of "now" for overdue checks, due-date resets and completion dates.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):
    """Abstract time source"""
    
    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Wall clock, timezone-aware UTC"""
    
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant; advance it explicitly"""
    
    def __init__(self, instant: datetime):
        self.instant = instant
    
    def now(self) -> datetime:
        return self.instant
    
    def set(self, instant: datetime) -> None:
        self.instant = instant


def as_date(moment) -> date:
    """Calendar date of a date or datetime"""
    if isinstance(moment, datetime):
        return moment.date()
    return moment


def as_datetime(moment) -> datetime:
    """Datetime for a date or datetime (dates become UTC midnight)"""
    if isinstance(moment, datetime):
        return moment
    return datetime(moment.year, moment.month, moment.day, tzinfo=timezone.utc)

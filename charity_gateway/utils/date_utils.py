"""Date manipulation utilities"""

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every table stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(day: Optional[date]) -> Optional[datetime]:
    if day is None:
        return None
    return datetime.combine(day, time.min)


def end_of_day(day: Optional[date]) -> Optional[datetime]:
    """Inclusive upper bound: 23:59:59.999999 of the given day"""
    if day is None:
        return None
    return datetime.combine(day, time.max)

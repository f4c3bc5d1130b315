"""
Half-open rental windows.

A window covers ``[start, end)``: a booking returning at 10:00 and another
picked up at 10:00 on the same car do not conflict.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from services.errors import ValidationError


def _as_naive_utc(value: datetime) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError(f"Expected a datetime, got {type(value).__name__}")
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime

    def __post_init__(self):
        start = _as_naive_utc(self.start)
        end = _as_naive_utc(self.end)
        if end <= start:
            raise ValidationError(f"Window end ({end}) must be after start ({start})")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, instant: datetime) -> bool:
        return self.start <= _as_naive_utc(instant) < self.end

    def overlaps(self, other: "Window") -> bool:
        return overlaps(self, other)

    def touches(self, other: "Window") -> bool:
        return self.end == other.start or other.end == self.start

    def __str__(self):
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"


def overlaps(a: Window, b: Window) -> bool:
    return a.start < b.end and b.start < a.end

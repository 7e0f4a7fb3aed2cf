"""
Domain models for availability slots, people and day notes.

Dates travel as ``YYYY-MM-DD`` strings and clock times as ``HH:MM`` strings,
exactly as they are exchanged with the backing store. ``TimeRange`` is the
typed view used whenever interval arithmetic is needed.
"""

from dataclasses import dataclass, replace
from datetime import time
from typing import Tuple

import pendulum
from pendulum import Date

from .exceptions import InvalidRangeError

DATE_FORMAT = "YYYY-MM-DD"
CLOCK_FORMAT = "HH:mm"

NOTE_COLORS: Tuple[str, ...] = ("yellow", "blue", "green", "red", "purple")
DEFAULT_NOTE_COLOR = "yellow"


def parse_clock(value: str) -> time:
    """
    Parse a 24-hour ``HH:MM`` string into a time of day.

    Raises:
        InvalidRangeError: If the value is not a valid clock time
    """
    if not isinstance(value, str):
        raise InvalidRangeError(f"Malformed clock time: {value!r}")
    try:
        parsed = pendulum.from_format(value.strip(), CLOCK_FORMAT)
    except ValueError as exc:
        raise InvalidRangeError(f"Malformed clock time: {value!r}") from exc
    return time(hour=parsed.hour, minute=parsed.minute)


def format_clock(value: time) -> str:
    """Format a time of day as ``HH:MM``."""
    return f"{value.hour:02d}:{value.minute:02d}"


def clock_minutes(value: time) -> int:
    """Minutes elapsed since midnight."""
    return value.hour * 60 + value.minute


def parse_day(value: str) -> Date:
    """
    Parse a ``YYYY-MM-DD`` string into a calendar date.

    Raises:
        ValueError: If the value is not a valid date
    """
    if not isinstance(value, str):
        raise ValueError(f"Malformed date: {value!r}")
    try:
        return pendulum.from_format(value.strip(), DATE_FORMAT).date()
    except ValueError as exc:
        raise ValueError(f"Malformed date: {value!r}") from exc


@dataclass(frozen=True)
class TimeRange:
    """
    Half-open clock interval ``[start, end)`` within a single day.

    Invariant: start must be before end.
    """
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidRangeError(
                f"Start time {format_clock(self.start)} must be before end time {format_clock(self.end)}"
            )

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeRange":
        """Build a range from two ``HH:MM`` strings."""
        return cls(start=parse_clock(start), end=parse_clock(end))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return clock_minutes(self.end) - clock_minutes(self.start)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range shares any instant with another."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies completely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{format_clock(self.start)}-{format_clock(self.end)}"


@dataclass(frozen=True)
class Slot:
    """
    A stored block of availability for one owner on one date.
    """
    id: str
    owner_id: str
    date: str
    start_time: str
    end_time: str
    booked: bool = False

    def time_range(self) -> TimeRange:
        """
        Typed interval of this slot.

        Raises:
            InvalidRangeError: If the stored bounds are malformed or inverted
        """
        return TimeRange.parse(self.start_time, self.end_time)

    def with_range(self, time_range: TimeRange, **changes) -> "Slot":
        """Copy of this slot spanning ``time_range``."""
        return replace(
            self,
            start_time=format_clock(time_range.start),
            end_time=format_clock(time_range.end),
            **changes,
        )

    def same_day_and_owner(self, other: "Slot") -> bool:
        return self.owner_id == other.owner_id and self.date == other.date

    def __str__(self) -> str:
        state = "booked" if self.booked else "open"
        return f"{self.date} {self.start_time}-{self.end_time} ({state})"


@dataclass(frozen=True)
class Person:
    """An interviewer who owns slots."""
    id: str
    name: str
    color: str

    def matches_name(self, name: str) -> bool:
        """Case-insensitive comparison against a display name."""
        return self.name.strip().lower() == name.strip().lower()


@dataclass(frozen=True)
class Note:
    """Free-text note attached to a calendar day."""
    date: str
    content: str
    color: str = DEFAULT_NOTE_COLOR


@dataclass(frozen=True)
class DisplayUnit:
    """
    Fixed-size slice of a slot, produced only for rendering.

    ``key`` is unique per slice; ``source_id`` is the id of the slot it was
    cut from.
    """
    key: str
    source_id: str
    owner_id: str
    date: str
    start_time: str
    end_time: str
    booked: bool = False

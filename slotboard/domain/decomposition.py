"""
Projection of stored slots into fixed-size display units.
"""

import re
from typing import Iterable, Iterator

import pendulum
from pendulum import DateTime

from .models import CLOCK_FORMAT, DATE_FORMAT, DisplayUnit, Slot

KEY_SEPARATOR = "__"
WHOLE_MARKER = "whole"

_UNIT_SUFFIX = re.compile(rf"{KEY_SEPARATOR}(\d{{4}}|{WHOLE_MARKER})$")


def unit_key(source_id: str, start: DateTime) -> str:
    """Rendering key for the unit of ``source_id`` starting at ``start``."""
    return f"{source_id}{KEY_SEPARATOR}{start.format('HHmm')}"


def resolve_source_id(key: str) -> str:
    """
    Recover the source slot id from a display unit key.

    Every key carries exactly one suffix, either the unit start or the
    whole-slot marker, so slot ids that happen to end in ``__dddd`` survive.
    """
    return _UNIT_SUFFIX.sub("", key, count=1)


class DisplayDecomposer:
    """
    Cuts slots into ``step_minutes`` long units for the calendar grid.

    A trailing remainder shorter than one step is not emitted. Slots whose
    bounds cannot be parsed, or whose start is not before their end, come out
    unchanged as a single unit. At most ``max_units`` units are produced per
    slot.
    """

    def __init__(self, step_minutes: int = 30, max_units: int = 50):
        if step_minutes <= 0:
            raise ValueError("step_minutes must be greater than zero")
        if max_units <= 0:
            raise ValueError("max_units must be greater than zero")
        self.step_minutes = step_minutes
        self.max_units = max_units

    def decompose(self, slot: Slot) -> Iterator[DisplayUnit]:
        """Lazily yield the display units of ``slot`` in chronological order."""
        try:
            start = self._anchor(slot.date, slot.start_time)
            end = self._anchor(slot.date, slot.end_time)
        except ValueError:
            yield self._whole(slot)
            return

        if start >= end:
            yield self._whole(slot)
            return

        current = start
        for _ in range(self.max_units):
            following = current.add(minutes=self.step_minutes)
            if following > end:
                break
            yield DisplayUnit(
                key=unit_key(slot.id, current),
                source_id=slot.id,
                owner_id=slot.owner_id,
                date=slot.date,
                start_time=current.format(CLOCK_FORMAT),
                end_time=following.format(CLOCK_FORMAT),
                booked=slot.booked,
            )
            current = following

    def decompose_all(self, slots: Iterable[Slot]) -> Iterator[DisplayUnit]:
        """Chain the units of several slots."""
        for slot in slots:
            yield from self.decompose(slot)

    @staticmethod
    def _anchor(date: str, clock: str) -> DateTime:
        if not isinstance(date, str) or not isinstance(clock, str):
            raise ValueError(f"Unparsable bound: {date!r} {clock!r}")
        return pendulum.from_format(f"{date} {clock}", f"{DATE_FORMAT} {CLOCK_FORMAT}")

    @staticmethod
    def _whole(slot: Slot) -> DisplayUnit:
        return DisplayUnit(
            key=f"{slot.id}{KEY_SEPARATOR}{WHOLE_MARKER}",
            source_id=slot.id,
            owner_id=slot.owner_id,
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            booked=slot.booked,
        )

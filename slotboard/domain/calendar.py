"""
Month grid and per-day views for the calendar display.
"""

from dataclasses import dataclass, field
from typing import Collection, Dict, Iterable, List, Optional

import pendulum
from pendulum import Date

from .decomposition import DisplayDecomposer
from .models import DATE_FORMAT, DisplayUnit, Note, Person, Slot


@dataclass
class DayView:
    """Everything shown in one cell of the month grid."""
    date: Date
    in_month: bool
    units: List[DisplayUnit] = field(default_factory=list)
    note: Optional[Note] = None

    @property
    def key(self) -> str:
        return self.date.format(DATE_FORMAT)


def month_grid(year: int, month: int) -> List[Date]:
    """
    All days shown for a month: whole weeks from Sunday to Saturday that
    cover the first and the last day of the month.
    """
    first = pendulum.date(year, month, 1)
    last = first.end_of("month")

    # day_of_week: 0=Monday ... 6=Sunday
    current = first.subtract(days=(first.day_of_week + 1) % 7)
    end = last.add(days=(5 - last.day_of_week) % 7)

    days: List[Date] = []
    while current <= end:
        days.append(current)
        current = current.add(days=1)
    return days


def build_month_view(
    year: int,
    month: int,
    slots: Iterable[Slot],
    people: Iterable[Person],
    notes: Iterable[Note],
    decomposer: DisplayDecomposer,
    selected_owner_ids: Optional[Collection[str]] = None,
) -> List[DayView]:
    """
    Build the day cells of a month.

    Only slots whose owner exists (and is selected, when a selection is
    given) are shown; each is cut into display units.
    """
    known_ids = {person.id for person in people}
    slots_by_day: Dict[str, List[Slot]] = {}
    for slot in slots:
        if slot.owner_id not in known_ids:
            continue
        if selected_owner_ids is not None and slot.owner_id not in selected_owner_ids:
            continue
        slots_by_day.setdefault(slot.date, []).append(slot)

    notes_by_day = {note.date: note for note in notes}

    views: List[DayView] = []
    for day in month_grid(year, month):
        key = day.format(DATE_FORMAT)
        day_slots = sorted(slots_by_day.get(key, []), key=lambda s: (s.start_time, s.end_time))
        views.append(
            DayView(
                date=day,
                in_month=day.month == month,
                units=list(decomposer.decompose_all(day_slots)),
                note=notes_by_day.get(key),
            )
        )
    return views


def in_month(date: str, year: int, month: int) -> bool:
    """Check if a ``YYYY-MM-DD`` string falls in the given month."""
    try:
        day = pendulum.from_format(date, DATE_FORMAT)
    except (TypeError, ValueError):
        return False
    return day.year == year and day.month == month


def active_people(
    year: int,
    month: int,
    slots: Iterable[Slot],
    people: Iterable[Person],
) -> List[Person]:
    """
    People with at least one slot in the month, de-duplicated by name.
    """
    active_ids = {slot.owner_id for slot in slots if in_month(slot.date, year, month)}

    seen: set[str] = set()
    roster: List[Person] = []
    for person in people:
        if person.id not in active_ids:
            continue
        name_key = person.name.strip().lower()
        if name_key in seen:
            continue
        seen.add(name_key)
        roster.append(person)
    return roster

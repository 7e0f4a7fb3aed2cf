"""
Monthly availability statistics per interviewer.
"""

from dataclasses import dataclass
from typing import Collection, Dict, Iterable, List, Tuple

from .calendar import in_month
from .exceptions import InvalidRangeError
from .models import Person, Slot


@dataclass
class PersonStatistics:
    """Available and booked time of one person, counted in units."""
    person_id: str
    name: str
    color: str
    available_units: float = 0.0
    booked_units: float = 0.0

    @property
    def total_units(self) -> float:
        return self.available_units + self.booked_units


def month_statistics(
    year: int,
    month: int,
    slots: Iterable[Slot],
    people: Iterable[Person],
    unit_minutes: int = 30,
) -> List[PersonStatistics]:
    """
    Count available and booked units per person for a month.

    A unit is ``unit_minutes`` long; partial units count fractionally.
    Slots of unknown people and slots with malformed bounds contribute
    nothing. The result is sorted by name.
    """
    people_by_id = {person.id: person for person in people}
    stats: Dict[str, PersonStatistics] = {}

    for slot in slots:
        if not in_month(slot.date, year, month):
            continue
        person = people_by_id.get(slot.owner_id)
        if person is None:
            continue

        entry = stats.setdefault(
            person.id,
            PersonStatistics(person_id=person.id, name=person.name, color=person.color),
        )

        try:
            units = slot.time_range().duration_minutes() / unit_minutes
        except InvalidRangeError:
            units = 0.0

        if slot.booked:
            entry.booked_units += units
        else:
            entry.available_units += units

    return sorted(stats.values(), key=lambda entry: entry.name.lower())


def totals(stats: Iterable[PersonStatistics], selected_ids: Collection[str]) -> Tuple[float, float]:
    """Sum ``(available, booked)`` units over the selected people."""
    available = 0.0
    booked = 0.0
    for entry in stats:
        if entry.person_id in selected_ids:
            available += entry.available_units
            booked += entry.booked_units
    return available, booked

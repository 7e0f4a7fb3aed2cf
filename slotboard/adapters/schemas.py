"""
Row schemas of the three backing-store tables.

Rows arrive as lists of cells with trailing blanks omitted. Each schema pads
and validates them before they are turned into domain objects, so nothing
downstream has to trust the raw store contents.
"""

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from pydantic import BaseModel, field_validator

from ..domain.models import DEFAULT_NOTE_COLOR, NOTE_COLORS, Note, Person, Slot, parse_day

DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "09:30"
DEFAULT_PERSON_COLOR = "#3B82F6"


@dataclass(frozen=True)
class TableSpec:
    """Name and column layout of a table; the first column is the key."""
    name: str
    columns: Tuple[str, ...]

    @property
    def last_column(self) -> str:
        return chr(ord("A") + len(self.columns) - 1)

    @property
    def full_range(self) -> str:
        return f"{self.name}!A:{self.last_column}"

    @property
    def key_range(self) -> str:
        return f"{self.name}!A:A"

    def row_range(self, index: int) -> str:
        """A1 range of the 0-based row ``index``."""
        return f"{self.name}!A{index + 1}:{self.last_column}{index + 1}"


SLOTS = TableSpec("Slots", ("id", "interviewerId", "date", "startTime", "endTime", "isBooked"))
PEOPLE = TableSpec("Interviewers", ("id", "name", "color"))
NOTES = TableSpec("Notes", ("date", "content", "color"))

TABLES: Tuple[TableSpec, ...] = (SLOTS, PEOPLE, NOTES)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _pad(cells: Sequence[Any], width: int) -> List[Any]:
    padded = list(cells[:width])
    padded.extend([None] * (width - len(padded)))
    return padded


class SlotRow(BaseModel):
    """One row of the Slots table."""
    id: str
    interviewer_id: str
    date: str
    start_time: str = DEFAULT_START_TIME
    end_time: str = DEFAULT_END_TIME
    is_booked: bool = False

    @field_validator("id", "interviewer_id", "date", "start_time", "end_time", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return _cell_text(value)

    @field_validator("id", "interviewer_id")
    @classmethod
    def require_key(cls, value: str) -> str:
        """Ids must be present."""
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        parse_day(value)
        return value

    @field_validator("start_time")
    @classmethod
    def default_start(cls, value: str) -> str:
        return value or DEFAULT_START_TIME

    @field_validator("end_time")
    @classmethod
    def default_end(cls, value: str) -> str:
        return value or DEFAULT_END_TIME

    @field_validator("is_booked", mode="before")
    @classmethod
    def parse_booked(cls, value: Any) -> bool:
        """Only the text ``true`` (any case) or a real ``True`` counts as booked."""
        if isinstance(value, bool):
            return value
        return _cell_text(value).lower() == "true"

    @classmethod
    def from_cells(cls, cells: Sequence[Any]) -> "SlotRow":
        id_, owner, date, start, end, booked = _pad(cells, len(SLOTS.columns))
        return cls(
            id=id_,
            interviewer_id=owner,
            date=date,
            start_time=start,
            end_time=end,
            is_booked=booked,
        )

    @classmethod
    def from_domain(cls, slot: Slot) -> "SlotRow":
        return cls(
            id=slot.id,
            interviewer_id=slot.owner_id,
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            is_booked=slot.booked,
        )

    def to_cells(self) -> List[Any]:
        return [self.id, self.interviewer_id, self.date, self.start_time, self.end_time, self.is_booked]

    def to_domain(self) -> Slot:
        return Slot(
            id=self.id,
            owner_id=self.interviewer_id,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            booked=self.is_booked,
        )


class PersonRow(BaseModel):
    """One row of the Interviewers table."""
    id: str
    name: str
    color: str = DEFAULT_PERSON_COLOR

    @field_validator("id", "name", "color", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return _cell_text(value)

    @field_validator("id", "name")
    @classmethod
    def require_value(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("color")
    @classmethod
    def default_color(cls, value: str) -> str:
        return value or DEFAULT_PERSON_COLOR

    @classmethod
    def from_cells(cls, cells: Sequence[Any]) -> "PersonRow":
        id_, name, color = _pad(cells, len(PEOPLE.columns))
        return cls(id=id_, name=name, color=color)

    @classmethod
    def from_domain(cls, person: Person) -> "PersonRow":
        return cls(id=person.id, name=person.name, color=person.color)

    def to_cells(self) -> List[Any]:
        return [self.id, self.name, self.color]

    def to_domain(self) -> Person:
        return Person(id=self.id, name=self.name, color=self.color)


class NoteRow(BaseModel):
    """One row of the Notes table."""
    date: str
    content: str = ""
    color: str = DEFAULT_NOTE_COLOR

    @field_validator("date", "content", "color", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        return _cell_text(value)

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        parse_day(value)
        return value

    @field_validator("color")
    @classmethod
    def known_color(cls, value: str) -> str:
        """Unknown colours fall back to the default."""
        return value if value in NOTE_COLORS else DEFAULT_NOTE_COLOR

    @classmethod
    def from_cells(cls, cells: Sequence[Any]) -> "NoteRow":
        date, content, color = _pad(cells, len(NOTES.columns))
        return cls(date=date, content=content, color=color)

    @classmethod
    def from_domain(cls, note: Note) -> "NoteRow":
        return cls(date=note.date, content=note.content, color=note.color)

    def to_cells(self) -> List[Any]:
        return [self.date, self.content, self.color]

    def to_domain(self) -> Note:
        return Note(date=self.date, content=self.content, color=self.color)

"""
Key-indexed access to the Slots, Interviewers and Notes tables.

The underlying tabular store only knows whole-range reads, row appends,
row range updates and row range deletes. Lookups by key are done here by
scanning the key column. A scan followed by a write is two separate round
trips and is not transactional: a concurrent writer can shift rows in
between. Callers needing strict correctness must serialize writes to a
table themselves.
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from ..domain.exceptions import PersistenceError
from ..domain.models import Note, Person, Slot
from .schemas import NOTES, PEOPLE, SLOTS, TABLES, NoteRow, PersonRow, SlotRow, TableSpec

logger = logging.getLogger(__name__)

Row = List[Any]
TableRef = Union[TableSpec, str]


def _store_boundary(method):
    """
    Re-raise anything a store call or row conversion throws as PersistenceError.

    Callers only have to handle one exception type for every failed read or
    write, including malformed domain values and store responses of the wrong
    shape.
    """
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except PersistenceError:
            raise
        except (ValueError, TypeError, LookupError) as exc:
            logger.error("%s failed: %s", method.__name__, exc)
            raise PersistenceError(f"{method.__name__} failed: {exc}") from exc

    return wrapper


class TabularStoreProtocol(Protocol):
    """Primitive operations offered by the external tabular store."""

    def batch_get(self, ranges: Sequence[str]) -> List[List[Row]]:
        """Return the rows of each range, in request order."""

    def append(self, range_: str, rows: Sequence[Row]) -> None:
        """Append rows after the last non-empty row of the range's table."""

    def update(self, range_: str, rows: Sequence[Row]) -> None:
        """Overwrite the cells of ``range_``."""

    def delete_rows(self, table: str, start_index: int, end_index: int) -> None:
        """Delete rows ``[start_index, end_index)`` of ``table`` (0-based)."""

    def ensure_tables(self, titles: Sequence[str]) -> List[str]:
        """Create missing tables; return the titles that were created."""


@dataclass(frozen=True)
class BoardSnapshot:
    """Parsed contents of all three tables at one point in time."""
    slots: Tuple[Slot, ...] = ()
    people: Tuple[Person, ...] = ()
    notes: Tuple[Note, ...] = ()


class BoardStore:
    """
    Backing store adapter for the availability board.

    ``load_all`` may be served from a cache for ``cache_ttl_seconds``. Every
    write drops the cache, whichever table it touches.
    """

    def __init__(
        self,
        store: TabularStoreProtocol,
        cache_ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._cache_ttl = cache_ttl_seconds
        self._clock = clock
        self._cached: Optional[BoardSnapshot] = None
        self._cached_at = 0.0

    # --- Reads -----------------------------------------------------------

    @_store_boundary
    def load_all(self, force: bool = False) -> BoardSnapshot:
        """
        Read and parse all tables.

        Args:
            force: Skip the cache and always read from the store

        Returns:
            BoardSnapshot with the current rows

        Raises:
            PersistenceError: If the store cannot be read
        """
        if not force and self._cached is not None:
            age = self._clock() - self._cached_at
            if age < self._cache_ttl:
                logger.debug("Serving board from cache (age %.1fs)", age)
                return self._cached

        slot_rows, person_rows, note_rows = self._store.batch_get([table.full_range for table in TABLES])

        snapshot = BoardSnapshot(
            slots=tuple(row.to_domain() for row in self._parse_rows(SLOTS, SlotRow, slot_rows)),
            people=tuple(row.to_domain() for row in self._parse_rows(PEOPLE, PersonRow, person_rows)),
            notes=tuple(row.to_domain() for row in self._parse_rows(NOTES, NoteRow, note_rows)),
        )
        logger.info(
            "Loaded %d slots, %d people, %d notes",
            len(snapshot.slots),
            len(snapshot.people),
            len(snapshot.notes),
        )

        self._cached = snapshot
        self._cached_at = self._clock()
        return snapshot

    @_store_boundary
    def find_row_index(self, table: TableRef, key: str) -> Optional[int]:
        """
        Position of the first row whose key equals ``key``.

        Returns:
            0-based row index, or None if not found. The header is row 0 and
            is never matched, even when a key equals its column title.
        """
        index, _ = self._scan(self._table(table), key)
        return index

    # --- Writes ----------------------------------------------------------

    def invalidate(self) -> None:
        """Drop the cached snapshot."""
        self._cached = None

    @_store_boundary
    def append(self, table: TableRef, rows: Sequence[Row]) -> None:
        """Append rows to a table."""
        spec = self._table(table)
        self.invalidate()
        if not rows:
            return
        self._store.append(spec.full_range, rows)
        logger.info("Appended %d row(s) to %s", len(rows), spec.name)

    @_store_boundary
    def upsert(self, table: TableRef, key: str, row: Row) -> None:
        """Update the row with ``key`` in place, or append it if it is missing."""
        spec = self._table(table)
        self.invalidate()

        index, _ = self._scan(spec, key)
        if index is None:
            self._store.append(spec.full_range, [row])
            logger.info("Appended %s row %s", spec.name, key)
        else:
            self._store.update(spec.row_range(index), [row])
            logger.info("Updated %s row %s at position %d", spec.name, key, index)

    @_store_boundary
    def delete_by_key(self, table: TableRef, key: str) -> int:
        """
        Delete every row whose key equals ``key``.

        Failed retries can leave duplicate rows behind, so this keeps
        deleting until a scan finds no match.

        Returns:
            Number of rows deleted

        Raises:
            PersistenceError: If the store call fails or rows refuse to go away
        """
        spec = self._table(table)
        self.invalidate()

        deleted = 0
        index, size = self._scan(spec, key)
        attempts_left = size

        while index is not None:
            if attempts_left <= 0:
                raise PersistenceError(f"Rows with key {key} in {spec.name} could not be deleted")
            self._store.delete_rows(spec.name, index, index + 1)
            deleted += 1
            attempts_left -= 1
            index, _ = self._scan(spec, key)

        if deleted:
            logger.info("Deleted %d %s row(s) with key %s", deleted, spec.name, key)
        return deleted

    @_store_boundary
    def ensure_tables(self) -> List[str]:
        """
        Create missing tables and give empty tables their header row.

        Returns:
            Names of tables that had to be created
        """
        self.invalidate()
        created = self._store.ensure_tables([table.name for table in TABLES])

        key_columns = self._store.batch_get([table.key_range for table in TABLES])
        for table, rows in zip(TABLES, key_columns):
            if not rows:
                self._store.append(table.full_range, [list(table.columns)])
                logger.info("Wrote header row to %s", table.name)
        return created

    # --- Typed helpers ---------------------------------------------------

    @_store_boundary
    def create_slot(self, slot: Slot) -> None:
        self.append(SLOTS, [SlotRow.from_domain(slot).to_cells()])

    @_store_boundary
    def create_slots(self, slots: Sequence[Slot]) -> None:
        self.append(SLOTS, [SlotRow.from_domain(slot).to_cells() for slot in slots])

    @_store_boundary
    def save_slot(self, slot: Slot) -> None:
        self.upsert(SLOTS, slot.id, SlotRow.from_domain(slot).to_cells())

    @_store_boundary
    def delete_slot(self, slot_id: str) -> int:
        return self.delete_by_key(SLOTS, slot_id)

    @_store_boundary
    def save_person(self, person: Person) -> None:
        self.upsert(PEOPLE, person.id, PersonRow.from_domain(person).to_cells())

    @_store_boundary
    def save_note(self, note: Note) -> None:
        self.upsert(NOTES, note.date, NoteRow.from_domain(note).to_cells())

    @_store_boundary
    def delete_note(self, date: str) -> int:
        return self.delete_by_key(NOTES, date)

    # --- Internals -------------------------------------------------------

    def _scan(self, spec: TableSpec, key: str) -> Tuple[Optional[int], int]:
        (rows,) = self._store.batch_get([spec.key_range])
        target = str(key).strip()
        # Row 0 is the header
        for index, row in enumerate(rows[1:], start=1):
            if row and str(row[0]).strip() == target:
                return index, len(rows)
        return None, len(rows)

    @staticmethod
    def _table(table: TableRef) -> TableSpec:
        if isinstance(table, TableSpec):
            return table
        for spec in TABLES:
            if spec.name == table:
                return spec
        raise ValueError(f"Unknown table: {table}")

    @staticmethod
    def _parse_rows(spec: TableSpec, schema: Type[BaseModel], rows: Sequence[Row]) -> List[Any]:
        parsed = []
        # Row 0 is the header
        for position, cells in enumerate(rows[1:], start=2):
            if not any(str(cell).strip() for cell in cells if cell is not None):
                continue
            try:
                parsed.append(schema.from_cells(cells))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed %s row %d: %s",
                    spec.name,
                    position,
                    exc.errors(include_url=False),
                )
        return parsed

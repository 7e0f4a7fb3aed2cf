"""
Tests for the key-indexed backing store adapter.
"""

from typing import Dict, List

import pytest

from slotboard.adapters.board_store import BoardStore
from slotboard.adapters.memory_store import MemoryTabularStore
from slotboard.adapters.schemas import NOTES, PEOPLE, SLOTS
from slotboard.domain.exceptions import PersistenceError
from slotboard.domain.models import Note, Person, Slot

SLOT_HEADER = list(SLOTS.columns)
PEOPLE_HEADER = list(PEOPLE.columns)
NOTES_HEADER = list(NOTES.columns)


def _tables(slots: List[list] = None, people: List[list] = None, notes: List[list] = None) -> Dict[str, List[list]]:
    return {
        "Slots": [SLOT_HEADER] + (slots or []),
        "Interviewers": [PEOPLE_HEADER] + (people or []),
        "Notes": [NOTES_HEADER] + (notes or []),
    }


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestKeyOperations:
    """Tests for find, upsert and delete by key."""

    def test_find_row_index(self):
        """Rows are found by key; the header is row 0."""
        store = MemoryTabularStore(tables=_tables(slots=[
            ["s1", "p1", "2024-11-25", "09:00", "10:00", False],
            ["s2", "p1", "2024-11-25", "10:00", "11:00", False],
        ]))
        board = BoardStore(store)

        assert board.find_row_index(SLOTS, "s2") == 2
        assert board.find_row_index("Slots", "s1") == 1
        assert board.find_row_index(SLOTS, "missing") is None

    def test_find_row_index_normalizes_keys(self):
        store = MemoryTabularStore(tables=_tables(notes=[[" 2024-11-25 ", "hi", "blue"]]))

        assert BoardStore(store).find_row_index(NOTES, "2024-11-25") == 1

    def test_upsert_appends_missing_key(self):
        store = MemoryTabularStore(tables=_tables())
        board = BoardStore(store)

        board.save_person(Person(id="p1", name="Alice", color="#3B82F6"))

        assert store.tables["Interviewers"][1] == ["p1", "Alice", "#3B82F6"]

    def test_upsert_updates_existing_row_in_place(self):
        """Test that a second save overwrites instead of duplicating."""
        store = MemoryTabularStore(tables=_tables(notes=[["2024-11-24", "keep", "red"], ["2024-11-25", "old", "yellow"]]))
        board = BoardStore(store)

        board.save_note(Note(date="2024-11-25", content="new", color="green"))

        assert store.tables["Notes"] == [
            NOTES_HEADER,
            ["2024-11-24", "keep", "red"],
            ["2024-11-25", "new", "green"],
        ]

    def test_delete_by_key_removes_duplicates(self):
        """Every row with the key goes, even duplicates left by failed retries."""
        store = MemoryTabularStore(tables=_tables(slots=[
            ["dup", "p1", "2024-11-25", "09:00", "10:00", False],
            ["keep", "p1", "2024-11-25", "10:00", "11:00", False],
            ["dup", "p1", "2024-11-25", "09:00", "10:00", False],
            ["dup", "p1", "2024-11-25", "09:00", "10:00", True],
        ]))
        board = BoardStore(store)

        assert board.delete_slot("dup") == 3
        assert board.find_row_index(SLOTS, "dup") is None
        assert [row[0] for row in store.tables["Slots"]] == ["id", "keep"]

    def test_delete_by_key_is_idempotent(self):
        store = MemoryTabularStore(tables=_tables(notes=[["2024-11-25", "x", "yellow"]]))
        board = BoardStore(store)

        assert board.delete_note("2024-11-25") == 1
        assert board.delete_note("2024-11-25") == 0
        assert store.tables["Notes"] == [NOTES_HEADER]

    def test_delete_gives_up_when_rows_do_not_disappear(self):
        """A store that ignores deletes must not make the adapter loop forever."""

        class StubbornStore(MemoryTabularStore):
            def delete_rows(self, table, start_index, end_index):
                self.writes += 1

        store = StubbornStore(tables=_tables(slots=[["s1", "p1", "2024-11-25", "09:00", "10:00", False]]))

        with pytest.raises(PersistenceError):
            BoardStore(store).delete_slot("s1")

    def test_header_row_is_never_matched(self):
        """A key equal to a column title is looked up among data rows only."""
        store = MemoryTabularStore(tables=_tables())
        board = BoardStore(store)

        assert board.find_row_index(SLOTS, "id") is None

        board.save_slot(Slot(id="id", owner_id="p1", date="2024-11-25", start_time="09:00", end_time="10:00"))

        assert store.tables["Slots"][0] == SLOT_HEADER
        assert store.tables["Slots"][1][0] == "id"
        assert board.find_row_index(SLOTS, "id") == 1

    def test_deleting_a_header_key_leaves_the_header(self):
        store = MemoryTabularStore(tables=_tables())

        assert BoardStore(store).delete_note("date") == 0
        assert store.tables["Notes"] == [NOTES_HEADER]

    def test_batch_append(self):
        store = MemoryTabularStore(tables=_tables())
        slots = [
            Slot(id=f"s{i}", owner_id="p1", date="2024-11-25", start_time="09:00", end_time="10:00")
            for i in range(3)
        ]

        BoardStore(store).create_slots(slots)

        assert [row[0] for row in store.tables["Slots"][1:]] == ["s0", "s1", "s2"]
        assert store.tables["Slots"][1][5] == "FALSE"


class TestLoadAll:
    """Tests for reading and parsing all tables."""

    def test_rows_are_parsed_and_validated(self):
        """Malformed rows are skipped, missing fields defaulted."""
        store = MemoryTabularStore(tables=_tables(
            slots=[
                ["s1", "p1", "2024-11-25", "09:00", "12:00", "TRUE"],
                ["s2", "p1", "2024-11-25"],
                ["", "p1", "2024-11-25", "09:00", "10:00", "FALSE"],
                ["s3", "p1", "2024-13-40", "09:00", "10:00", "FALSE"],
                ["s4", "", "2024-11-25", "09:00", "10:00", "yes"],
                [],
            ],
            people=[["p1", "Alice", ""], ["p2"]],
            notes=[["2024-11-25", "Panel day", "pink"], ["not-a-date", "x", "red"]],
        ))

        snapshot = BoardStore(store).load_all()

        assert snapshot.slots == (
            Slot(id="s1", owner_id="p1", date="2024-11-25", start_time="09:00", end_time="12:00", booked=True),
            Slot(id="s2", owner_id="p1", date="2024-11-25", start_time="09:00", end_time="09:30", booked=False),
        )
        assert snapshot.people == (Person(id="p1", name="Alice", color="#3B82F6"),)
        assert snapshot.notes == (Note(date="2024-11-25", content="Panel day", color="yellow"),)

    def test_cache_serves_repeated_reads(self):
        """A read within the TTL returns the same snapshot without a store read."""
        store = MemoryTabularStore(tables=_tables(slots=[["s1", "p1", "2024-11-25", "09:00", "12:00", "FALSE"]]))
        clock = FakeClock()
        board = BoardStore(store, cache_ttl_seconds=30, clock=clock)

        first = board.load_all()
        clock.now += 29
        second = board.load_all()

        assert second is first
        assert store.reads == 1

    def test_cache_expires_after_ttl(self):
        store = MemoryTabularStore(tables=_tables())
        clock = FakeClock()
        board = BoardStore(store, cache_ttl_seconds=30, clock=clock)

        board.load_all()
        clock.now += 30
        board.load_all()

        assert store.reads == 2

    def test_any_write_invalidates_cache(self):
        """A note write also drops the cached slots."""
        store = MemoryTabularStore(tables=_tables())
        board = BoardStore(store, cache_ttl_seconds=30, clock=FakeClock())

        board.load_all()
        board.save_note(Note(date="2024-11-25", content="x"))
        reads_after_write = store.reads
        snapshot = board.load_all()

        assert store.reads == reads_after_write + 1
        assert snapshot.notes == (Note(date="2024-11-25", content="x", color="yellow"),)

    def test_force_bypasses_cache(self):
        store = MemoryTabularStore(tables=_tables())
        board = BoardStore(store, cache_ttl_seconds=30, clock=FakeClock())

        board.load_all()
        board.load_all(force=True)

        assert store.reads == 2

    def test_failed_write_still_invalidates_cache(self):
        """The cache is dropped before the write is attempted."""

        class BrokenAppendStore(MemoryTabularStore):
            def append(self, range_, rows):
                raise PersistenceError("rate limited")

        store = BrokenAppendStore(tables=_tables())
        board = BoardStore(store, cache_ttl_seconds=30, clock=FakeClock())
        board.load_all()

        with pytest.raises(PersistenceError):
            board.create_slot(Slot(id="s1", owner_id="p1", date="2024-11-25", start_time="09:00", end_time="10:00"))

        reads_before = store.reads
        board.load_all()
        assert store.reads == reads_before + 1


class TestEnsureTables:
    """Tests for bootstrapping an empty store."""

    def test_creates_tables_and_headers(self):
        store = MemoryTabularStore()

        created = BoardStore(store).ensure_tables()

        assert created == ["Slots", "Interviewers", "Notes"]
        assert store.tables["Slots"] == [SLOT_HEADER]
        assert store.tables["Interviewers"] == [PEOPLE_HEADER]
        assert store.tables["Notes"] == [NOTES_HEADER]

    def test_existing_tables_are_left_alone(self):
        tables = _tables(people=[["p1", "Alice", "#3B82F6"]])
        store = MemoryTabularStore(tables=tables)

        assert BoardStore(store).ensure_tables() == []
        assert store.tables["Interviewers"] == [PEOPLE_HEADER, ["p1", "Alice", "#3B82F6"]]


class ShortScanStore(MemoryTabularStore):
    """Answers single-range reads with no ranges at all."""

    def batch_get(self, ranges):
        if len(ranges) == 1:
            return []
        return super().batch_get(ranges)


class TestErrorBoundary:
    """Every failure leaving the adapter is a PersistenceError."""

    def test_invalid_slot_is_reported_as_persistence_error(self):
        store = MemoryTabularStore(tables=_tables())

        with pytest.raises(PersistenceError):
            BoardStore(store).save_slot(Slot(id="", owner_id="p1", date="2024-11-25", start_time="09:00", end_time="10:00"))

        assert store.tables["Slots"] == [SLOT_HEADER]

    def test_malformed_store_response_is_reported_as_persistence_error(self):
        board = BoardStore(ShortScanStore(tables=_tables()))

        with pytest.raises(PersistenceError):
            board.save_person(Person(id="p1", name="Alice", color="#3B82F6"))
        with pytest.raises(PersistenceError):
            board.delete_note("2024-11-25")

    def test_unknown_table_is_reported_as_persistence_error(self):
        with pytest.raises(PersistenceError):
            BoardStore(MemoryTabularStore(tables=_tables())).append("Bookings", [["x"]])

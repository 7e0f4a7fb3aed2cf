"""
Client-side session holding the board and keeping it in sync with the store.

Every mutation is applied to local state right away and persisted in the
background. If persisting fails, the error is reported and the whole board
is reloaded from the store, dropping any local changes. When that reload
fails as well the local state is kept and the mutation is marked failed.
There is no merge and no retry: retrying an append could duplicate rows.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Collection, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..adapters.ai_parser import ParsedSlot, SlotParserProtocol
from ..adapters.board_store import BoardSnapshot, BoardStore
from ..config import INTERVIEWER_COLORS
from ..domain.calendar import DayView, active_people, build_month_view
from ..domain.decomposition import DisplayDecomposer, resolve_source_id
from ..domain.exceptions import NotFoundError, PersistenceError
from ..domain.models import DEFAULT_NOTE_COLOR, NOTE_COLORS, Note, Person, Slot, parse_day
from ..domain.slot_engine import SlotChange, SlotEngine, SlotSpec
from ..domain.statistics import PersonStatistics, month_statistics

logger = logging.getLogger(__name__)

Write = Callable[[], object]


class SyncStatus(str, Enum):
    """Lifecycle of a mutation."""
    APPLIED = "applied"
    PERSISTED = "persisted"
    REVERTED = "reverted"
    FAILED = "failed"


@dataclass
class PendingMutation:
    """
    Handle on a mutation that has been applied locally.

    ``status`` starts as ``APPLIED`` and moves to ``PERSISTED`` or, after a
    failed write and a successful reload, to ``REVERTED``. If the reload
    fails too, local state still holds the change and the status is
    ``FAILED``.
    """
    description: str
    change: Optional[SlotChange] = None
    people: Tuple[Person, ...] = ()
    status: SyncStatus = SyncStatus.APPLIED
    error: Optional[PersistenceError] = None
    _task: Optional[asyncio.Task] = field(default=None, repr=False)

    async def settled(self) -> "PendingMutation":
        """Wait until persistence has finished one way or the other."""
        if self._task is not None:
            await self._task
        return self


class BoardSession:
    """
    Explicit store object for slots, people and notes.

    Reads go to local state. Mutations must be called from a running event
    loop; blocking store calls run in worker threads so they never hold up
    further local changes. In-flight writes fire independently and can
    finish in any order.
    """

    def __init__(
        self,
        store: BoardStore,
        engine: Optional[SlotEngine] = None,
        decomposer: Optional[DisplayDecomposer] = None,
        palette: Sequence[str] = INTERVIEWER_COLORS,
        on_error: Optional[Callable[[Optional[PendingMutation], PersistenceError], None]] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._store = store
        self._engine = engine or SlotEngine()
        self._decomposer = decomposer or DisplayDecomposer()
        self._palette = list(palette)
        self._on_error = on_error
        self._new_id = id_factory

        self._slots: Tuple[Slot, ...] = ()
        self._people: Tuple[Person, ...] = ()
        self._notes: Dict[str, Note] = {}
        self._in_flight: Set[asyncio.Task] = set()

    # --- State -----------------------------------------------------------

    @property
    def slots(self) -> Tuple[Slot, ...]:
        return self._slots

    @property
    def people(self) -> Tuple[Person, ...]:
        return self._people

    @property
    def notes(self) -> Tuple[Note, ...]:
        return tuple(self._notes.values())

    @property
    def is_syncing(self) -> bool:
        """True while any write is still in flight."""
        return bool(self._in_flight)

    def find_person(self, name: str) -> Optional[Person]:
        """Find a person by display name, ignoring case and surrounding spaces."""
        for person in self._people:
            if person.matches_name(name):
                return person
        return None

    def person(self, person_id: str) -> Person:
        for person in self._people:
            if person.id == person_id:
                return person
        raise NotFoundError(f"Unknown person id: {person_id}")

    def note(self, date: str) -> Optional[Note]:
        return self._notes.get(date)

    # --- Loading ---------------------------------------------------------

    async def load(self) -> BoardSnapshot:
        """Load the board, possibly from the store adapter's cache."""
        snapshot = await asyncio.to_thread(self._store.load_all)
        self._apply_snapshot(snapshot)
        return snapshot

    async def refresh(self) -> BoardSnapshot:
        """Reload everything from the store, discarding local state."""
        snapshot = await asyncio.to_thread(self._store.load_all, True)
        self._apply_snapshot(snapshot)
        return snapshot

    async def ensure_tables(self) -> List[str]:
        """Create missing store tables; returns the names created."""
        return await asyncio.to_thread(self._store.ensure_tables)

    async def drain(self) -> None:
        """Wait for all in-flight writes to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight))

    # --- Slot mutations --------------------------------------------------

    def add_slot(
        self,
        owner_name: str,
        date: str,
        start_time: str,
        end_time: str,
        booked: bool = False,
    ) -> PendingMutation:
        """Create one slot for ``owner_name``, creating the person if needed."""
        owner, new_people = self._resolve_people([owner_name])
        change = self._engine.create(
            self._slots,
            owner_id=owner[0].id,
            date=date,
            start_time=start_time,
            end_time=end_time,
            booked=booked,
        )
        return self._commit(f"add slot {date} {start_time}-{end_time}", change, new_people)

    def edit_slot(
        self,
        key: str,
        start_time: str,
        end_time: str,
        booked: bool,
        owner_name: Optional[str] = None,
    ) -> PendingMutation:
        """
        Rebook or resize a slot.

        Args:
            key: Slot id or display unit key
            start_time: Start of the edited range
            end_time: End of the edited range
            booked: Booked flag of the edited range
            owner_name: Optional new owner of the edited range
        """
        slot_id = self._source_id(key)
        new_people: List[Person] = []
        owner_id = None
        if owner_name is not None:
            owners, new_people = self._resolve_people([owner_name])
            owner_id = owners[0].id

        change = self._engine.resize(
            self._slots,
            slot_id,
            start_time=start_time,
            end_time=end_time,
            booked=booked,
            owner_id=owner_id,
        )
        return self._commit(f"edit slot {slot_id}", change, new_people)

    def delete_slot(
        self,
        key: str,
        target_start: Optional[str] = None,
        target_end: Optional[str] = None,
    ) -> PendingMutation:
        """Delete a slot, or cut ``[target_start, target_end)`` out of it."""
        slot_id = self._source_id(key)
        change = self._engine.delete(self._slots, slot_id, target_start, target_end)
        return self._commit(f"delete slot {slot_id}", change)

    def batch_add(
        self,
        owner_name: str,
        dates: Iterable[str],
        time_ranges: Sequence[Tuple[str, str]],
    ) -> PendingMutation:
        """Create a slot for every combination of date and time range."""
        owners, new_people = self._resolve_people([owner_name])
        owner_id = owners[0].id

        specs = [
            SlotSpec(owner_id=owner_id, date=date, start_time=start, end_time=end)
            for date in sorted(set(dates))
            for start, end in time_ranges
        ]
        change = self._engine.create_many(self._slots, specs)
        return self._commit(f"batch add {len(specs)} slot(s) for {owners[0].name}", change, new_people)

    def import_parsed(self, proposals: Sequence[ParsedSlot]) -> PendingMutation:
        """Accept parser proposals as new, unbooked slots."""
        owners, new_people = self._resolve_people([p.interviewer_name for p in proposals])

        specs = [
            SlotSpec(
                owner_id=owner.id,
                date=proposal.date,
                start_time=proposal.start_time,
                end_time=proposal.end_time,
            )
            for owner, proposal in zip(owners, proposals)
        ]
        change = self._engine.create_many(self._slots, specs)
        return self._commit(f"import {len(specs)} parsed slot(s)", change, new_people)

    async def import_text(
        self,
        parser: SlotParserProtocol,
        text: str,
        reference_year: int,
    ) -> PendingMutation:
        """
        Parse free text and import the proposals.

        A parser failure propagates before anything is changed.
        """
        proposals = await asyncio.to_thread(parser.parse, text, reference_year)
        return self.import_parsed(proposals)

    # --- Notes -----------------------------------------------------------

    def save_note(self, date: str, content: str, color: str = DEFAULT_NOTE_COLOR) -> PendingMutation:
        """Create or replace the note of a day; blank content deletes it."""
        parse_day(date)
        if not content.strip():
            return self.delete_note(date)

        note = Note(date=date, content=content, color=color if color in NOTE_COLORS else DEFAULT_NOTE_COLOR)
        self._notes[date] = note
        return self._dispatch(f"save note {date}", [lambda: self._store.save_note(note)])

    def delete_note(self, date: str) -> PendingMutation:
        self._notes.pop(date, None)
        return self._dispatch(f"delete note {date}", [lambda: self._store.delete_note(date)])

    # --- Views -----------------------------------------------------------

    def month_view(
        self,
        year: int,
        month: int,
        selected_owner_ids: Optional[Collection[str]] = None,
    ) -> List[DayView]:
        return build_month_view(
            year,
            month,
            slots=self._slots,
            people=self._people,
            notes=self._notes.values(),
            decomposer=self._decomposer,
            selected_owner_ids=selected_owner_ids,
        )

    def roster(self, year: int, month: int) -> List[Person]:
        return active_people(year, month, self._slots, self._people)

    def statistics(self, year: int, month: int) -> List[PersonStatistics]:
        return month_statistics(year, month, self._slots, self._people)

    # --- Internals -------------------------------------------------------

    def _resolve_people(self, names: Sequence[str]) -> Tuple[List[Person], List[Person]]:
        """
        Map names to people, inventing the missing ones.

        Nothing is stored here; new people are only committed together with
        the engine change that needs them.
        """
        known = list(self._people)
        resolved: List[Person] = []
        created: List[Person] = []

        for name in names:
            trimmed = name.strip()
            if not trimmed:
                raise ValueError("Interviewer name must not be empty")

            person = next((p for p in known if p.matches_name(trimmed)), None)
            if person is None:
                person = Person(
                    id=self._new_id(),
                    name=trimmed,
                    color=self._palette[len(known) % len(self._palette)],
                )
                known.append(person)
                created.append(person)
            resolved.append(person)

        return resolved, created

    def _commit(
        self,
        description: str,
        change: SlotChange,
        new_people: Sequence[Person] = (),
    ) -> PendingMutation:
        self._people = self._people + tuple(new_people)
        self._slots = change.slots

        writes: List[Write] = [self._person_writer(person) for person in new_people]
        for slot in change.updated:
            writes.append(self._slot_writer(slot))
        if len(change.created) == 1:
            created = change.created[0]
            writes.append(lambda: self._store.create_slot(created))
        elif change.created:
            batch = list(change.created)
            writes.append(lambda: self._store.create_slots(batch))
        for slot_id in change.removed:
            writes.append(self._remover(slot_id))

        mutation = self._dispatch(description, writes)
        mutation.change = change
        mutation.people = tuple(new_people)
        return mutation

    def _person_writer(self, person: Person) -> Write:
        return lambda: self._store.save_person(person)

    def _slot_writer(self, slot: Slot) -> Write:
        return lambda: self._store.save_slot(slot)

    def _remover(self, slot_id: str) -> Write:
        return lambda: self._store.delete_slot(slot_id)

    def _source_id(self, key: str) -> str:
        """Slot id for a slot id or a display unit key; exact ids win."""
        if any(slot.id == key for slot in self._slots):
            return key
        return resolve_source_id(key)

    def _dispatch(self, description: str, writes: List[Write]) -> PendingMutation:
        loop = asyncio.get_running_loop()
        mutation = PendingMutation(description=description)
        task = loop.create_task(self._persist(mutation, writes))
        mutation._task = task
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        logger.debug("Applied %s locally", description)
        return mutation

    async def _persist(self, mutation: PendingMutation, writes: List[Write]) -> None:
        try:
            for write in writes:
                await asyncio.to_thread(write)
        except PersistenceError as exc:
            mutation.error = exc
            logger.error("Could not persist %s: %s", mutation.description, exc)
            self._report(mutation, exc)
            reloaded = await self._recover()
            mutation.status = SyncStatus.REVERTED if reloaded else SyncStatus.FAILED
        else:
            mutation.status = SyncStatus.PERSISTED
            logger.debug("Persisted %s", mutation.description)

    async def _recover(self) -> bool:
        try:
            await self.refresh()
        except PersistenceError as exc:
            logger.error("Reloading the board after a failed write also failed: %s", exc)
            self._report(None, exc)
            return False
        return True

    def _report(self, mutation: Optional[PendingMutation], error: PersistenceError) -> None:
        if self._on_error is not None:
            self._on_error(mutation, error)

    def _apply_snapshot(self, snapshot: BoardSnapshot) -> None:
        self._slots = snapshot.slots
        self._people = snapshot.people
        self._notes = {note.date: note for note in snapshot.notes}

        for first, second in self._engine.find_overlaps(self._slots):
            logger.warning(
                "Store holds overlapping slots %s and %s for %s on %s",
                first.id,
                second.id,
                first.owner_id,
                first.date,
            )

"""
Interval algebra over availability slots.

Pure domain logic: every operation takes the current slot collection and
returns a ``SlotChange`` describing the new collection together with the
slots that were created, updated or removed. Inputs are never mutated, and a
failed precondition raises before anything is computed.
"""

import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from .exceptions import InvalidRangeError, NotFoundError, OutOfBoundsError, SlotOverlapError
from .models import Slot, TimeRange, parse_day


def new_slot_id() -> str:
    """Generate a fresh, never reused slot identifier."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class SlotSpec:
    """Request for a new slot, as collected from a form, a batch or a parser."""
    owner_id: str
    date: str
    start_time: str
    end_time: str
    booked: bool = False


@dataclass(frozen=True)
class SlotChange:
    """
    Result of an engine operation.

    ``slots`` is the complete collection after the operation; the other
    fields list what has to be written to the backing store.
    """
    slots: Tuple[Slot, ...]
    created: Tuple[Slot, ...] = ()
    updated: Tuple[Slot, ...] = ()
    removed: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.created or self.updated or self.removed)


class SlotEngine:
    """
    Maintains the non-overlap invariant of slots under create, resize and delete.

    Resize of a slot ``[S, E)`` to ``[s, e)``:
    1. Same range: update booked flag and/or owner in place
    2. Contained range: split into head ``[S, s)``, main ``[s, e)`` and
       tail ``[e, E)``; main keeps the id, remainders get fresh ids and the
       booked state the slot had before the edit
    3. Anything else: rejected with ``OutOfBoundsError``

    Delete of a target ``[t0, t1)`` inside ``[S, E)``:
    1. Whole slot (or no target): remove it
    2. ``t0 == S``: trim the head, slot becomes ``[t1, E)``
    3. ``t1 == E``: trim the tail, slot becomes ``[S, t0)``
    4. Strictly inside: slot becomes ``[S, t0)`` plus a new slot ``[t1, E)``
    """

    def __init__(self, id_factory: Callable[[], str] = new_slot_id):
        self._new_id = id_factory

    def create(
        self,
        slots: Sequence[Slot],
        owner_id: str,
        date: str,
        start_time: str,
        end_time: str,
        booked: bool = False,
    ) -> SlotChange:
        """
        Add a new slot with a fresh id.

        Raises:
            InvalidRangeError: If start is not before end or a bound is malformed
            SlotOverlapError: If the owner already has a slot overlapping the range
        """
        spec = SlotSpec(
            owner_id=owner_id,
            date=date,
            start_time=start_time,
            end_time=end_time,
            booked=booked,
        )
        return self.create_many(slots, [spec])

    def create_many(self, slots: Sequence[Slot], specs: Iterable[SlotSpec]) -> SlotChange:
        """
        Add several slots at once; either all of them are accepted or none.

        Later specs are checked against earlier ones, so a batch cannot
        overlap itself either.
        """
        working: List[Slot] = list(slots)
        created: List[Slot] = []

        for spec in specs:
            self._check_date(spec.date)
            requested = TimeRange.parse(spec.start_time, spec.end_time)
            self._ensure_free(working, spec.owner_id, spec.date, requested)

            slot = Slot(
                id=self._new_id(),
                owner_id=spec.owner_id,
                date=spec.date,
                start_time=spec.start_time,
                end_time=spec.end_time,
                booked=spec.booked,
            ).with_range(requested)
            working.append(slot)
            created.append(slot)

        return SlotChange(slots=tuple(working), created=tuple(created))

    def resize(
        self,
        slots: Sequence[Slot],
        slot_id: str,
        start_time: str,
        end_time: str,
        booked: bool,
        owner_id: Optional[str] = None,
    ) -> SlotChange:
        """
        Replace all or part of a slot's range, splitting off remainders.

        Args:
            slots: Current slot collection
            slot_id: Slot being edited
            start_time: Requested start (``HH:MM``)
            end_time: Requested end (``HH:MM``)
            booked: Booked flag for the requested range
            owner_id: Optional new owner for the requested range

        Returns:
            SlotChange with the edited slot updated and any remainders created

        Raises:
            NotFoundError: If ``slot_id`` is unknown
            InvalidRangeError: If the requested range is empty or malformed
            OutOfBoundsError: If the requested range is not inside the slot
            SlotOverlapError: If a new owner already has an overlapping slot
        """
        current = self.find(slots, slot_id)
        existing = current.time_range()
        requested = TimeRange.parse(start_time, end_time)
        new_owner = owner_id or current.owner_id

        if requested != existing and not existing.contains(requested):
            raise OutOfBoundsError(
                f"Requested range {requested} is not inside slot {current.id} ({existing})"
            )

        if new_owner != current.owner_id:
            self._ensure_free(slots, new_owner, current.date, requested, ignore={current.id})

        main = current.with_range(requested, booked=booked, owner_id=new_owner)
        pieces: List[Slot] = []
        created: List[Slot] = []

        # Remainders inherit owner and booked state from ``current``
        if requested.start > existing.start:
            head = current.with_range(TimeRange(existing.start, requested.start), id=self._new_id())
            pieces.append(head)
            created.append(head)

        pieces.append(main)

        if requested.end < existing.end:
            tail = current.with_range(TimeRange(requested.end, existing.end), id=self._new_id())
            pieces.append(tail)
            created.append(tail)

        return SlotChange(
            slots=self._splice(slots, current.id, pieces),
            created=tuple(created),
            updated=(main,),
        )

    def delete(
        self,
        slots: Sequence[Slot],
        slot_id: str,
        target_start: Optional[str] = None,
        target_end: Optional[str] = None,
    ) -> SlotChange:
        """
        Delete a slot, or cut a target range out of it.

        A missing target bound defaults to the slot's own bound.

        Raises:
            NotFoundError: If ``slot_id`` is unknown
            InvalidRangeError: If the target range is empty or malformed
            OutOfBoundsError: If the target is not inside the slot
        """
        current = self.find(slots, slot_id)

        if target_start is None and target_end is None:
            return self._remove(slots, current)

        parent = current.time_range()
        target = TimeRange.parse(
            target_start if target_start is not None else current.start_time,
            target_end if target_end is not None else current.end_time,
        )

        if target == parent:
            return self._remove(slots, current)

        if not parent.contains(target):
            raise OutOfBoundsError(
                f"Delete target {target} is not inside slot {current.id} ({parent})"
            )

        if target.start == parent.start:
            trimmed = current.with_range(TimeRange(target.end, parent.end))
            return SlotChange(slots=self._splice(slots, current.id, [trimmed]), updated=(trimmed,))

        if target.end == parent.end:
            trimmed = current.with_range(TimeRange(parent.start, target.start))
            return SlotChange(slots=self._splice(slots, current.id, [trimmed]), updated=(trimmed,))

        kept = current.with_range(TimeRange(parent.start, target.start))
        tail = current.with_range(TimeRange(target.end, parent.end), id=self._new_id())
        return SlotChange(
            slots=self._splice(slots, current.id, [kept, tail]),
            created=(tail,),
            updated=(kept,),
        )

    @staticmethod
    def find(slots: Sequence[Slot], slot_id: str) -> Slot:
        """Look up a slot by id."""
        for slot in slots:
            if slot.id == slot_id:
                return slot
        raise NotFoundError(f"Unknown slot id: {slot_id}")

    @staticmethod
    def find_overlaps(slots: Sequence[Slot]) -> List[Tuple[Slot, Slot]]:
        """
        Report pairs of slots of the same owner and day that overlap.

        Slots with malformed bounds are ignored. The engine never produces
        such pairs itself, but concurrent writers to the store can.
        """
        ranged: List[Tuple[Slot, TimeRange]] = []
        for slot in slots:
            try:
                ranged.append((slot, slot.time_range()))
            except InvalidRangeError:
                continue

        overlaps: List[Tuple[Slot, Slot]] = []
        for index, (slot, time_range) in enumerate(ranged):
            for other, other_range in ranged[index + 1:]:
                if slot.same_day_and_owner(other) and time_range.overlaps(other_range):
                    overlaps.append((slot, other))
        return overlaps

    @staticmethod
    def _check_date(value: str) -> None:
        try:
            parse_day(value)
        except ValueError as exc:
            raise InvalidRangeError(str(exc)) from exc

    @staticmethod
    def _ensure_free(
        slots: Iterable[Slot],
        owner_id: str,
        date: str,
        requested: TimeRange,
        ignore: Optional[Set[str]] = None,
    ) -> None:
        ignore = ignore or set()
        for other in slots:
            if other.id in ignore or other.owner_id != owner_id or other.date != date:
                continue
            try:
                other_range = other.time_range()
            except InvalidRangeError:
                continue
            if other_range.overlaps(requested):
                raise SlotOverlapError(
                    f"{requested} on {date} overlaps existing slot {other.id} ({other_range})"
                )

    @staticmethod
    def _splice(slots: Sequence[Slot], slot_id: str, pieces: Sequence[Slot]) -> Tuple[Slot, ...]:
        result: List[Slot] = []
        for slot in slots:
            if slot.id == slot_id:
                result.extend(pieces)
            else:
                result.append(slot)
        return tuple(result)

    @staticmethod
    def _remove(slots: Sequence[Slot], current: Slot) -> SlotChange:
        remaining = tuple(slot for slot in slots if slot.id != current.id)
        return SlotChange(slots=remaining, removed=(current.id,))


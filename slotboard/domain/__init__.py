"""
Domain layer - pure slot logic, no I/O.
"""

from .decomposition import DisplayDecomposer, resolve_source_id
from .models import DisplayUnit, Note, Person, Slot, TimeRange
from .slot_engine import SlotChange, SlotEngine, SlotSpec

__all__ = [
    "DisplayDecomposer",
    "DisplayUnit",
    "Note",
    "Person",
    "Slot",
    "SlotChange",
    "SlotEngine",
    "SlotSpec",
    "TimeRange",
    "resolve_source_id",
]

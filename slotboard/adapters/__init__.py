"""
Adapters layer - External integrations (Google Sheets store, text parser).
"""

from .ai_parser import HttpSlotParser, ParsedSlot, SlotParserProtocol
from .board_store import BoardSnapshot, BoardStore, TabularStoreProtocol
from .memory_store import MemoryTabularStore
from .sheets_client import SheetsClient

__all__ = [
    "BoardSnapshot",
    "BoardStore",
    "HttpSlotParser",
    "MemoryTabularStore",
    "ParsedSlot",
    "SheetsClient",
    "SlotParserProtocol",
    "TabularStoreProtocol",
]

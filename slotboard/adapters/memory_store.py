"""
In-memory tabular store for mock runs and tests.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..domain.exceptions import PersistenceError

_RANGE_RE = re.compile(r"^(?P<table>[^!]+)!(?P<first>[A-Z])(?P<row>\d+)?:(?P<last>[A-Z])\d*$")


def _cell(value: Any) -> str:
    """Store cells the way a spreadsheet echoes RAW input back."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if value is None:
        return ""
    return str(value)


class MemoryTabularStore:
    """
    Simulates the spreadsheet backing store without any network access.

    Tables can be seeded from a JSON file mapping table names to lists of
    rows, and written back with ``save``. ``reads`` and ``writes`` count the
    calls made, which makes caching behaviour observable.
    """

    def __init__(self, data_file: Optional[Path] = None, tables: Optional[Dict[str, List[List[Any]]]] = None):
        self.data_file = data_file
        self.tables: Dict[str, List[List[str]]] = {}
        self.reads = 0
        self.writes = 0

        if data_file is not None and data_file.exists():
            with open(data_file, "r", encoding="utf-8") as f:
                tables = json.load(f)

        for name, rows in (tables or {}).items():
            self.tables[name] = [[_cell(value) for value in row] for row in rows]

    def batch_get(self, ranges: Sequence[str]) -> List[List[List[str]]]:
        self.reads += 1
        result = []
        for range_ in ranges:
            table, first, last = self._parse_range(range_)
            rows = self._rows(table)
            width = ord(last) - ord(first) + 1
            offset = ord(first) - ord("A")
            result.append([row[offset:offset + width] for row in rows])
        return result

    def append(self, range_: str, rows: Sequence[List[Any]]) -> None:
        table, _, _ = self._parse_range(range_)
        self.writes += 1
        self._rows(table).extend([_cell(value) for value in row] for row in rows)

    def update(self, range_: str, rows: Sequence[List[Any]]) -> None:
        match = _RANGE_RE.match(range_)
        if not match or match.group("row") is None:
            raise PersistenceError(f"Unable to parse range: {range_}")

        table_rows = self._rows(match.group("table"))
        start = int(match.group("row")) - 1
        self.writes += 1

        for offset, row in enumerate(rows):
            index = start + offset
            while len(table_rows) <= index:
                table_rows.append([])
            table_rows[index] = [_cell(value) for value in row]

    def delete_rows(self, table: str, start_index: int, end_index: int) -> None:
        rows = self._rows(table)
        self.writes += 1
        del rows[start_index:end_index]

    def ensure_tables(self, titles: Sequence[str]) -> List[str]:
        missing = [title for title in titles if title not in self.tables]
        for title in missing:
            self.tables[title] = []
        return missing

    def save(self) -> None:
        """Write all tables back to ``data_file``."""
        if self.data_file is None:
            return
        with open(self.data_file, "w", encoding="utf-8") as f:
            json.dump(self.tables, f, ensure_ascii=False, indent=2)

    def _rows(self, table: str) -> List[List[str]]:
        if table not in self.tables:
            raise PersistenceError(f"Unable to parse range: {table} does not exist")
        return self.tables[table]

    @staticmethod
    def _parse_range(range_: str):
        match = _RANGE_RE.match(range_)
        if not match:
            raise PersistenceError(f"Unable to parse range: {range_}")
        return match.group("table"), match.group("first"), match.group("last")

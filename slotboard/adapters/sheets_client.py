"""
Google Sheets API client implementing the tabular store primitives.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..domain.exceptions import PersistenceError, RateLimitError

logger = logging.getLogger(__name__)


class SheetsClient:
    """
    Client for the Google Sheets v4 REST API.

    Each table is a tab of one spreadsheet. Authentication is handled
    elsewhere; this client only needs a valid OAuth access token.
    """

    SHEETS_API_ENDPOINT = "https://sheets.googleapis.com/v4"

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: str,
        api_base_url: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Sheets client.

        Args:
            spreadsheet_id: Id of the spreadsheet holding the tables
            access_token: OAuth bearer token with the spreadsheets scope
            api_base_url: Optional override of the API endpoint
            timeout: Per-request timeout in seconds
            session: Optional requests session (mainly for tests)
        """
        if not spreadsheet_id:
            raise ValueError("spreadsheet_id must not be empty")

        self.spreadsheet_id = spreadsheet_id
        self.base_url = (api_base_url or self.SHEETS_API_ENDPOINT).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        self._sheet_ids: Dict[str, int] = {}

    def batch_get(self, ranges: Sequence[str]) -> List[List[List[Any]]]:
        """
        Read several A1 ranges in one call.

        Returns:
            Rows of each range, in request order; empty ranges give ``[]``
        """
        data = self._request(
            "GET",
            "/values:batchGet",
            params=[("ranges", range_) for range_ in ranges],
        )
        value_ranges = data.get("valueRanges", [])
        if len(value_ranges) != len(ranges):
            raise PersistenceError(
                f"Malformed batchGet response: expected {len(ranges)} ranges, got {len(value_ranges)}"
            )
        return [value_range.get("values", []) for value_range in value_ranges]

    def append(self, range_: str, rows: Sequence[List[Any]]) -> None:
        self._request(
            "POST",
            f"/values/{self._quote(range_)}:append",
            params={"valueInputOption": "RAW"},
            json={"values": [list(row) for row in rows]},
        )

    def update(self, range_: str, rows: Sequence[List[Any]]) -> None:
        self._request(
            "PUT",
            f"/values/{self._quote(range_)}",
            params={"valueInputOption": "RAW"},
            json={"values": [list(row) for row in rows]},
        )

    def delete_rows(self, table: str, start_index: int, end_index: int) -> None:
        sheet_id = self._sheet_id(table)
        self._batch_update([
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": start_index,
                        "endIndex": end_index,
                    }
                }
            }
        ])

    def ensure_tables(self, titles: Sequence[str]) -> List[str]:
        """Add a tab for every title that does not exist yet."""
        existing = self._load_sheet_ids()
        missing = [title for title in titles if title not in existing]

        if missing:
            self._batch_update([{"addSheet": {"properties": {"title": title}}} for title in missing])
            self._sheet_ids.clear()
            logger.info("Created tabs: %s", ", ".join(missing))

        return missing

    def _sheet_id(self, title: str) -> int:
        if title not in self._sheet_ids:
            self._load_sheet_ids()
        if title not in self._sheet_ids:
            raise PersistenceError(f"Sheet not found: {title}")
        return self._sheet_ids[title]

    def _load_sheet_ids(self) -> Dict[str, int]:
        data = self._request("GET", "", params={"fields": "sheets.properties"})
        try:
            self._sheet_ids = {
                sheet["properties"]["title"]: sheet["properties"]["sheetId"]
                for sheet in data.get("sheets", [])
            }
        except (KeyError, TypeError) as exc:
            raise PersistenceError(f"Malformed spreadsheet metadata: {exc}") from exc
        return self._sheet_ids

    def _batch_update(self, requests_body: List[Dict[str, Any]]) -> None:
        self._request("POST", ":batchUpdate", json={"requests": requests_body})

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}/spreadsheets/{self.spreadsheet_id}{path}"

        try:
            response = self.session.request(
                method,
                url,
                headers=self.headers,
                timeout=self.timeout,
                **kwargs,
            )
            if response.status_code == 429:
                raise RateLimitError(f"Sheets API rate limit hit on {method} {path or '/'}")
            response.raise_for_status()
            if not response.content:
                return {}
            data = response.json()

        except requests.exceptions.RequestException as e:
            raise PersistenceError(f"Sheets API call {method} {path or '/'} failed: {e}") from e
        except ValueError as e:
            raise PersistenceError(f"Malformed response from Sheets API: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceError("Malformed response from Sheets API: expected an object")
        return data

    @staticmethod
    def _quote(range_: str) -> str:
        return requests.utils.quote(range_, safe="")

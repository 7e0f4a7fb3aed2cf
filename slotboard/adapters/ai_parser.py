"""
Client for the free-text availability parser.

The parser itself is an external service (an LLM behind an HTTP endpoint);
this module only defines its contract and validates what comes back.
"""

from typing import Any, List, Optional, Protocol

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..domain.exceptions import InvalidRangeError, SlotParseError
from ..domain.models import format_clock, parse_clock, parse_day

UNKNOWN_NAME = "Unknown"


class ParsedSlot(BaseModel):
    """A slot proposed by the parser, not yet accepted."""
    model_config = ConfigDict(populate_by_name=True)

    interviewer_name: str = Field(default=UNKNOWN_NAME, alias="interviewerName")
    date: str
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")

    @field_validator("interviewer_name", mode="before")
    @classmethod
    def default_name(cls, value: Any) -> str:
        """Proposals without a name are attributed to ``Unknown``."""
        text = str(value).strip() if value is not None else ""
        return text or UNKNOWN_NAME

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        parse_day(value)
        return value.strip()

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_clock(cls, value: str) -> str:
        try:
            return format_clock(parse_clock(value))
        except InvalidRangeError as exc:
            raise ValueError(str(exc)) from exc


class SlotParserProtocol(Protocol):
    """Turns free text into proposed slots."""

    def parse(self, text: str, reference_year: int) -> List[ParsedSlot]:
        """Return the proposals found in ``text``; dates default to ``reference_year``."""


class HttpSlotParser:
    """
    Parser backed by an HTTP endpoint.

    Request body: ``{"text": ..., "currentYear": ...}``; the response is a
    JSON array of ``{interviewerName, date, startTime, endTime}`` objects, or
    an object with ``error``/``details`` on failure.
    """

    def __init__(self, endpoint_url: str, timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def parse(self, text: str, reference_year: int) -> List[ParsedSlot]:
        """
        Send ``text`` to the parser endpoint.

        Raises:
            SlotParseError: If the call fails or the answer is not a list of slots
        """
        if not text.strip():
            raise SlotParseError("Nothing to parse: text is empty")

        try:
            response = self.session.post(
                self.endpoint_url,
                json={"text": text, "currentYear": reference_year},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise SlotParseError(f"Parser request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            detail = None
            if isinstance(data, dict):
                detail = data.get("details") or data.get("error")
            raise SlotParseError(detail or f"Parser error: {response.status_code} {response.reason}")

        if not isinstance(data, list):
            raise SlotParseError("Parser returned an unexpected payload, expected a list of slots")

        try:
            return [ParsedSlot.model_validate(item) for item in data]
        except ValidationError as exc:
            raise SlotParseError(f"Parser returned malformed slots: {exc}") from exc

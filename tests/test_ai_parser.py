"""
Tests for the free-text parser client.
"""

import pytest
import requests

from slotboard.adapters.ai_parser import HttpSlotParser, ParsedSlot
from slotboard.domain.exceptions import SlotParseError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = "Internal Server Error" if status_code >= 500 else "OK"
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _parser(response) -> HttpSlotParser:
    return HttpSlotParser("http://parser.local/api/ai-parse", timeout=5, session=FakeSession(response))


class TestParsedSlot:
    """Tests for validation of parser proposals."""

    def test_aliases_and_defaults(self):
        slot = ParsedSlot.model_validate({"date": "2024-11-25", "startTime": "09:00", "endTime": "10:30"})

        assert slot.interviewer_name == "Unknown"
        assert (slot.start_time, slot.end_time) == ("09:00", "10:30")

    def test_blank_name_becomes_unknown(self):
        slot = ParsedSlot(interviewerName="  ", date="2024-11-25", startTime="09:00", endTime="10:00")

        assert slot.interviewer_name == "Unknown"

    @pytest.mark.parametrize(
        "payload",
        [
            {"date": "25/11/2024", "startTime": "09:00", "endTime": "10:00"},
            {"date": "2024-11-25", "startTime": "late", "endTime": "10:00"},
            {"date": "2024-11-25", "startTime": "09:00"},
        ],
    )
    def test_rejects_malformed(self, payload):
        with pytest.raises(ValueError):
            ParsedSlot.model_validate(payload)


class TestHttpSlotParser:
    """Tests for HttpSlotParser."""

    def test_parse_success(self):
        """Test that the request carries the text and year and proposals come back validated."""
        parser = _parser(FakeResponse(payload=[
            {"interviewerName": "Alice", "date": "2024-11-25", "startTime": "09:00", "endTime": "12:00"},
            {"interviewerName": "Bob", "date": "2024-11-26", "startTime": "14:00", "endTime": "15:00"},
        ]))

        proposals = parser.parse("Alice Mon 9-12, Bob Tue 2-3pm", 2024)

        assert [p.interviewer_name for p in proposals] == ["Alice", "Bob"]
        assert parser.session.posts == [(
            "http://parser.local/api/ai-parse",
            {"text": "Alice Mon 9-12, Bob Tue 2-3pm", "currentYear": 2024},
            5,
        )]

    def test_empty_text_is_rejected_without_request(self):
        parser = _parser(FakeResponse(payload=[]))

        with pytest.raises(SlotParseError):
            parser.parse("   ", 2024)
        assert parser.session.posts == []

    def test_error_details_are_surfaced(self):
        parser = _parser(FakeResponse(status_code=500, payload={"error": "Failed", "details": "model overloaded"}))

        with pytest.raises(SlotParseError, match="model overloaded"):
            parser.parse("text", 2024)

    def test_error_without_body(self):
        parser = _parser(FakeResponse(status_code=502, invalid_json=True))

        with pytest.raises(SlotParseError, match="502"):
            parser.parse("text", 2024)

    def test_non_list_payload(self):
        parser = _parser(FakeResponse(payload={"slots": []}))

        with pytest.raises(SlotParseError, match="expected a list"):
            parser.parse("text", 2024)

    def test_malformed_items(self):
        parser = _parser(FakeResponse(payload=[{"interviewerName": "Alice", "date": "tomorrow"}]))

        with pytest.raises(SlotParseError, match="malformed"):
            parser.parse("text", 2024)

    def test_network_error(self):
        parser = _parser(requests.exceptions.Timeout("timed out"))

        with pytest.raises(SlotParseError, match="request failed"):
            parser.parse("text", 2024)

"""
End-to-end tests of the CLI against the local JSON store.
"""

import json

import pytest
from typer.testing import CliRunner

from slotboard.cli.app import app

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(f"mock_data_file: {tmp_path / 'board.json'}\n", encoding="utf-8")
    return path


def _invoke(config_path, *args):
    return runner.invoke(app, [*args, "--mock", "--config", str(config_path)])


def _data(config_path):
    with open(config_path.parent / "board.json", encoding="utf-8") as f:
        return json.load(f)


class TestCli:
    """Tests for the slotboard commands."""

    def test_init_store_creates_tables(self, config_path):
        result = _invoke(config_path, "init-store")

        assert result.exit_code == 0
        assert _data(config_path) == {
            "Slots": [["id", "interviewerId", "date", "startTime", "endTime", "isBooked"]],
            "Interviewers": [["id", "name", "color"]],
            "Notes": [["date", "content", "color"]],
        }

    def test_add_then_book_part_of_slot(self, config_path):
        result = _invoke(config_path, "add", "Alice", "2024-11-25", "09:00", "12:00")
        assert result.exit_code == 0, result.output

        slot_id = _data(config_path)["Slots"][1][0]
        result = _invoke(config_path, "edit", f"{slot_id}__1000", "10:00", "10:30", "--booked")
        assert result.exit_code == 0, result.output

        rows = _data(config_path)["Slots"][1:]
        spans = sorted((row[3], row[4], row[5]) for row in rows)
        assert spans == [
            ("09:00", "10:00", "FALSE"),
            ("10:00", "10:30", "TRUE"),
            ("10:30", "12:00", "FALSE"),
        ]

    def test_overlapping_add_fails(self, config_path):
        _invoke(config_path, "add", "Alice", "2024-11-25", "09:00", "12:00")

        result = _invoke(config_path, "add", "alice", "2024-11-25", "11:00", "13:00")

        assert result.exit_code == 1
        assert len(_data(config_path)["Slots"]) == 2

    def test_batch_add_and_stats(self, config_path):
        result = _invoke(
            config_path,
            "batch-add", "Bob",
            "--date", "2024-11-25", "--date", "2024-11-26",
            "--range", "09:00-10:00", "--range", "14:00-15:00",
        )
        assert result.exit_code == 0, result.output
        assert len(_data(config_path)["Slots"]) == 5

        result = _invoke(config_path, "stats", "--month", "2024-11")
        assert result.exit_code == 0
        assert "Bob" in result.output

    def test_note_and_delete(self, config_path):
        saved = _invoke(config_path, "note", "2024-11-25", "Panel day", "--color", "blue")
        assert saved.exit_code == 0
        assert "Note for 2024-11-25 saved" in saved.output
        assert _data(config_path)["Notes"][1] == ["2024-11-25", "Panel day", "blue"]

        deleted = _invoke(config_path, "note", "2024-11-25", "--delete")
        assert deleted.exit_code == 0
        assert "Note for 2024-11-25 deleted" in deleted.output
        assert "saved" not in deleted.output
        assert len(_data(config_path)["Notes"]) == 1

    def test_show_month(self, config_path):
        _invoke(config_path, "add", "Alice", "2024-11-25", "09:00", "10:00")

        result = _invoke(config_path, "show", "--month", "2024-11")

        assert result.exit_code == 0
        assert "November 2024" in result.output

    def test_bad_month(self, config_path):
        result = _invoke(config_path, "stats", "--month", "November")

        assert result.exit_code == 1

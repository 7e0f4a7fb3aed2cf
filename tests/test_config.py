"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from slotboard.config import INTERVIEWER_COLORS, AppConfig, StoreConfig


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.store.cache_ttl_seconds == 30.0
        assert config.display.step_minutes == 30
        assert config.display.max_units == 50
        assert config.palette == INTERVIEWER_COLORS
        assert config.get_mock_data_file() == Path.cwd() / "slotboard_mock_data.json"

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "store:\n"
            "  spreadsheet_id: abc123\n"
            "  cache_ttl_seconds: 0\n"
            "display:\n"
            "  step_minutes: 15\n"
            "palette:\n"
            "  - '#000000'\n"
            f"mock_data_file: {tmp_path / 'data.json'}\n",
            encoding="utf-8",
        )

        config = AppConfig.load_from_yaml(path)

        assert config.store.spreadsheet_id == "abc123"
        assert config.store.cache_ttl_seconds == 0
        assert config.display.step_minutes == 15
        assert config.palette == ["#000000"]
        assert config.get_mock_data_file() == tmp_path / "data.json"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert AppConfig.load_from_yaml(path) == AppConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "nope.yaml")

    @pytest.mark.parametrize("content", ["- just\n- a list\n", "store: [unclosed\n"])
    def test_invalid_yaml(self, tmp_path, content):
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(path)

    @pytest.mark.parametrize(
        "data",
        [
            {"palette": []},
            {"palette": ["blue"]},
            {"display": {"step_minutes": 0}},
            {"display": {"max_units": -1}},
            {"store": {"cache_ttl_seconds": -5}},
            {"store": {"timeout_seconds": 0}},
        ],
    )
    def test_validation(self, data):
        with pytest.raises(ValidationError):
            AppConfig(**data)


class TestStoreConfig:
    """Tests for access token resolution."""

    def test_token_from_config_wins(self, monkeypatch):
        monkeypatch.setenv("SLOTBOARD_ACCESS_TOKEN", "from-env")

        assert StoreConfig(access_token="from-file").resolve_access_token() == "from-file"

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("MY_TOKEN", "from-env")

        assert StoreConfig(token_env="MY_TOKEN").resolve_access_token() == "from-env"

    def test_no_token(self, monkeypatch):
        monkeypatch.delenv("SLOTBOARD_ACCESS_TOKEN", raising=False)

        assert StoreConfig().resolve_access_token() == ""

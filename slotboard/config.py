"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

INTERVIEWER_COLORS: List[str] = [
    "#3B82F6",  # blue
    "#10B981",  # emerald
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#8B5CF6",  # violet
    "#EC4899",  # pink
    "#06B6D4",  # cyan
    "#F97316",  # orange
    "#6366F1",  # indigo
    "#84CC16",  # lime
]

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class StoreConfig(BaseModel):
    """Where the board lives and how long reads may be cached."""
    spreadsheet_id: str = ""
    api_base_url: str = "https://sheets.googleapis.com/v4"
    access_token: str = ""
    token_env: str = "SLOTBOARD_ACCESS_TOKEN"
    cache_ttl_seconds: float = 30.0
    timeout_seconds: float = 30.0

    @field_validator("cache_ttl_seconds")
    @classmethod
    def validate_ttl(cls, value: float) -> float:
        """A negative TTL makes no sense; zero disables caching."""
        if value < 0:
            raise ValueError("cache_ttl_seconds must not be negative")
        return value

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    def resolve_access_token(self) -> str:
        """Token from the config file, or else from the environment."""
        return self.access_token or os.environ.get(self.token_env, "")


class DisplayConfig(BaseModel):
    """Calendar display settings."""
    step_minutes: int = 30
    max_units: int = 50

    @field_validator("step_minutes", "max_units")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value


class AIConfig(BaseModel):
    """Free-text parser endpoint."""
    parse_url: str = "http://localhost:8080/api/ai-parse"
    timeout_seconds: float = 60.0


class AppConfig(BaseModel):
    """Application configuration."""
    store: StoreConfig = Field(default_factory=StoreConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    palette: List[str] = Field(default_factory=lambda: list(INTERVIEWER_COLORS))
    mock_data_file: Optional[Path] = None

    @field_validator("palette")
    @classmethod
    def validate_palette(cls, value: List[str]) -> List[str]:
        """Ensure the palette is non-empty and holds hex colours."""
        if not value:
            raise ValueError("palette must contain at least one colour")
        invalid = [color for color in value if not _HEX_COLOR.match(color)]
        if invalid:
            raise ValueError(f"palette entries must be #RRGGBB colours, got {invalid}")
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def get_mock_data_file(self) -> Path:
        """JSON file backing ``--mock`` runs."""
        return self.mock_data_file or Path.cwd() / "slotboard_mock_data.json"


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path

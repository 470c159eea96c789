"""
Wins Ledger - Configuration Management

Handles the optional config.json and environment overrides.
Config lives in ~/.config/wins/config.json
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from wins.exceptions import ConfigError
from wins.persistence.models import DEFAULT_CATEGORY
from wins.persistence.repository import DEFAULT_DB_PATH

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "wins"
CONFIG_FILE = CONFIG_DIR / "config.json"


@dataclass
class WinsConfig:
    """Main configuration container for the wins ledger."""

    db_path: Path = field(default_factory=lambda: DEFAULT_DB_PATH)
    default_category: str = DEFAULT_CATEGORY

    def __post_init__(self) -> None:
        # Expand ~ in path
        self.db_path = Path(self.db_path).expanduser()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "db_path": str(self.db_path),
            "default_category": self.default_category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WinsConfig":
        """Create WinsConfig from dictionary."""
        return cls(
            db_path=Path(data.get("db_path", DEFAULT_DB_PATH)),
            default_category=data.get("default_category") or DEFAULT_CATEGORY,
        )


def load_config(config_file: Path | None = None) -> WinsConfig:
    """
    Load configuration from file and environment.

    Environment variables win over the file:
        WINS_DB_PATH, WINS_DEFAULT_CATEGORY

    Returns:
        WinsConfig with all settings loaded

    Raises:
        ConfigError: If the config file is invalid
    """
    config_file = config_file or CONFIG_FILE
    config = WinsConfig()

    if config_file.exists():
        try:
            with open(config_file) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in {config_file}",
                {"error": str(e)},
            )
        if not isinstance(data, dict):
            raise ConfigError(
                f"Config file {config_file} must contain a JSON object",
                {"type": type(data).__name__},
            )
        config = WinsConfig.from_dict(data)

    if db_path := os.environ.get("WINS_DB_PATH"):
        config.db_path = Path(db_path).expanduser()

    if category := os.environ.get("WINS_DEFAULT_CATEGORY"):
        config.default_category = category

    return config


def save_config(config: WinsConfig, config_file: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: WinsConfig to save
        config_file: Destination, defaults to ~/.config/wins/config.json
    """
    config_file = config_file or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, "w") as f:
        json.dump(config.to_dict(), f, indent=2)

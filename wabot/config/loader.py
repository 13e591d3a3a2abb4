"""Configuration loading and saving."""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from wabot.config.schema import Config


def get_data_dir() -> Path:
    """Get the WaBot data directory."""
    return Path.home() / ".wabot"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_data_dir() / "config.json"


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from a JSON file.

    Missing or unreadable files fall back to defaults (plus any
    WABOT_* environment variables).

    Args:
        config_path: Optional path, defaults to ~/.wabot/config.json.

    Returns:
        Loaded configuration.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return Config(**{camel_to_snake(k): v for k, v in data.items()})
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to a JSON file (camelCase keys).

    Args:
        config: Configuration to save.
        config_path: Optional path, defaults to ~/.wabot/config.json.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = config.model_dump(by_alias=True)
    data = {_snake_to_camel(k): v for k, v in data.items()}

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def _snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)

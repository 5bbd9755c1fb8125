"""Configuration utilities for HabitSync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

from habitsync.core.config import BackendConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Keys accepted by `habitsync config set`, with their value parsers
CONFIG_KEYS = ("backend", "api_base", "table_url", "table_key", "timeout", "verify_ssl")


def get_config_dir() -> Path:
    """Get the configuration directory for HabitSync.

    Returns:
        Path to ~/.habitsync or equivalent.
    """
    return Path.home() / ".habitsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_path() -> Path:
    """Get the path to the local store database."""
    return get_config_dir() / "state.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_backend_config() -> BackendConfig:
    """Build the backend configuration from the config file."""
    return BackendConfig.from_dict(load_config())


def parse_config_value(key: str, value: str) -> Any:
    """Convert a `config set` value to the type stored for its key.

    Raises:
        ValueError: If the key is unknown or the value does not parse.
    """
    if key not in CONFIG_KEYS:
        raise ValueError(f"Unknown config key: {key} (expected one of {', '.join(CONFIG_KEYS)})")
    if key == "timeout":
        timeout = float(value)
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        return timeout
    if key == "verify_ssl":
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Not a boolean: {value}")
    if key == "backend":
        return BackendConfig(mode=value).mode.value
    return value


def configure_logging(verbose: bool = False) -> None:
    """Send habitsync logs to stderr.

    Args:
        verbose: Log at DEBUG instead of WARNING.
    """
    root_logger = logging.getLogger("habitsync")
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

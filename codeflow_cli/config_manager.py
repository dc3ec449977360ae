"""Persistent flow settings stored in the ``[flow]`` section of a TOML file."""

from __future__ import annotations

import logging
from typing import Any, Dict

import toml

from .config import BASE_DIR, CONFIG_FILE, FlowConfig

logger = logging.getLogger(__name__)

FLOW_SECTION = "flow"


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
    try:
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config file %s: %s", CONFIG_FILE, exc)
        return False


def load_flow_config() -> FlowConfig:
    """Load the ``[flow]`` section as a FlowConfig.

    Returns:
        FlowConfig with file values applied over the defaults. Missing file
        or section yields the defaults. Values are not validated here; the
        pipeline validates before running.
    """
    section = load_full_config().get(FLOW_SECTION, {})
    if not isinstance(section, dict):
        logger.warning("Config section [%s] is not a table; using defaults", FLOW_SECTION)
        return FlowConfig()
    return FlowConfig.from_mapping(section)


def save_flow_config(**values: Any) -> bool:
    """Merge *values* into the ``[flow]`` section.

    Preserves other sections in the file. ``None`` values remove the key.

    Returns:
        True if saved successfully, False otherwise
    """
    config = load_full_config()
    section = dict(config.get(FLOW_SECTION, {}))
    for key, value in values.items():
        if value is None:
            section.pop(key, None)
        else:
            section[key] = value
    config[FLOW_SECTION] = section
    return _save_full_config(config)


def clear_flow_config() -> bool:
    """Remove the ``[flow]`` section, resetting to defaults."""
    config = load_full_config()
    config.pop(FLOW_SECTION, None)
    return _save_full_config(config)

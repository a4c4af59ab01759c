"""
Configuration management for the UI roadmap canvas.

Handles persistent configuration including:
- Layout spacing used by graph projection
- Logging level for the app shell

Config is stored in config.json next to the project root. Environment
variables override the stored values.
"""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Optional

from uiroadmap.constants import (
    NODE_SPACING_X,
    ROW_HEIGHT,
    GRID_COLUMNS,
    GRID_SPACING_X,
    GRID_SPACING_Y,
    MAX_TREE_DEPTH,
)
from uiroadmap.paths import get_config_path

logger = logging.getLogger(__name__)

# Environment variable -> LayoutSettings field
ENV_OVERRIDES = {
    "UIROADMAP_SPACING_X": "spacing_x",
    "UIROADMAP_ROW_HEIGHT": "row_height",
    "UIROADMAP_GRID_COLUMNS": "grid_columns",
    "UIROADMAP_GRID_SPACING_X": "grid_spacing_x",
    "UIROADMAP_GRID_SPACING_Y": "grid_spacing_y",
    "UIROADMAP_MAX_TREE_DEPTH": "max_tree_depth",
}


@dataclass(frozen=True)
class LayoutSettings:
    """Spacing and bounds used when laying out a fresh projection."""
    spacing_x: int = NODE_SPACING_X
    row_height: int = ROW_HEIGHT
    grid_columns: int = GRID_COLUMNS
    grid_spacing_x: int = GRID_SPACING_X
    grid_spacing_y: int = GRID_SPACING_Y
    max_tree_depth: int = MAX_TREE_DEPTH


def load_config() -> dict:
    """Load configuration from config.json."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def save_config(config: dict) -> None:
    """Save configuration to config.json."""
    config_path = get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def _coerce_positive_int(name: str, value) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid layout value {name}={value!r}")
        return None
    if number <= 0:
        logger.warning(f"Ignoring non-positive layout value {name}={number}")
        return None
    return number


def get_layout_settings(config: Optional[dict] = None) -> LayoutSettings:
    """
    Resolve layout settings.

    Priority:
    1. Environment variables (UIROADMAP_*)
    2. The "layout" section of config.json
    3. Built-in defaults
    """
    if config is None:
        config = load_config()

    overrides = {}
    known = {f.name for f in fields(LayoutSettings)}

    stored = config.get("layout") or {}
    if isinstance(stored, dict):
        for key, value in stored.items():
            if key not in known:
                logger.warning(f"Unknown layout setting in config.json: {key}")
                continue
            number = _coerce_positive_int(key, value)
            if number is not None:
                overrides[key] = number

    for env_name, field_name in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        number = _coerce_positive_int(env_name, raw)
        if number is not None:
            overrides[field_name] = number

    return replace(LayoutSettings(), **overrides)


def get_log_level() -> str:
    """Get the log level name, from UIROADMAP_LOG_LEVEL or config.json (default INFO)."""
    env_level = os.environ.get("UIROADMAP_LOG_LEVEL")
    if env_level:
        return env_level.upper()
    return str(load_config().get("log_level", "INFO")).upper()

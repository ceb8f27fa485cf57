"""Configuration loading for lenticular generation."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

from lenticular.errors import InvalidParameter

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

DEFAULT_CONFIG: Dict = {
    "interlace": {
        "lines_per_unit": 75.0,
        "base_resolution": 300.0,
        "orientation": "vertical",
        "size_policy": "min",
        "fill_value": 0,
    },
    "limits": {
        "min_value": 10.0,
        "max_value": 300.0,
    },
    "output": {
        "filename": "lenticular-image.png",
        "png_compression": 3,
    },
}


def merge_config(overrides: Optional[Dict] = None) -> Dict:
    """Merge a partial configuration over the defaults, section by section.

    Args:
        overrides: Mapping of section name to a dict of keys to replace

    Returns:
        A new configuration dictionary; ``DEFAULT_CONFIG`` is left untouched
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not overrides:
        return config

    if not isinstance(overrides, dict):
        raise InvalidParameter(f"Configuration must be a mapping, got {type(overrides).__name__}")

    for section, values in overrides.items():
        if section not in config:
            logger.warning(f"Ignoring unknown config section '{section}'")
            continue
        if values is None:
            continue
        if not isinstance(values, dict):
            raise InvalidParameter(f"Config section '{section}' must be a mapping")
        config[section].update(values)

    return config


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict:
    """Load configuration from a YAML file on top of the defaults.

    Sections present in the file replace individual keys of the default
    sections; missing sections and keys keep their default values.

    Args:
        config_path: Path to configuration file. Defaults to ``config.yaml``
            at the repository root, if present.

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.debug("No config.yaml found, using built-in defaults")
            return merge_config()
        config_path = DEFAULT_CONFIG_PATH

    with open(config_path, "r") as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise InvalidParameter(f"Config file {config_path} must contain a mapping")

    config = merge_config(loaded)
    logger.debug(f"Loaded configuration from {config_path}")
    return config

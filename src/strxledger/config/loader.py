"""Configuration loading.

The bundled defaults.yaml is always read first. A user file is layered on
top of it, so it only needs the keys it changes:

    refresh:
      ledger_interval: 15.0

Nested sections merge key by key; lists (the tier table) and scalars
replace the default wholesale.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .schema import Config

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def _read_sections(yaml_path) -> Dict[str, Any]:
    with open(yaml_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{yaml_path}: expected a mapping of config sections, got {type(data).__name__}")
    return data


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(yaml_path: Optional[str] = None) -> Config:
    """
    Load the bundled defaults, overridden by a user YAML file.

    Args:
        yaml_path: Path to a YAML file of overrides (None for the defaults alone)

    Returns:
        Config object

    Raises:
        ValueError: If a file is empty or its top level is not a mapping
        pydantic.ValidationError: If the merged config fails validation
    """
    data = _read_sections(DEFAULTS_PATH)
    if yaml_path is not None:
        overrides = _read_sections(yaml_path)
        unknown = sorted(set(overrides) - set(data))
        if unknown:
            logger.warning("%s: ignoring unknown config sections %s", yaml_path, ", ".join(unknown))
        data = _deep_merge(data, overrides)

    config = Config.from_dict(data)
    logger.debug("Loaded config %s from %s", config.compute_hash(), yaml_path or DEFAULTS_PATH)
    return config


def config_from_dict(data: Dict[str, Any]) -> Config:
    """Build a config from a complete dictionary of sections."""
    return Config.from_dict(data)

"""Configuration loading for the reserve adjuster.

Options come from /data/options.json (HA Supervisor pattern). Any option the
file does not set falls back to the environment variable of the same name in
upper case, then to its default, which keeps `run_local.py` with a `.env`
working without an options file.

Usage:
    from shared.config_loader import load_addon_config

    config = load_addon_config(defaults={'interval_minutes': 15, 'log_level': 'info'})
"""

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = '/data/options.json'

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _read_options(config_path: str) -> Dict[str, Any]:
    if not os.path.exists(config_path):
        logger.warning("Config file %s not found, using environment/defaults", config_path)
        return {}

    with open(config_path, 'r') as f:
        options = json.load(f)
    if not isinstance(options, dict):
        raise ValueError(f"Config file {config_path} must contain a JSON object")
    logger.info("Loaded configuration from %s", config_path)
    return options


def load_addon_config(
    config_path: str = DEFAULT_CONFIG_PATH,
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Resolve every option in ``defaults`` from file, environment or default.

    Options in the file that have no default are passed through unchanged.

    Raises:
        ValueError: If the file is not a JSON object or an environment value
            cannot be cast to the type of its default
        OSError: If the file exists but cannot be read
    """
    config = _read_options(config_path)

    for key, default in (defaults or {}).items():
        if config.get(key) is not None:
            continue
        env_value = os.getenv(key.upper())
        if env_value is None:
            config[key] = default
        else:
            config[key] = _cast_env_value(env_value, type(default))
            logger.debug("Loaded %s from environment", key)

    return config


def _cast_env_value(value: str, target_type: type) -> Any:
    """Cast an environment variable string to the type of its default."""
    if target_type == bool:
        return value.lower() in TRUE_VALUES
    if target_type == int:
        return int(value)
    return value


def get_run_once_mode() -> bool:
    """Return True when RUN_ONCE=1/true/yes is set in the environment."""
    return os.getenv('RUN_ONCE', '').lower() in TRUE_VALUES

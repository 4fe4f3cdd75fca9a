"""Shared service plumbing for the reserve adjuster.

- addon_base: Signal handling, logging setup, main loop utilities
- ha_api: Home Assistant REST API client
- ha_mqtt_discovery: MQTT Discovery for entities with unique_id
- config_loader: Configuration loading from JSON/environment
"""

from .addon_base import (
    apply_log_level,
    run_addon_loop,
    setup_logging,
    setup_signal_handlers,
    sleep_with_shutdown_check,
)
from .ha_api import HomeAssistantApi, get_ha_api_config
from .config_loader import load_addon_config, get_run_once_mode

__all__ = [
    # addon_base
    'apply_log_level',
    'run_addon_loop',
    'setup_logging',
    'setup_signal_handlers',
    'sleep_with_shutdown_check',
    # ha_api
    'HomeAssistantApi',
    'get_ha_api_config',
    # config_loader
    'load_addon_config',
    'get_run_once_mode',
]

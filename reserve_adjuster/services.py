"""Configuration and collaborator wiring shared by the service and the CLI.

Collaborators are built once per process and passed explicitly; nothing in
the package keeps a module-level client or session.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from shared.config_loader import DEFAULT_CONFIG_PATH, load_addon_config
from shared.ha_api import HomeAssistantApi

from .constants import KEY_PEAK_RESERVE, SETTINGS_FILE
from .credentials import CredentialManager
from .notifier import Notifier
from .reconciler import ReserveReconciler
from .settings import ReserveSettings
from .settings_store import SettingsStore
from .tesla_api import TeslaApiClient

logger = logging.getLogger(__name__)

RA_CONFIG_DEFAULTS = {
    'interval_minutes': 15,
    'log_level': 'info',
    'settings_file': SETTINGS_FILE,
    'timezone': '',
    'peak_reserve': '',
    'tesla_refresh_token': '',
    'request_timeout': 30,
    'mqtt_enabled': True,
    'notify_on_skip': True,
    'persistent_notification': True,
}


@dataclass
class Services:
    """Everything one process needs, constructed together."""
    settings: ReserveSettings
    client: TeslaApiClient
    credentials: CredentialManager
    notifier: Notifier
    reconciler: ReserveReconciler
    ha_api: HomeAssistantApi


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load the reserve adjuster configuration."""
    config = load_addon_config(config_path=config_path, defaults=RA_CONFIG_DEFAULTS)

    if int(config['interval_minutes']) < 1:
        raise ValueError(f"interval_minutes must be at least 1, got {config['interval_minutes']}")

    logger.info(
        "Loaded configuration: interval=%smin, settings=%s, timezone=%s, mqtt=%s",
        config['interval_minutes'], config['settings_file'],
        config['timezone'] or 'from battery', config['mqtt_enabled'],
    )
    return config


def resolve_time_zone(config: Dict[str, Any], ha_api: HomeAssistantApi) -> str:
    """Fallback zone for batteries that do not report one."""
    if config.get('timezone'):
        return config['timezone']
    return ha_api.get_timezone() or 'UTC'


def build_services(
    config: Dict[str, Any],
    ha_api: Optional[HomeAssistantApi] = None,
    session: Optional[requests.Session] = None,
    lookup_time_zone: bool = True,
) -> Services:
    """Construct the settings, Tesla client, credential manager, notifier and reconciler.

    lookup_time_zone=False skips asking Home Assistant for its zone, for
    commands that never evaluate the schedule.
    """
    ha_api = ha_api or HomeAssistantApi()
    settings = ReserveSettings(SettingsStore(config['settings_file']))
    client = TeslaApiClient(timeout=int(config['request_timeout']), session=session)
    credentials = CredentialManager(settings, client)
    notifier = Notifier(ha_api, settings, persistent=bool(config.get('persistent_notification', True)))
    if lookup_time_zone:
        default_zone = resolve_time_zone(config, ha_api)
    else:
        default_zone = config.get('timezone') or 'UTC'
    reconciler = ReserveReconciler(
        credentials,
        settings,
        notifier,
        default_time_zone=default_zone,
        notify_on_skip=bool(config.get('notify_on_skip', True)),
    )
    return Services(
        settings=settings,
        client=client,
        credentials=credentials,
        notifier=notifier,
        reconciler=reconciler,
        ha_api=ha_api,
    )


def apply_bootstrap_settings(config: Dict[str, Any], services: Services) -> None:
    """Seed settings supplied through configuration, without overwriting stored ones."""
    refresh_token = config.get('tesla_refresh_token')
    if refresh_token:
        services.credentials.seed_refresh_token(refresh_token)

    peak_reserve = config.get('peak_reserve')
    if peak_reserve not in (None, '') and services.settings.store.get(KEY_PEAK_RESERVE) is None:
        stored = services.settings.set_peak_reserve(peak_reserve)
        logger.info("Initialized peak reserve from configuration: %d%%", stored)

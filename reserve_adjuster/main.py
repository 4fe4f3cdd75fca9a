"""Powerwall Reserve Adjuster service entry point.

Runs one reserve reconciliation per interval until stopped. Peak reserve and
holidays can be changed while running through the MQTT entities or the CLI.
"""

import threading
from typing import Optional

from shared.addon_base import apply_log_level, run_addon_loop, setup_logging, setup_signal_handlers
from shared.config_loader import get_run_once_mode
from shared.ha_mqtt_discovery import MqttDiscovery, get_mqtt_config_from_env

from .constants import ADDON_ID, ADDON_NAME
from .credentials import SessionState
from .entities import ReserveEntities
from .errors import ReserveAdjusterError
from .services import Services, apply_bootstrap_settings, build_services, load_config

logger = setup_logging(name=__name__)


def setup_entities(services: Services, lock: threading.Lock) -> Optional[ReserveEntities]:
    """Connect to MQTT and publish entities; None when MQTT is unavailable."""
    mqtt_config = get_mqtt_config_from_env()
    mqtt = MqttDiscovery(
        addon_name=ADDON_NAME,
        addon_id=ADDON_ID,
        mqtt_host=mqtt_config['mqtt_host'],
        mqtt_port=mqtt_config['mqtt_port'],
        mqtt_user=mqtt_config.get('mqtt_user'),
        mqtt_password=mqtt_config.get('mqtt_password'),
        manufacturer="Tesla",
        model="Powerwall",
    )
    if not mqtt.connect():
        logger.warning("MQTT connection failed, entities will not be available")
        return None

    entities = ReserveEntities(mqtt, services.settings, lock)
    try:
        entities.publish_discovery()
    except ReserveAdjusterError as e:
        logger.error("Failed to publish entities: %s", e)
        mqtt.disconnect()
        return None
    return entities


def main() -> int:
    """Main entry point for the reserve adjuster service."""
    logger.info("Starting Powerwall Reserve Adjuster...")
    shutdown_event = setup_signal_handlers(logger)

    try:
        config = load_config()
    except (KeyError, ValueError, OSError) as e:
        logger.error("Failed to load configuration: %s", e)
        return 1
    apply_log_level(config['log_level'])

    services = build_services(config)
    try:
        apply_bootstrap_settings(config, services)
    except (ReserveAdjusterError, OSError) as e:
        logger.error("Failed to apply settings from configuration: %s", e)
        return 1

    if services.credentials.state() in (SessionState.NO_CREDENTIAL, SessionState.UNRECOVERABLE):
        logger.warning(
            "No Tesla refresh token stored; run 'python -m reserve_adjuster login' "
            "or set tesla_refresh_token in the configuration"
        )

    # MQTT commands arrive on the paho thread; keep them out of a running reconcile
    lock = threading.Lock()
    entities = setup_entities(services, lock) if config['mqtt_enabled'] else None

    def reconcile_once():
        with lock:
            outcome = services.reconciler.reconcile()
        if entities is not None:
            entities.update(outcome, services.reconciler.last_status)

    run_once = get_run_once_mode()
    if run_once:
        logger.info("Running single reconciliation (RUN_ONCE mode)")

    run_addon_loop(
        reconcile_once,
        int(config['interval_minutes']) * 60,
        shutdown_event,
        logger,
        run_once=run_once,
    )

    if entities is not None:
        entities.mqtt.disconnect()
    logger.info("Powerwall Reserve Adjuster shutting down...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

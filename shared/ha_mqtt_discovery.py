"""Home Assistant MQTT Discovery helper.

Creates entities with a unique_id so they can be managed from the Home
Assistant UI, and routes command topics back to Python callbacks.

Usage:
    from shared.ha_mqtt_discovery import MqttDiscovery, EntityConfig

    mqtt = MqttDiscovery(addon_name="Powerwall Reserve Adjuster", addon_id="reserve_adjuster")
    if mqtt.connect():
        mqtt.publish_sensor(EntityConfig(object_id="current_reserve", name="Current Reserve", state="20"))
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)


@dataclass
class EntityConfig:
    """Configuration for a read-only sensor entity.

    Attributes:
        object_id: Unique object ID within the service (e.g., "current_reserve")
        name: Human-readable name
        state: Current state value as string
        unit_of_measurement: Unit (e.g., "%")
        device_class: HA device class (e.g., "battery")
        state_class: State class for statistics (e.g., "measurement")
        icon: MDI icon
        entity_category: Entity category ("config", "diagnostic", or None)
        attributes: Additional attributes published on the attributes topic
    """
    object_id: str
    name: str
    state: str
    unit_of_measurement: Optional[str] = None
    device_class: Optional[str] = None
    state_class: Optional[str] = None
    icon: Optional[str] = None
    entity_category: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NumberConfig:
    """Configuration for a number entity."""
    object_id: str
    name: str
    min_value: float
    max_value: float
    step: float = 1.0
    state: str = "0"
    unit_of_measurement: Optional[str] = None
    mode: str = "box"
    icon: Optional[str] = None
    entity_category: Optional[str] = None


@dataclass
class TextConfig:
    """Configuration for a text entity."""
    object_id: str
    name: str
    state: str = ""
    min_length: int = 0
    max_length: int = 255
    pattern: Optional[str] = None
    mode: str = "text"
    icon: Optional[str] = None
    entity_category: Optional[str] = None


class MqttDiscovery:
    """MQTT Discovery client for Home Assistant.

    Entities are grouped under one device in the HA UI.
    """

    DISCOVERY_PREFIX = "homeassistant"

    def __init__(
        self,
        addon_name: str,
        addon_id: str,
        mqtt_host: str = "core-mosquitto",
        mqtt_port: int = 1883,
        mqtt_user: Optional[str] = None,
        mqtt_password: Optional[str] = None,
        manufacturer: str = "HA Addons",
        model: Optional[str] = None,
    ):
        self.addon_name = addon_name
        self.addon_id = addon_id
        self.mqtt_host = mqtt_host
        self.mqtt_port = mqtt_port
        self.mqtt_user = mqtt_user
        self.mqtt_password = mqtt_password
        self.manufacturer = manufacturer
        self.model = model or addon_name

        self._client: Optional[mqtt.Client] = None
        self._connected = threading.Event()
        self._command_callbacks: Dict[str, Callable[[str], None]] = {}
        self._published_entities: List[str] = []

    @property
    def device_info(self) -> Dict[str, Any]:
        return {
            "identifiers": [self.addon_id],
            "name": self.addon_name,
            "manufacturer": self.manufacturer,
            "model": self.model,
        }

    def _unique_id(self, object_id: str) -> str:
        return f"{self.addon_id}_{object_id}"

    def _state_topic(self, component: str, object_id: str) -> str:
        return f"{self.addon_id}/{component}/{object_id}/state"

    def _attributes_topic(self, component: str, object_id: str) -> str:
        return f"{self.addon_id}/{component}/{object_id}/attributes"

    def _command_topic(self, component: str, object_id: str) -> str:
        return f"{self.addon_id}/{component}/{object_id}/set"

    def _discovery_topic(self, component: str, object_id: str) -> str:
        return f"{self.DISCOVERY_PREFIX}/{component}/{self.addon_id}/{object_id}/config"

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        # paho-mqtt 2.x passes a ReasonCode object
        if reason_code == 0 or (hasattr(reason_code, 'is_failure') and not reason_code.is_failure):
            logger.info("Connected to MQTT broker at %s:%d", self.mqtt_host, self.mqtt_port)
            self._connected.set()
            # Re-subscribe after a reconnect
            for topic in self._command_callbacks:
                client.subscribe(topic, qos=1)
        else:
            logger.error("Failed to connect to MQTT broker: %s", reason_code)
            self._connected.clear()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        logger.info("Disconnected from MQTT broker: %s", reason_code)
        self._connected.clear()

    def connect(self, timeout: float = 10.0) -> bool:
        """Connect to the broker and start the network loop.

        Returns:
            True if connected within timeout, False otherwise
        """
        try:
            self._client = mqtt.Client(
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
                client_id=f"{self.addon_id}_discovery",
                protocol=mqtt.MQTTv311,
            )
            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect
            self._client.on_message = self._on_message

            if self.mqtt_user and self.mqtt_password:
                self._client.username_pw_set(self.mqtt_user, self.mqtt_password)

            logger.info("Connecting to MQTT broker at %s:%d...", self.mqtt_host, self.mqtt_port)
            self._client.connect(self.mqtt_host, self.mqtt_port, keepalive=60)
            self._client.loop_start()

            start = time.time()
            while not self._connected.is_set() and (time.time() - start) < timeout:
                time.sleep(0.1)

            if not self._connected.is_set():
                logger.error("MQTT connection timeout after %.1f seconds", timeout)
                self._client.loop_stop()
                return False

            return True

        except (OSError, ValueError) as e:
            logger.error("Failed to connect to MQTT broker: %s", e)
            return False

    def disconnect(self):
        if self._client:
            self._client.loop_stop()
            self._client.disconnect()
            self._client = None
            self._connected.clear()
            logger.info("Disconnected from MQTT broker")

    def is_connected(self) -> bool:
        return self._connected.is_set() and self._client is not None

    def _publish(self, topic: str, payload: Any, retain: bool = True) -> bool:
        """Publish a message, JSON-encoding dicts and lists."""
        if not self.is_connected():
            logger.error("Cannot publish: not connected to MQTT broker")
            return False

        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload)
        elif not isinstance(payload, str):
            payload = str(payload)

        result = self._client.publish(topic, payload, retain=retain, qos=1)
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error("Failed to publish to %s: rc=%d", topic, result.rc)
            return False
        try:
            result.wait_for_publish(timeout=5.0)
        except RuntimeError as e:
            logger.error("Publish to %s did not complete: %s", topic, e)
            return False
        return True

    def _base_payload(self, component: str, object_id: str, name: str) -> Dict[str, Any]:
        return {
            "name": name,
            "unique_id": self._unique_id(object_id),
            "state_topic": self._state_topic(component, object_id),
            "device": self.device_info,
        }

    def publish_sensor(self, config: EntityConfig) -> bool:
        """Publish a sensor entity with its initial state and attributes."""
        component = "sensor"
        payload = self._base_payload(component, config.object_id, config.name)

        for key in ("unit_of_measurement", "device_class", "state_class", "icon", "entity_category"):
            value = getattr(config, key)
            if value:
                payload[key] = value
        if config.attributes:
            payload["json_attributes_topic"] = self._attributes_topic(component, config.object_id)

        if not self._publish(self._discovery_topic(component, config.object_id), payload):
            return False
        if not self.update_state(component, config.object_id, config.state, config.attributes):
            return False

        self._published_entities.append(f"{component}.{self._unique_id(config.object_id)}")
        logger.debug("Published sensor entity: %s", config.name)
        return True

    def publish_number(self, config: NumberConfig, command_callback: Optional[Callable[[float], None]] = None) -> bool:
        """Publish a number entity; commands are delivered as floats."""
        component = "number"
        command_topic = self._command_topic(component, config.object_id)
        payload = self._base_payload(component, config.object_id, config.name)
        payload.update({
            "command_topic": command_topic,
            "min": config.min_value,
            "max": config.max_value,
            "step": config.step,
            "mode": config.mode,
        })
        for key in ("unit_of_measurement", "icon", "entity_category"):
            value = getattr(config, key)
            if value:
                payload[key] = value

        if not self._publish(self._discovery_topic(component, config.object_id), payload):
            return False
        if not self._publish(self._state_topic(component, config.object_id), config.state):
            return False

        if command_callback:
            self._subscribe_command(command_topic, lambda msg: command_callback(float(msg)))

        self._published_entities.append(f"{component}.{self._unique_id(config.object_id)}")
        logger.debug("Published number entity: %s", config.name)
        return True

    def publish_text(self, config: TextConfig, command_callback: Optional[Callable[[str], None]] = None) -> bool:
        """Publish a text entity; commands are delivered as raw strings."""
        component = "text"
        command_topic = self._command_topic(component, config.object_id)
        payload = self._base_payload(component, config.object_id, config.name)
        payload.update({
            "command_topic": command_topic,
            "min": config.min_length,
            "max": config.max_length,
            "mode": config.mode,
        })
        for key in ("pattern", "icon", "entity_category"):
            value = getattr(config, key)
            if value:
                payload[key] = value

        if not self._publish(self._discovery_topic(component, config.object_id), payload):
            return False
        if not self._publish(self._state_topic(component, config.object_id), config.state):
            return False

        if command_callback:
            self._subscribe_command(command_topic, command_callback)

        self._published_entities.append(f"{component}.{self._unique_id(config.object_id)}")
        logger.debug("Published text entity: %s", config.name)
        return True

    def _subscribe_command(self, topic: str, callback: Callable[[str], None]):
        if not self._client:
            return
        self._command_callbacks[topic] = callback
        self._client.subscribe(topic, qos=1)
        logger.debug("Subscribed to command topic: %s", topic)

    def _on_message(self, client, userdata, message):
        callback = self._command_callbacks.get(message.topic)
        if callback is None:
            return
        payload = message.payload.decode('utf-8')
        try:
            callback(payload)
        except Exception as e:
            # Runs on the paho network thread, an escaping error would kill it
            logger.error("Error handling command on %s: %s", message.topic, e)

    def update_state(self, component: str, object_id: str, state: str, attributes: Optional[Dict[str, Any]] = None) -> bool:
        """Publish a new state (and optionally attributes) for an existing entity."""
        if not self._publish(self._state_topic(component, object_id), state):
            return False
        if attributes:
            if not self._publish(self._attributes_topic(component, object_id), attributes):
                return False
        return True

    def get_published_entities(self) -> List[str]:
        return self._published_entities.copy()


def get_mqtt_config_from_env() -> Dict[str, Any]:
    """Get MQTT connection settings from the environment.

    Returns:
        Dictionary with mqtt_host, mqtt_port, mqtt_user, mqtt_password
    """
    return {
        "mqtt_host": os.getenv("MQTT_HOST", "core-mosquitto"),
        "mqtt_port": int(os.getenv("MQTT_PORT", "1883")),
        "mqtt_user": os.getenv("MQTT_USER"),
        "mqtt_password": os.getenv("MQTT_PASSWORD"),
    }

"""Tests for the MQTT Discovery helper (no broker required)."""

from shared.ha_mqtt_discovery import EntityConfig, MqttDiscovery


class DummyClient:
    def __init__(self):
        self.subscribed = []

    def subscribe(self, topic, qos=0):
        self.subscribed.append(topic)


class DummyMessage:
    def __init__(self, topic, payload):
        self.topic = topic
        self.payload = payload.encode("utf-8")


def make_discovery():
    return MqttDiscovery(addon_name="Powerwall Reserve Adjuster", addon_id="reserve_adjuster")


class TestMqttDiscovery:
    def test_topics(self):
        discovery = make_discovery()
        assert discovery._state_topic("number", "peak_reserve") == "reserve_adjuster/number/peak_reserve/state"
        assert discovery._command_topic("text", "holidays") == "reserve_adjuster/text/holidays/set"
        assert (
            discovery._discovery_topic("sensor", "last_outcome")
            == "homeassistant/sensor/reserve_adjuster/last_outcome/config"
        )

    def test_publish_requires_connection(self):
        discovery = make_discovery()
        assert discovery.is_connected() is False
        assert discovery.publish_sensor(EntityConfig(object_id="x", name="X", state="1")) is False
        assert discovery.get_published_entities() == []

    def test_command_dispatch(self):
        discovery = make_discovery()
        discovery._client = DummyClient()
        received = []
        topic = discovery._command_topic("text", "holidays")
        discovery._subscribe_command(topic, received.append)

        discovery._on_message(None, None, DummyMessage(topic, "2026-12-25"))
        discovery._on_message(None, None, DummyMessage("other/topic", "ignored"))

        assert discovery._client.subscribed == [topic]
        assert received == ["2026-12-25"]

    def test_command_errors_are_contained(self):
        discovery = make_discovery()
        discovery._client = DummyClient()
        topic = discovery._command_topic("number", "peak_reserve")

        def explode(payload):
            raise ValueError(payload)

        discovery._subscribe_command(topic, explode)
        discovery._on_message(None, None, DummyMessage(topic, "abc"))

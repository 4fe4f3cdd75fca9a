"""Tests for the MQTT Discovery entities."""

import pytest

from reserve_adjuster.entities import HOLIDAY_TEXT_MAX, ReserveEntities, parse_holiday_command
from reserve_adjuster.errors import ValidationError
from reserve_adjuster.models import DeviceStatus
from reserve_adjuster.reconciler import OutcomeKind, ReconcileOutcome


class DummyMqtt:
    def __init__(self):
        self.entities = {}
        self.callbacks = {}
        self.states = []

    def publish_sensor(self, config):
        self.entities[f"sensor.{config.object_id}"] = config
        return True

    def publish_number(self, config, command_callback=None):
        self.entities[f"number.{config.object_id}"] = config
        self.callbacks[f"number.{config.object_id}"] = command_callback
        return True

    def publish_text(self, config, command_callback=None):
        self.entities[f"text.{config.object_id}"] = config
        self.callbacks[f"text.{config.object_id}"] = command_callback
        return True

    def update_state(self, component, object_id, state, attributes=None):
        self.states.append((f"{component}.{object_id}", state, attributes))
        return True

    def get_published_entities(self):
        return list(self.entities)

    def last_state(self, entity):
        return [state for name, state, _ in self.states if name == entity][-1]


@pytest.fixture
def entities(settings):
    mqtt = DummyMqtt()
    entities = ReserveEntities(mqtt, settings)
    entities.publish_discovery()
    return entities


class TestParseHolidayCommand:
    def test_single_date(self):
        assert parse_holiday_command("2026-12-25") == (["2026-12-25"], False)

    def test_comma_separated(self):
        assert parse_holiday_command("2026-12-25, 2026-12-26") == (["2026-12-25", "2026-12-26"], False)

    def test_leading_minus_removes(self):
        assert parse_holiday_command("-2026-12-25") == (["2026-12-25"], True)

    def test_json_remove(self):
        assert parse_holiday_command('{"holiday": "2026-12-25", "remove": true}') == (["2026-12-25"], True)

    def test_json_list(self):
        assert parse_holiday_command('{"holiday": ["2026-12-25", "2026-12-26"]}') == (
            ["2026-12-25", "2026-12-26"], False,
        )

    def test_empty_rejected(self):
        with pytest.raises(ValidationError):
            parse_holiday_command("   ")

    def test_bad_json_rejected(self):
        with pytest.raises(ValidationError):
            parse_holiday_command("{holiday")


class TestReserveEntities:
    def test_publishes_all_entities(self, entities):
        assert sorted(entities.mqtt.get_published_entities()) == [
            "number.peak_reserve",
            "sensor.current_reserve",
            "sensor.desired_reserve",
            "sensor.last_outcome",
            "text.holidays",
        ]
        assert entities.mqtt.entities["number.peak_reserve"].state == "20"

    def test_peak_reserve_command_clamps(self, entities, settings):
        entities.mqtt.callbacks["number.peak_reserve"](2.0)

        assert settings.peak_reserve() == 5
        assert entities.mqtt.last_state("number.peak_reserve") == "5"

    def test_holiday_command_adds_and_removes(self, entities, settings):
        callback = entities.mqtt.callbacks["text.holidays"]

        callback("2026-12-25, 2026-12-26")
        callback("-2026-12-25")

        assert settings.holidays() == ["2026-12-26"]
        assert entities.mqtt.last_state("text.holidays") == "2026-12-26"

    def test_invalid_holiday_command_leaves_settings(self, entities, settings):
        settings.add_holidays("2026-12-25")

        entities.mqtt.callbacks["text.holidays"]("not a date")

        assert settings.holidays() == ["2026-12-25"]

    def test_update_after_change(self, entities):
        outcome = ReconcileOutcome(OutcomeKind.UPDATED, previous=100, desired=20, in_peak=True, holiday=False)
        status = DeviceStatus(site_id="42", reserve_level=100, tou_enabled=True)

        entities.update(outcome, status)

        assert entities.mqtt.last_state("sensor.last_outcome") == "updated"
        assert entities.mqtt.last_state("sensor.current_reserve") == "20"
        assert entities.mqtt.last_state("sensor.desired_reserve") == "20"

    def test_update_after_failure(self, entities):
        outcome = ReconcileOutcome(OutcomeKind.FAILED, step="authenticate", error=RuntimeError("x"))

        entities.update(outcome)

        name, state, attributes = entities.mqtt.states[-1]
        assert (name, state) == ("sensor.last_outcome", "failed")
        assert attributes["failed_step"] == "authenticate"

    def test_holiday_text_truncated(self):
        holidays = [f"2026-01-{day:02d}" for day in range(1, 29)] * 2
        text = ReserveEntities._holiday_text(holidays)
        assert len(text) == HOLIDAY_TEXT_MAX
        assert text.startswith("...")

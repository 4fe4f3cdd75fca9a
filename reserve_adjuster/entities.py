"""Home Assistant entities for the reserve adjuster (via MQTT Discovery).

Sensors report the outcome of the latest run; the peak reserve number and the
holidays text entity write straight into the settings store.
"""

import json
import logging
import threading
from typing import List, Optional, Tuple

from shared.ha_mqtt_discovery import EntityConfig, MqttDiscovery, NumberConfig, TextConfig

from .constants import MAX_RESERVE, MIN_RESERVE
from .errors import ReserveAdjusterError, ValidationError
from .models import DeviceStatus
from .reconciler import OutcomeKind, ReconcileOutcome
from .settings import ReserveSettings

logger = logging.getLogger(__name__)

HOLIDAY_TEXT_MAX = 255


def parse_holiday_command(payload: str) -> Tuple[List[str], bool]:
    """Parse a holidays text command into ``(dates, remove)``.

    Accepted payloads:
        {"holiday": "2026-12-25", "remove": true}
        {"holiday": ["2026-12-25", "2026-12-26"]}
        2026-12-25, 2026-12-26
        -2026-12-25            (leading '-' removes)
    """
    text = (payload or '').strip()
    if not text:
        raise ValidationError("Empty holiday command")

    if text.startswith('{'):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid holiday command JSON: {e}") from e
        holiday = data.get('holiday')
        dates = holiday if isinstance(holiday, list) else [holiday]
        return [d for d in dates if d is not None], data.get('remove') is True

    remove = text.startswith('-')
    if remove:
        text = text[1:]
    return [part.strip() for part in text.split(',') if part.strip()], remove


class ReserveEntities:
    """Publishes and updates the reserve adjuster's entities."""

    def __init__(self, mqtt: MqttDiscovery, settings: ReserveSettings, lock: Optional[threading.Lock] = None):
        self.mqtt = mqtt
        self.settings = settings
        self.lock = lock or threading.Lock()

    def publish_discovery(self) -> None:
        logger.info("Publishing MQTT Discovery configs...")

        self.mqtt.publish_number(
            NumberConfig(
                object_id="peak_reserve",
                name="Peak Reserve",
                min_value=MIN_RESERVE,
                max_value=MAX_RESERVE,
                step=1,
                state=str(self.settings.peak_reserve()),
                unit_of_measurement="%",
                icon="mdi:battery-arrow-down",
                entity_category="config",
            ),
            command_callback=self._handle_peak_reserve,
        )

        self.mqtt.publish_text(
            TextConfig(
                object_id="holidays",
                name="Holidays",
                state=self._holiday_text(self.settings.holidays()),
                max_length=HOLIDAY_TEXT_MAX,
                icon="mdi:calendar-star",
                entity_category="config",
            ),
            command_callback=self._handle_holiday_command,
        )

        self.mqtt.publish_sensor(
            EntityConfig(
                object_id="last_outcome",
                name="Last Outcome",
                state="unknown",
                icon="mdi:battery-sync",
                entity_category="diagnostic",
            )
        )
        self.mqtt.publish_sensor(
            EntityConfig(
                object_id="current_reserve",
                name="Current Reserve",
                state="unknown",
                unit_of_measurement="%",
                device_class="battery",
                state_class="measurement",
            )
        )
        self.mqtt.publish_sensor(
            EntityConfig(
                object_id="desired_reserve",
                name="Desired Reserve",
                state="unknown",
                unit_of_measurement="%",
                device_class="battery",
                icon="mdi:battery-check",
            )
        )

        logger.info("Published %d entities", len(self.mqtt.get_published_entities()))

    def update(self, outcome: ReconcileOutcome, status: Optional[DeviceStatus] = None) -> None:
        """Push the latest run's results to the sensors."""
        attributes = {
            'summary': outcome.summary(),
            'in_peak': outcome.in_peak,
            'holiday': outcome.holiday,
        }
        if outcome.step:
            attributes['failed_step'] = outcome.step
        if status is not None:
            attributes['site_id'] = status.site_id
            attributes['tou_enabled'] = status.tou_enabled
            attributes['time_zone'] = status.time_zone

        self.mqtt.update_state("sensor", "last_outcome", outcome.kind.value, attributes)

        if outcome.kind == OutcomeKind.UPDATED:
            current = outcome.desired
        elif outcome.previous is not None:
            current = outcome.previous
        else:
            current = status.reserve_level if status else None
        if current is not None:
            self.mqtt.update_state("sensor", "current_reserve", str(current))
        if outcome.desired is not None:
            self.mqtt.update_state("sensor", "desired_reserve", str(outcome.desired))

    @staticmethod
    def _holiday_text(holidays: List[str]) -> str:
        text = ", ".join(holidays)
        if len(text) > HOLIDAY_TEXT_MAX:
            # Keep the most recent additions visible
            text = "..." + text[-(HOLIDAY_TEXT_MAX - 3):]
        return text

    def _handle_peak_reserve(self, value: float) -> None:
        with self.lock:
            try:
                reserve = self.settings.set_peak_reserve(value)
            except ReserveAdjusterError as e:
                logger.error("Peak reserve update rejected: %s", e)
                return
        self.mqtt.update_state("number", "peak_reserve", str(reserve))

    def _handle_holiday_command(self, payload: str) -> None:
        with self.lock:
            try:
                dates, remove = parse_holiday_command(payload)
                if remove:
                    holidays = self.settings.remove_holidays(dates)
                else:
                    holidays = self.settings.add_holidays(dates)
            except ReserveAdjusterError as e:
                logger.error("Holiday update rejected: %s", e)
                return
        self.mqtt.update_state("text", "holidays", self._holiday_text(holidays))

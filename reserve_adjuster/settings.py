"""Typed access to the persisted reserve adjuster settings.

Each setting has its own parse step on read and its own validation on write,
so malformed values fail the same way every time instead of being coerced.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Union

from .constants import (
    DEFAULT_PEAK_RESERVE,
    KEY_HOLIDAYS,
    KEY_PEAK_RESERVE,
    KEY_SUBSCRIPTIONS,
    MAX_RESERVE,
    MIN_RESERVE,
)
from .errors import ConfigError, ValidationError
from .holidays import DateLike, add_holidays, remove_holidays
from .models import Credential
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


def clamp_peak_reserve(value: Any) -> int:
    """Clamp a user supplied peak reserve to the allowed range.

    Missing input is treated as the minimum reserve.

    Raises:
        ValidationError: If the value is not a number
    """
    if value is None:
        return MIN_RESERVE
    if isinstance(value, bool):
        raise ValidationError(f"Peak reserve must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Peak reserve must be a number, got {value!r}") from e
    if math.isnan(number):
        raise ValidationError("Peak reserve must be a number, got NaN")
    return int(round(max(min(MAX_RESERVE, number), MIN_RESERVE)))


def normalize_subscription(address: str) -> str:
    """Strip an optional ``notify.`` prefix from a notify service name."""
    if not isinstance(address, str) or not address.strip():
        raise ValidationError(f"Notify service must be a non-empty string, got {address!r}")
    name = address.strip()
    if name.startswith('notify.'):
        name = name[len('notify.'):]
    if not name:
        raise ValidationError(f"Notify service name missing in {address!r}")
    return name


def _parse_string_list(key: str, value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"Stored {key} must be a list of strings, got {value!r}")
    return list(value)


class ReserveSettings:
    """Typed view over a SettingsStore."""

    def __init__(self, store: SettingsStore):
        self.store = store

    # Peak reserve

    def peak_reserve(self) -> int:
        """Stored peak reserve, or the default when none is stored."""
        value = self.store.get(KEY_PEAK_RESERVE)
        if value is None:
            return DEFAULT_PEAK_RESERVE
        if isinstance(value, bool):
            raise ConfigError(f"Stored {KEY_PEAK_RESERVE} must be an integer, got {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise ConfigError(f"Stored {KEY_PEAK_RESERVE} must be an integer, got {value!r}")

    def set_peak_reserve(self, value: Any) -> int:
        """Clamp and store the peak reserve, returning the stored value."""
        reserve = clamp_peak_reserve(value)
        if value is not None and reserve != value:
            logger.info("Peak reserve %r adjusted to %d%%", value, reserve)
        self.store.put(KEY_PEAK_RESERVE, reserve)
        logger.info("Peak reserve set to %d%%", reserve)
        return reserve

    # Holidays

    def holidays(self) -> List[str]:
        return _parse_string_list(KEY_HOLIDAYS, self.store.get(KEY_HOLIDAYS))

    def add_holidays(self, dates: Union[DateLike, Iterable[DateLike]]) -> List[str]:
        holidays = add_holidays(self.holidays(), dates)
        self.store.put(KEY_HOLIDAYS, holidays)
        logger.info("Holidays now: %s", ", ".join(holidays) or "none")
        return holidays

    def remove_holidays(self, dates: Union[DateLike, Iterable[DateLike]]) -> List[str]:
        holidays = remove_holidays(self.holidays(), dates)
        self.store.put(KEY_HOLIDAYS, holidays)
        logger.info("Holidays now: %s", ", ".join(holidays) or "none")
        return holidays

    # Notification subscriptions

    def subscriptions(self) -> List[str]:
        return _parse_string_list(KEY_SUBSCRIPTIONS, self.store.get(KEY_SUBSCRIPTIONS))

    def add_subscription(self, address: str) -> List[str]:
        name = normalize_subscription(address)
        subscriptions = list(dict.fromkeys(self.subscriptions() + [name]))
        self.store.put(KEY_SUBSCRIPTIONS, subscriptions)
        return subscriptions

    def remove_subscription(self, address: str) -> List[str]:
        name = normalize_subscription(address)
        subscriptions = [item for item in self.subscriptions() if item != name]
        self.store.put(KEY_SUBSCRIPTIONS, subscriptions)
        return subscriptions

    # Credential

    def credential(self) -> Optional[Credential]:
        return Credential.from_settings(self.store.load())

    def save_credential(self, credential: Credential) -> None:
        """Persist all three token fields in a single write."""
        self.store.put_many(credential.to_settings())

    def snapshot(self) -> Dict[str, Any]:
        """All user-facing settings, as shown by ``settings`` in the CLI."""
        return {
            'notify': self.subscriptions(),
            'holiday': self.holidays(),
            'reserve': self.peak_reserve(),
        }

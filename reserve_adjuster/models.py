"""Data models for the reserve adjuster."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .constants import KEY_AUTH_TOKEN, KEY_REFRESH_TOKEN, KEY_TOKEN_EXPIRES, TOU_REAL_MODE
from .errors import ConfigError, UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """Tesla API credential triple.

    Attributes:
        refresh_token: Long-lived token exchanged for new access tokens
        access_token: Short-lived bearer token
        expires_at: UTC instant after which access_token must not be used
    """
    refresh_token: Optional[str]
    access_token: Optional[str]
    expires_at: Optional[datetime]

    def is_valid(self, now: datetime) -> bool:
        """True when the access token can still be used at ``now``."""
        return bool(self.access_token) and self.expires_at is not None and now < self.expires_at

    @classmethod
    def from_token_response(cls, data: Mapping[str, Any], now: datetime) -> "Credential":
        """Build a credential from an OAuth token endpoint response.

        ``created_at`` is used as the expiry base when the endpoint supplies it,
        otherwise the local ``now``.
        """
        try:
            access_token = data['access_token']
            expires_in = int(data['expires_in'])
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Unexpected token response: missing {e}") from e

        if data.get('created_at') is not None:
            issued = datetime.fromtimestamp(int(data['created_at']), tz=timezone.utc)
        else:
            issued = now
        expires_at = datetime.fromtimestamp(int(issued.timestamp()) + expires_in, tz=timezone.utc)

        return cls(
            refresh_token=data.get('refresh_token'),
            access_token=access_token,
            expires_at=expires_at,
        )

    @classmethod
    def from_settings(cls, values: Mapping[str, Any]) -> Optional["Credential"]:
        """Parse the stored token fields; None when nothing is stored."""
        refresh_token = values.get(KEY_REFRESH_TOKEN)
        access_token = values.get(KEY_AUTH_TOKEN)
        expires_raw = values.get(KEY_TOKEN_EXPIRES)

        if refresh_token is None and access_token is None:
            return None

        for key, value in ((KEY_REFRESH_TOKEN, refresh_token), (KEY_AUTH_TOKEN, access_token)):
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"Stored {key} must be a string, got {type(value).__name__}")

        expires_at = None
        if expires_raw is not None:
            if isinstance(expires_raw, bool) or not isinstance(expires_raw, (int, float)):
                raise ConfigError(f"Stored {KEY_TOKEN_EXPIRES} must be epoch seconds, got {expires_raw!r}")
            expires_at = datetime.fromtimestamp(expires_raw, tz=timezone.utc)

        return cls(refresh_token=refresh_token, access_token=access_token, expires_at=expires_at)

    def to_settings(self) -> Dict[str, Any]:
        """Serialize to the three settings keys, written together."""
        return {
            KEY_REFRESH_TOKEN: self.refresh_token,
            KEY_AUTH_TOKEN: self.access_token,
            KEY_TOKEN_EXPIRES: int(self.expires_at.timestamp()) if self.expires_at else None,
        }


class TouCategory(Enum):
    """Pricing category of a TOU schedule block."""
    PEAK = "peak"
    PARTIAL_PEAK = "partial_peak"
    OFF_PEAK = "off_peak"
    SUPER_OFF_PEAK = "super_off_peak"
    UNKNOWN = "unknown"

    @classmethod
    def from_api_string(cls, value: Optional[str]) -> "TouCategory":
        if not isinstance(value, str) or not value:
            return cls.UNKNOWN
        try:
            return cls(value.lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class TouScheduleBlock:
    """One recurring TOU interval from the battery's configuration.

    Attributes:
        days_of_week: Weekdays the block applies to, 0 = Sunday .. 6 = Saturday
        start_seconds: Offset from local midnight where the block starts
        end_seconds: Offset from local midnight where the block ends
        category: Pricing category of the block
    """
    days_of_week: FrozenSet[int]
    start_seconds: int
    end_seconds: int
    category: TouCategory = TouCategory.PEAK

    @classmethod
    def from_api(cls, entry: Mapping[str, Any]) -> "TouScheduleBlock":
        try:
            return cls(
                days_of_week=frozenset(int(day) for day in entry['week_days']),
                start_seconds=int(entry['start_seconds']),
                end_seconds=int(entry['end_seconds']),
                category=TouCategory.from_api_string(entry.get('target')),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed TOU schedule block {entry!r}: {e}") from e


@dataclass(frozen=True)
class DeviceStatus:
    """Snapshot of the battery site, fetched fresh every run."""
    site_id: str
    reserve_level: int
    tou_enabled: bool
    schedule: Tuple[TouScheduleBlock, ...] = field(default_factory=tuple)
    time_zone: Optional[str] = None

    def peak_schedule(self) -> List[TouScheduleBlock]:
        """Peak blocks in the order the battery reports them."""
        return [block for block in self.schedule if block.category == TouCategory.PEAK]

    @classmethod
    def from_site_info(cls, site_id: Any, info: Mapping[str, Any]) -> "DeviceStatus":
        """Parse the ``site_info`` response body of an energy site."""
        try:
            reserve_level = int(float(info['backup_reserve_percent']))
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Site info has no usable backup_reserve_percent: {e}") from e

        raw_schedule = (info.get('tou_settings') or {}).get('schedule')
        if not isinstance(raw_schedule, list):
            raw_schedule = []

        return cls(
            site_id=str(site_id),
            reserve_level=reserve_level,
            tou_enabled=info.get('default_real_mode') == TOU_REAL_MODE,
            schedule=_parse_schedule(raw_schedule),
            time_zone=info.get('installation_time_zone') or None,
        )


def _parse_schedule(raw_schedule: List[Any]) -> Tuple[TouScheduleBlock, ...]:
    """Parse schedule entries; only a malformed peak block is an error."""
    blocks = []
    for entry in raw_schedule:
        target = entry.get('target') if isinstance(entry, Mapping) else None
        try:
            blocks.append(TouScheduleBlock.from_api(entry))
        except UpstreamError:
            if TouCategory.from_api_string(target) == TouCategory.PEAK:
                raise
            logger.warning("Ignoring malformed non-peak TOU block: %r", entry)
    return tuple(blocks)

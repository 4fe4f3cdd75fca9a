"""Reserve reconciliation.

One ``reconcile()`` call brings the Powerwall backup reserve in line with the
TOU policy: the configured peak reserve while a (buffered) peak window is
active, 100% otherwise and on holidays. The device is only written when its
current reserve differs from the desired one, so repeated runs are no-ops.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .constants import MAX_RESERVE
from .credentials import CredentialManager
from .errors import ConfigError
from .holidays import is_holiday
from .models import DeviceStatus
from .notifier import Notifier
from .peak_window import in_peak_window
from .settings import ReserveSettings

logger = logging.getLogger(__name__)

STEP_AUTHENTICATE = 'authenticate'
STEP_FETCH_STATUS = 'fetch_status'
STEP_READ_SETTINGS = 'read_settings'
STEP_EVALUATE = 'evaluate_schedule'
STEP_SET_RESERVE = 'set_reserve'

STEP_SUBJECTS = {
    STEP_AUTHENTICATE: 'Error configuring Tesla API client',
    STEP_FETCH_STATUS: 'Error getting Tesla Powerwall information',
    STEP_READ_SETTINGS: 'Error getting configured reserve settings',
    STEP_EVALUATE: 'Error evaluating the TOU schedule',
    STEP_SET_RESERVE: 'Error adjusting Tesla Powerwall reserve',
}

NOT_TOU_REASON = 'not in TOU mode'


class OutcomeKind(Enum):
    NO_OP = "no_op"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconcileOutcome:
    """Result of one reconciliation run.

    Attributes:
        kind: What happened
        previous: Reserve reported by the device (NO_OP / UPDATED)
        desired: Reserve the policy asks for (NO_OP / UPDATED)
        reason: Why the run was skipped (SKIPPED)
        step: Step that failed (FAILED)
        error: The error that stopped the run (FAILED)
        in_peak: Peak window evaluation, when it was reached
        holiday: Holiday lookup, when it was reached
    """
    kind: OutcomeKind
    previous: Optional[int] = None
    desired: Optional[int] = None
    reason: Optional[str] = None
    step: Optional[str] = None
    error: Optional[Exception] = None
    in_peak: Optional[bool] = None
    holiday: Optional[bool] = None

    def summary(self) -> str:
        if self.kind == OutcomeKind.NO_OP:
            return f"Reserve at {self.previous}% matches desired {self.desired}%"
        if self.kind == OutcomeKind.UPDATED:
            return f"Reserve changed from {self.previous}% to {self.desired}%"
        if self.kind == OutcomeKind.SKIPPED:
            return f"Skipped: {self.reason}"
        return f"Failed at {self.step}: {self.error}"


def desired_reserve(in_peak: bool, holiday: bool, peak_reserve: int) -> int:
    """Reserve the policy asks for: the peak reserve only in a peak window on a working day."""
    if holiday or not in_peak:
        return MAX_RESERVE
    return peak_reserve


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def device_zone(status: DeviceStatus, fallback: str) -> ZoneInfo:
    """Time zone of the battery, falling back to the configured zone."""
    name = status.time_zone or fallback
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown time zone {name!r}") from e


class ReserveReconciler:
    """Runs the reconciliation steps and reports failures.

    Args:
        credentials: Credential manager providing an authorized client
        settings: Typed settings (peak reserve, holidays)
        notifier: Alert channel for failures and skipped runs
        clock: Returns the current aware UTC time
        default_time_zone: Zone used when the battery reports none
        notify_on_skip: Alert when the battery is not in TOU mode
    """

    def __init__(
        self,
        credentials: CredentialManager,
        settings: ReserveSettings,
        notifier: Notifier,
        clock: Callable[[], datetime] = _utcnow,
        default_time_zone: str = 'UTC',
        notify_on_skip: bool = True,
    ):
        self.credentials = credentials
        self.settings = settings
        self.notifier = notifier
        self.clock = clock
        self.default_time_zone = default_time_zone
        self.notify_on_skip = notify_on_skip
        self.last_outcome: Optional[ReconcileOutcome] = None
        self.last_status: Optional[DeviceStatus] = None

    def reconcile(self, now: Optional[datetime] = None) -> ReconcileOutcome:
        """Run one reconciliation. Never raises."""
        self.last_status = None
        outcome = self._reconcile(now)
        self.last_outcome = outcome

        if outcome.kind == OutcomeKind.FAILED:
            logger.error("Reconciliation failed at %s: %s", outcome.step, outcome.error)
            self.notifier.notify(
                STEP_SUBJECTS.get(outcome.step, 'Error setting Tesla Powerwall reserve'),
                f"An error was encountered setting the battery reserve:\n\n{outcome.error}",
            )
        elif outcome.kind == OutcomeKind.SKIPPED:
            logger.warning("Reconciliation skipped: %s", outcome.reason)
            if self.notify_on_skip:
                self.notifier.notify(
                    STEP_SUBJECTS[STEP_SET_RESERVE],
                    f"The battery reserve was not adjusted: the Powerwall is {outcome.reason}.",
                )
        else:
            logger.info("%s", outcome.summary())

        return outcome

    def _reconcile(self, now: Optional[datetime]) -> ReconcileOutcome:
        step = STEP_AUTHENTICATE
        try:
            client = self.credentials.ensure_session()

            step = STEP_FETCH_STATUS
            status = client.get_status()
            self.last_status = status
            if not status.tou_enabled:
                return ReconcileOutcome(OutcomeKind.SKIPPED, previous=status.reserve_level, reason=NOT_TOU_REASON)

            step = STEP_READ_SETTINGS
            peak_reserve = self.settings.peak_reserve()
            holidays = self.settings.holidays()

            step = STEP_EVALUATE
            local_now = (now or self.clock()).astimezone(device_zone(status, self.default_time_zone))
            holiday = is_holiday(local_now.date(), holidays)
            in_peak = in_peak_window(local_now, status.peak_schedule())
            desired = desired_reserve(in_peak, holiday, peak_reserve)
            logger.debug(
                "Local time %s: holiday=%s, in_peak=%s, peak_reserve=%d%%",
                local_now.isoformat(), holiday, in_peak, peak_reserve,
            )

            if status.reserve_level == desired:
                return ReconcileOutcome(
                    OutcomeKind.NO_OP, previous=status.reserve_level, desired=desired,
                    in_peak=in_peak, holiday=holiday,
                )

            logger.info(
                "Reserve level (%d%%) does not match desired reserve (%d%%); updating",
                status.reserve_level, desired,
            )
            step = STEP_SET_RESERVE
            client.set_reserve(status.site_id, desired)
            return ReconcileOutcome(
                OutcomeKind.UPDATED, previous=status.reserve_level, desired=desired,
                in_peak=in_peak, holiday=holiday,
            )

        except Exception as e:
            # Unattended path: every failure becomes an outcome and an alert
            return ReconcileOutcome(OutcomeKind.FAILED, step=step, error=e)

"""Peak window evaluation against the battery's weekly TOU schedule."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Tuple

from .constants import PEAK_START_BUFFER
from .models import TouScheduleBlock

logger = logging.getLogger(__name__)


def tou_weekday(now: datetime) -> int:
    """Weekday in schedule numbering: 0 = Sunday .. 6 = Saturday."""

    return now.isoweekday() % 7


def start_of_day(now: datetime) -> datetime:
    """Local midnight of the calendar day containing ``now``."""

    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def peak_interval(now: datetime, block: TouScheduleBlock) -> Tuple[datetime, datetime]:
    """Return the buffered ``(start, end)`` of ``block`` on the day of ``now``.

    Offsets are elapsed seconds from local midnight, so on a DST change day the
    interval keeps its length rather than its wall-clock labels. Offsets are not
    bounded: a block ending past 86400 runs into the next day and a buffered
    start before midnight reaches into the previous one.
    """

    midnight = start_of_day(now).astimezone(timezone.utc)
    start = midnight + timedelta(seconds=block.start_seconds) - PEAK_START_BUFFER
    end = midnight + timedelta(seconds=block.end_seconds)
    return start.astimezone(now.tzinfo), end.astimezone(now.tzinfo)


def in_peak_window(now: datetime, blocks: Iterable[TouScheduleBlock]) -> bool:
    """Return True if ``now`` falls inside any block's buffered interval.

    ``now`` must be timezone-aware and expressed in the battery's local zone,
    since block offsets are relative to the battery's midnight. Blocks are
    checked in the order given and the first match wins; both interval ends
    are inclusive.
    """

    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    weekday = tou_weekday(now)
    instant = now.astimezone(timezone.utc)
    for block in blocks:
        if weekday not in block.days_of_week:
            logger.debug("Weekday %d not in peak block days %s", weekday, sorted(block.days_of_week))
            continue

        start, end = peak_interval(now, block)
        logger.debug("Peak interval: %s - %s", start.isoformat(), end.isoformat())
        # compare instants, same-zone comparison ignores fold on DST days
        if start.astimezone(timezone.utc) <= instant <= end.astimezone(timezone.utc):
            logger.debug("Peak interval matches %s", now.isoformat())
            return True

    return False

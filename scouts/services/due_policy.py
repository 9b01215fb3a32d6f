"""
Due-Date Policy — decides whether a scout runs in the current cycle.

Pure functions, no I/O. A scout's ``frequency`` maps to a fixed interval; an
optional ``schedule_time`` (and ``schedule_day`` for weekly scouts) anchors the
runs to wall-clock slots so each window fires exactly once.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from scouts.models.scout import ExecutionStatus, Frequency, Scout, ScoutExecution

DEFAULT_STUCK_TIMEOUT = timedelta(minutes=3)
DEFAULT_TICK = timedelta(minutes=5)

DAILY_SLOT = timedelta(days=1)
WEEKLY_SLOT = timedelta(days=7)


# ─── Eligibility ───────────────────────────────────────────────────────

def is_eligible(scout: Scout) -> bool:
    """Active and fully configured; required for automatic selection."""
    return bool(scout.is_active) and scout.is_complete


# ─── Slot Helpers ──────────────────────────────────────────────────────

def _parse_time(value: Optional[str]) -> tuple[int, int]:
    if not value:
        return 0, 0
    hour, minute = value.split(":")
    return int(hour), int(minute)


def latest_slot(scout: Scout, now: datetime) -> Optional[tuple[datetime, timedelta]]:
    """
    Most recent anchored slot at or before ``now`` and the slot period.
    Returns None for unanchored (pure interval) schedules.
    """
    frequency = Frequency(scout.frequency)
    if frequency is Frequency.HOURLY:
        return None

    hour, minute = _parse_time(scout.schedule_time)
    today = now.replace(hour=hour, minute=minute, second=0, microsecond=0)

    if frequency is Frequency.WEEKLY and scout.schedule_day is not None:
        slot = today - timedelta(days=(now.weekday() - scout.schedule_day) % 7)
        if slot > now:
            slot -= WEEKLY_SLOT
        return slot, WEEKLY_SLOT

    if not scout.schedule_time:
        return None

    slot = today if today <= now else today - DAILY_SLOT
    return slot, DAILY_SLOT


# ─── Policy ────────────────────────────────────────────────────────────

def is_due(
    scout: Scout,
    last_execution: Optional[ScoutExecution],
    now: Optional[datetime] = None,
    stuck_timeout: timedelta = DEFAULT_STUCK_TIMEOUT,
    tick: timedelta = DEFAULT_TICK,
) -> bool:
    """
    Return True if ``scout`` should run in the cycle evaluated at ``now``.

    - No prior execution → always due.
    - Last execution still ``running`` and not older than ``stuck_timeout`` →
      never due (the reconciler has not cleared it yet).
    - Anchored schedule → due once the current slot has passed, the last
      start precedes it (minus the extra days a multi-day interval spans), and
      at least one interval less one cron ``tick`` has elapsed since that start.
    - Otherwise → due once a full interval has elapsed since the last start.
    """
    if last_execution is None:
        return True

    now = now or datetime.now(timezone.utc)
    started_at = last_execution.started_at

    if last_execution.status == ExecutionStatus.RUNNING.value and now - started_at <= stuck_timeout:
        return False

    frequency = Frequency(scout.frequency)
    interval = frequency.interval

    anchor = latest_slot(scout, now)
    if anchor is not None:
        slot, period = anchor
        return started_at < slot - (interval - period) and now - started_at >= interval - tick

    return now - started_at >= interval

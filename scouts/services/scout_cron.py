"""
Scout Cron — one orchestrator cycle.

    reconcile stuck executions → sweep dormant accounts → select + dispatch → report

Reconcile and sweep are best-effort side steps: whatever goes wrong there is
logged and counted as zero effect. Dispatch is the primary objective; only a
configuration error or a manual-trigger selection error fails the cycle.

Invoked by the recurring in-process timer (``periodic_scout_cron``) and by
``POST /api/v1/scout-cron`` for on-demand runs.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from scouts.config import settings
from scouts.errors import ConfigurationError
from scouts.schemas import RunReport
from scouts.services.dispatcher import Trigger, select_and_run
from scouts.services.dormancy import AccountDirectory, sweep_dormant_accounts
from scouts.services.executor import AgentScoutExecutor, ScoutExecutor
from scouts.services.reconciler import reconcile_stuck
from scouts.services.report import build_run_report

logger = logging.getLogger("scouts.cron")


def _check_configuration() -> None:
    if not settings.database_url:
        raise ConfigurationError("Store configuration missing (DATABASE_URL is empty)")


async def _reconcile_step(now: datetime) -> int:
    try:
        return await reconcile_stuck(now, settings.stuck_execution_timeout)
    except Exception as e:
        logger.error("Reconcile step failed: %s", e, exc_info=True)
        return 0


async def _sweep_step(now: datetime, directory: Optional[AccountDirectory]) -> int:
    try:
        return await sweep_dormant_accounts(now, settings.inactivity_threshold, directory)
    except Exception as e:
        logger.error("Dormancy sweep failed: %s", e, exc_info=True)
        return 0


async def run_scout_cron(
    trigger: Optional[Trigger] = None,
    executor: Optional[ScoutExecutor] = None,
    directory: Optional[AccountDirectory] = None,
    now: Optional[datetime] = None,
) -> RunReport:
    """
    Run one full cycle and return its report.

    Raises ``ConfigurationError`` for a misconfigured service and the
    ``TaskSelectionError`` family for manual triggers that cannot run.
    """
    _check_configuration()

    trigger = trigger or Trigger.scheduled()
    executor = executor or AgentScoutExecutor()
    started_at = now or datetime.now(timezone.utc)

    reconciled = await _reconcile_step(started_at)
    deactivated = await _sweep_step(started_at, directory)

    outcomes = await select_and_run(
        trigger,
        executor,
        now=started_at,
        stuck_timeout=settings.stuck_execution_timeout,
        tick=settings.cron_interval,
    )

    report = build_run_report(
        trigger,
        outcomes,
        stuck_reconciled=reconciled,
        scouts_deactivated=deactivated,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )
    logger.info(
        "Scout cron (%s) done: executed=%d succeeded=%d failed=%d reconciled=%d deactivated=%d",
        report.trigger, report.scouts_executed, report.succeeded, report.failed,
        report.stuck_executions_reconciled, report.scouts_deactivated,
    )
    return report


async def periodic_scout_cron(interval: int = 300) -> None:
    """Run a scheduled cycle every ``interval`` seconds until cancelled."""
    while True:
        try:
            await asyncio.sleep(interval)
            await run_scout_cron(Trigger.scheduled())
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Scout cron cycle error: %s", e)

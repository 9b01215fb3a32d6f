"""
Stuck-Execution Reconciler.

Executions left in ``running`` past the executor's hard ceiling are
force-failed so the next due-date evaluation can move on. Best-effort: a
store failure reconciles nothing this cycle and never aborts the cycle.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from scouts.database import async_session_factory
from scouts.models.scout import ExecutionStatus, ScoutExecution

logger = logging.getLogger("scouts.reconciler")


def timeout_message(timeout: timedelta) -> str:
    minutes = int(timeout.total_seconds() // 60)
    if minutes >= 1:
        return f"Execution timed out after {minutes} minute{'s' if minutes != 1 else ''}"
    return f"Execution timed out after {int(timeout.total_seconds())} seconds"


async def reconcile_stuck(now: datetime, timeout: timedelta) -> int:
    """
    Transition every ``running`` execution started before ``now - timeout``
    to ``failed``. Returns the number of executions actually transitioned.
    """
    cutoff = now - timeout
    message = timeout_message(timeout)
    reconciled = 0

    logger.info("🧹 Checking for stuck executions (started before %s)...", cutoff.isoformat())
    try:
        async with async_session_factory() as db:
            result = await db.execute(
                select(ScoutExecution.id, ScoutExecution.started_at).where(
                    ScoutExecution.status == ExecutionStatus.RUNNING.value,
                    ScoutExecution.started_at < cutoff,
                )
            )
            stuck = result.all()

            if not stuck:
                logger.info("No stuck executions found")
                return 0

            logger.info("Found %d stuck execution(s), marking as failed...", len(stuck))
            for execution_id, started_at in stuck:
                # Guarded on status so a record the executor just finished is left alone
                outcome = await db.execute(
                    update(ScoutExecution)
                    .where(
                        ScoutExecution.id == execution_id,
                        ScoutExecution.status == ExecutionStatus.RUNNING.value,
                    )
                    .values(
                        status=ExecutionStatus.FAILED.value,
                        completed_at=now,
                        error_message=message,
                    )
                    .execution_options(synchronize_session=False)
                )
                if outcome.rowcount:
                    reconciled += 1
                    logger.info(
                        "Marked execution %s as failed (stuck since %s)",
                        execution_id, started_at.isoformat() if started_at else "?",
                    )
            await db.commit()
    except SQLAlchemyError as e:
        logger.error("Stuck-execution reconcile failed: %s", e)
        return 0

    return reconciled

"""
Dispatcher — selects the run set for a cycle and executes it concurrently.

Two triggers:
  scheduled  → every active, complete scout the due-date policy marks due
  manual     → exactly one scout by id, regardless of schedule

Fan-out is unbounded (``asyncio.gather``) and every scout runs inside its own
failure boundary, so one scout's exception never cancels or alters another's
outcome. The call returns only after every scout has finished.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError

from scouts.database import async_session_factory
from scouts.errors import (
    ScoutIncompleteError,
    ScoutNotActiveError,
    ScoutNotFoundError,
    StoreUnavailableError,
)
from scouts.models.scout import Scout, ScoutExecution
from scouts.services.due_policy import DEFAULT_TICK, is_due, is_eligible
from scouts.services.executor import ScoutExecutor

logger = logging.getLogger("scouts.dispatcher")


@dataclass(frozen=True)
class Trigger:
    scout_id: Optional[str] = None

    @classmethod
    def scheduled(cls) -> "Trigger":
        return cls()

    @classmethod
    def manual(cls, scout_id: str) -> "Trigger":
        return cls(scout_id=scout_id)

    @property
    def is_manual(self) -> bool:
        return self.scout_id is not None

    @property
    def kind(self) -> str:
        return "manual" if self.is_manual else "scheduled"


@dataclass
class ScoutOutcome:
    scout_id: str
    title: Optional[str]
    status: str  # "succeeded" | "failed"
    result: Optional[dict[str, Any]] = field(default=None)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"


# ── Selection ───────────────────────────────────────────

async def _load_manual(scout_id: str) -> Scout:
    try:
        async with async_session_factory() as db:
            scout = await db.get(Scout, scout_id)
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"Could not load scout {scout_id}: {e}") from e

    if scout is None:
        raise ScoutNotFoundError(scout_id)
    if not scout.is_active:
        raise ScoutNotActiveError(scout_id)
    if not scout.is_complete:
        raise ScoutIncompleteError(scout_id)
    return scout


async def _load_active_with_latest() -> list[tuple[Scout, Optional[ScoutExecution]]]:
    """Active scouts paired with their most recent execution (one grouped query)."""
    latest = (
        select(
            ScoutExecution.scout_id.label("scout_id"),
            func.max(ScoutExecution.started_at).label("started_at"),
        )
        .group_by(ScoutExecution.scout_id)
        .subquery()
    )

    async with async_session_factory() as db:
        scouts = (
            await db.execute(select(Scout).where(Scout.is_active.is_(True)))
        ).scalars().all()

        executions = (
            await db.execute(
                select(ScoutExecution).join(
                    latest,
                    and_(
                        ScoutExecution.scout_id == latest.c.scout_id,
                        ScoutExecution.started_at == latest.c.started_at,
                    ),
                )
            )
        ).scalars().all()

    by_scout = {e.scout_id: e for e in executions}
    return [(s, by_scout.get(s.id)) for s in scouts]


async def select_scouts(
    trigger: Trigger,
    now: datetime,
    stuck_timeout: timedelta,
    tick: timedelta = DEFAULT_TICK,
) -> list[Scout]:
    """
    Resolve the run set. Manual selection raises ``TaskSelectionError``;
    scheduled selection degrades to an empty run set on store failures.
    """
    if trigger.is_manual:
        logger.info("Manual trigger for scout: %s", trigger.scout_id)
        return [await _load_manual(trigger.scout_id)]

    try:
        candidates = await _load_active_with_latest()
    except SQLAlchemyError as e:
        logger.error("Error loading active scouts: %s", e)
        return []

    due: list[Scout] = []
    for scout, last_execution in candidates:
        if not is_eligible(scout):
            continue
        try:
            if is_due(scout, last_execution, now=now, stuck_timeout=stuck_timeout, tick=tick):
                due.append(scout)
        except ValueError as e:
            logger.warning("Skipping scout %s (bad schedule: %s)", scout.id, e)
    return due


# ── Execution ───────────────────────────────────────────

async def _run_one(scout: Scout, executor: ScoutExecutor) -> ScoutOutcome:
    try:
        result = await executor.execute(scout)
    except Exception as e:
        logger.error("Scout %s (%s) failed: %s", scout.id, scout.title, e)
        return ScoutOutcome(scout_id=scout.id, title=scout.title, status="failed", error=str(e))
    return ScoutOutcome(scout_id=scout.id, title=scout.title, status="succeeded", result=result)


async def run_scouts(scouts: list[Scout], executor: ScoutExecutor) -> list[ScoutOutcome]:
    """Execute all scouts concurrently; outcomes come back in input order."""
    if not scouts:
        return []
    return list(await asyncio.gather(*(_run_one(s, executor) for s in scouts)))


async def select_and_run(
    trigger: Trigger,
    executor: ScoutExecutor,
    now: datetime,
    stuck_timeout: timedelta,
    tick: timedelta = DEFAULT_TICK,
) -> list[ScoutOutcome]:
    scouts = await select_scouts(trigger, now, stuck_timeout, tick)
    logger.info("🚀 Found %d scout(s) to run", len(scouts))
    return await run_scouts(scouts, executor)

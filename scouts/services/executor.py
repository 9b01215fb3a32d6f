"""
Scout execution — runs one scout through the research agent and owns its
Execution Record from ``running`` to a terminal status.

The agent itself is opaque: ``HttpScoutAgent`` hands the scout definition to
the configured agent endpoint and reads back the findings.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import aiohttp
from sqlalchemy import update

from scouts.config import settings
from scouts.database import async_session_factory
from scouts.errors import ExecutionError
from scouts.models.scout import ExecutionStatus, Scout, ScoutExecution
from scouts.services.notify import notify_in_background

logger = logging.getLogger(__name__)


@dataclass
class ScoutResult:
    response: str
    found: bool


class ScoutAgent(Protocol):
    async def run(self, scout: Scout) -> ScoutResult: ...


class ScoutExecutor(Protocol):
    async def execute(self, scout: Scout) -> dict:
        """Run ``scout`` to a terminal Execution Record; raise on failure."""
        ...


class HttpScoutAgent:
    """Posts the scout to the agent endpoint and returns its findings."""

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None):
        self.url = url
        self.api_key = api_key

    async def run(self, scout: Scout) -> ScoutResult:
        url = self.url or settings.agent_url
        if not url:
            raise ExecutionError("Scout agent not configured (AGENT_URL is empty)")

        api_key = self.api_key or settings.agent_api_key
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}

        async with aiohttp.ClientSession() as session:
            async with session.post(url, json={"scout": scout.to_dict()}, headers=headers) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise ExecutionError(f"Agent API {resp.status}: {body[:200]}")
                data = await resp.json()

        response = data.get("response") or ""
        return ScoutResult(response=response, found=bool(data.get("found", bool(response))))


class AgentScoutExecutor:
    """Default execution collaborator used by the dispatcher."""

    def __init__(
        self,
        agent: Optional[ScoutAgent] = None,
        max_runtime: Optional[timedelta] = None,
    ):
        self.agent = agent or HttpScoutAgent()
        self.max_runtime = max_runtime or settings.executor_max_runtime

    async def execute(self, scout: Scout) -> dict:
        execution_id = await self._start(scout)
        limit = self.max_runtime.total_seconds()

        try:
            result = await asyncio.wait_for(self.agent.run(scout), timeout=limit)
        except asyncio.TimeoutError:
            message = f"Execution exceeded the {int(limit)}s run-time limit"
            await self._finish(execution_id, ExecutionStatus.FAILED, error_message=message)
            logger.error("❌ Scout %s timed out (%s)", scout.id, execution_id)
            raise ExecutionError(message)
        except Exception as e:
            await self._finish(execution_id, ExecutionStatus.FAILED, error_message=str(e)[:500])
            logger.error("❌ Scout %s failed (%s): %s", scout.id, execution_id, e)
            if isinstance(e, ExecutionError):
                raise
            raise ExecutionError(str(e)) from e

        recorded = await self._finish(
            execution_id,
            ExecutionStatus.SUCCEEDED,
            response=result.response,
            found_results=result.found,
        )
        if not recorded:
            logger.error("❌ Scout %s finished after its execution %s was reconciled", scout.id, execution_id)
            raise ExecutionError("Execution was already terminated by the reconciler")

        logger.info("✅ Scout %s succeeded (found=%s)", scout.title, result.found)

        if result.found:
            notify_in_background(scout, result.response)

        return {
            "execution_id": execution_id,
            "found": result.found,
            "response": result.response,
        }

    async def _start(self, scout: Scout) -> str:
        async with async_session_factory() as db:
            execution = ScoutExecution(
                scout_id=scout.id,
                status=ExecutionStatus.RUNNING.value,
                started_at=datetime.now(timezone.utc),
            )
            db.add(execution)
            await db.commit()
            return execution.id

    async def _finish(self, execution_id: str, status: ExecutionStatus, **values) -> bool:
        """Move a running record to ``status``. False when it was already terminal."""
        # Only a still-running record transitions; the reconciler may have failed it already
        async with async_session_factory() as db:
            result = await db.execute(
                update(ScoutExecution)
                .where(
                    ScoutExecution.id == execution_id,
                    ScoutExecution.status == ExecutionStatus.RUNNING.value,
                )
                .values(status=status.value, completed_at=datetime.now(timezone.utc), **values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        if not result.rowcount:
            logger.warning("Execution %s was already terminal, %s not recorded", execution_id, status.value)
            return False
        return True

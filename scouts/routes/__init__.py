"""
API Routes — cron trigger and scout save path.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scouts.config import settings
from scouts.database import get_db
from scouts.errors import ScoutCronError
from scouts.models.scout import Scout, ScoutExecution
from scouts.schemas import (
    ErrorResponse,
    ExecutionEntry,
    ExecutionListResponse,
    HealthResponse,
    RunReport,
    ScoutCreate,
    ScoutResponse,
    ScoutUpdate,
)
from scouts.services.dispatcher import Trigger
from scouts.services.scout_cron import run_scout_cron

logger = logging.getLogger(__name__)

router = APIRouter()


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health():
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        cron_enabled=settings.cron_enabled,
    )


# ── Cron trigger ────────────────────────────────────────

@router.post(
    "/scout-cron",
    response_model=RunReport,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse},
               422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["cron"],
)
async def trigger_scout_cron(scout_id: Optional[str] = Query(None, alias="scoutId")):
    """Run one cycle: all due scouts, or just ``scoutId`` regardless of schedule."""
    trigger = Trigger.manual(scout_id) if scout_id else Trigger.scheduled()
    try:
        return await run_scout_cron(trigger)
    except ScoutCronError as e:
        logger.error("Scout cron failed: %s", e)
        return error_response(str(e), e.status_code)
    except Exception as e:
        logger.error("Error in scout cron: %s", e, exc_info=True)
        return error_response(str(e), 500)


# ── Scouts (save path) ──────────────────────────────────

@router.post("/scouts", response_model=ScoutResponse, status_code=201, tags=["scouts"])
async def create_scout(req: ScoutCreate, session: AsyncSession = Depends(get_db)):
    scout = Scout(
        user_id=req.user_id,
        title=req.title,
        goal=req.goal,
        description=req.description,
        location=req.location,
        search_queries=req.search_queries,
        frequency=req.frequency.value if req.frequency else None,
        schedule_time=req.schedule_time,
        schedule_day=req.schedule_day,
        is_active=req.is_active,
    )
    session.add(scout)
    await session.commit()
    await session.refresh(scout)
    return ScoutResponse.model_validate(scout)


@router.patch("/scouts/{scout_id}", response_model=ScoutResponse, tags=["scouts"])
async def update_scout(scout_id: str, req: ScoutUpdate, session: AsyncSession = Depends(get_db)):
    scout = await session.get(Scout, scout_id)
    if not scout:
        raise HTTPException(status_code=404, detail="Scout not found")

    changes = req.model_dump(exclude_unset=True)
    # is_active is NOT NULL; an explicit null leaves it unchanged
    if changes.get("is_active", True) is None:
        del changes["is_active"]
    if "frequency" in changes and changes["frequency"] is not None:
        changes["frequency"] = changes["frequency"].value
    for key, value in changes.items():
        setattr(scout, key, value)

    await session.commit()
    await session.refresh(scout)
    return ScoutResponse.model_validate(scout)


@router.get("/scouts/{scout_id}/executions", response_model=ExecutionListResponse, tags=["scouts"])
async def list_executions(
    scout_id: str,
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
):
    scout = await session.get(Scout, scout_id)
    if not scout:
        raise HTTPException(status_code=404, detail="Scout not found")

    result = await session.execute(
        select(ScoutExecution)
        .where(ScoutExecution.scout_id == scout_id)
        .order_by(ScoutExecution.started_at.desc())
        .limit(limit)
    )
    executions = result.scalars().all()
    return ExecutionListResponse(
        executions=[ExecutionEntry.model_validate(e) for e in executions],
        total=len(executions),
    )

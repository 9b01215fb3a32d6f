"""
Scout Cron — Pydantic request/response schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from scouts.models.scout import ExecutionStatus, Frequency


# ── Scouts ──────────────────────────────────────────────

class ScoutCreate(BaseModel):
    user_id: str = Field(..., alias="userId", min_length=1, max_length=36)
    title: str | None = Field(None, max_length=255)
    goal: str | None = Field(None, max_length=2000)
    description: str | None = Field(None, max_length=5000)
    location: dict | None = None
    search_queries: list[str] = Field(default_factory=list, alias="searchQueries")
    frequency: Frequency | None = None
    schedule_time: str | None = Field(None, alias="scheduleTime", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    schedule_day: int | None = Field(None, alias="scheduleDay", ge=0, le=6)
    is_active: bool = Field(True, alias="isActive")

    model_config = {"populate_by_name": True}


class ScoutUpdate(BaseModel):
    title: str | None = Field(None, max_length=255)
    goal: str | None = Field(None, max_length=2000)
    description: str | None = Field(None, max_length=5000)
    location: dict | None = None
    search_queries: list[str] | None = Field(None, alias="searchQueries")
    frequency: Frequency | None = None
    schedule_time: str | None = Field(None, alias="scheduleTime", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    schedule_day: int | None = Field(None, alias="scheduleDay", ge=0, le=6)
    is_active: bool | None = Field(None, alias="isActive")

    model_config = {"populate_by_name": True}


class ScoutResponse(BaseModel):
    id: str
    user_id: str
    title: str | None = None
    goal: str | None = None
    description: str | None = None
    location: dict | None = None
    search_queries: list[str] | None = None
    frequency: Frequency | None = None
    schedule_time: str | None = None
    schedule_day: int | None = None
    is_active: bool
    is_complete: bool = False

    model_config = {"from_attributes": True}


class ExecutionEntry(BaseModel):
    id: str
    scout_id: str
    status: ExecutionStatus
    started_at: datetime
    completed_at: datetime | None = None
    duration_secs: float | None = None
    error_message: str | None = None
    found_results: bool | None = None

    model_config = {"from_attributes": True}


class ExecutionListResponse(BaseModel):
    executions: list[ExecutionEntry]
    total: int


# ── Cron run report ─────────────────────────────────────

class ScoutRunEntry(BaseModel):
    id: str
    title: str | None = None
    status: str
    error: str | None = None


class RunReport(BaseModel):
    success: bool = True
    trigger: str  # "scheduled" | "manual"
    scout_id: str | None = None
    scouts_executed: int = 0
    succeeded: int = 0
    failed: int = 0
    stuck_executions_reconciled: int = 0
    scouts_deactivated: int = 0
    scouts: list[ScoutRunEntry] = []
    started_at: datetime | None = None
    finished_at: datetime | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


# ── Slack / Firecrawl ───────────────────────────────────

class SlackTestRequest(BaseModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    webhook_url: str | None = Field(None, alias="webhookUrl")

    model_config = {"populate_by_name": True}


class FirecrawlKeyRequest(BaseModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    email: str = Field(..., min_length=3, max_length=255)

    model_config = {"populate_by_name": True}


class FirecrawlKeyResponse(BaseModel):
    success: bool
    already_existed: bool = Field(False, serialization_alias="alreadyExisted")


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: str | None = None
    cron_enabled: bool = True

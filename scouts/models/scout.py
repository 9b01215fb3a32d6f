"""
Scout Cron — SQLAlchemy ORM models for scouts and their executions.
"""

import re
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Index, SmallInteger, String, Text
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from scouts.database import Base
from scouts.models.types import UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Frequency(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    EVERY_3_DAYS = "every_3_days"
    WEEKLY = "weekly"

    @property
    def interval(self) -> timedelta:
        return FREQUENCY_INTERVALS[self]


FREQUENCY_INTERVALS: dict[Frequency, timedelta] = {
    Frequency.HOURLY: timedelta(hours=1),
    Frequency.DAILY: timedelta(days=1),
    Frequency.EVERY_3_DAYS: timedelta(days=3),
    Frequency.WEEKLY: timedelta(days=7),
}


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_SCHEDULE_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Scout(Base):
    __tablename__ = "scouts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    search_queries: Mapped[list | None] = mapped_column(JSON, nullable=True)

    # Schedule
    frequency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    schedule_time: Mapped[str | None] = mapped_column(String(5), nullable=True)   # "HH:MM" UTC
    schedule_day: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)  # 0=Monday

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, onupdate=_utcnow)

    executions: Mapped[list["ScoutExecution"]] = relationship(
        back_populates="scout", cascade="all, delete-orphan", order_by="ScoutExecution.started_at"
    )

    @validates("frequency")
    def _validate_frequency(self, key, value):
        if value is None:
            return None
        return Frequency(value).value  # unknown codes raise ValueError at save time

    @validates("schedule_time")
    def _validate_schedule_time(self, key, value):
        if value is not None and not _SCHEDULE_TIME_RE.match(value):
            raise ValueError(f"schedule_time must be HH:MM, got {value!r}")
        return value

    @validates("schedule_day")
    def _validate_schedule_day(self, key, value):
        if value is not None and not 0 <= value <= 6:
            raise ValueError(f"schedule_day must be 0-6, got {value!r}")
        return value

    @property
    def is_complete(self) -> bool:
        """Title, goal, description, location, ≥1 query and a frequency are all set."""
        return bool(
            self.title
            and self.goal
            and self.description
            and self.location
            and self.search_queries
            and self.frequency
        )

    @property
    def city(self) -> str | None:
        if isinstance(self.location, dict):
            return self.location.get("city")
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "goal": self.goal,
            "description": self.description,
            "location": self.location,
            "search_queries": list(self.search_queries or []),
            "frequency": self.frequency,
            "schedule_time": self.schedule_time,
            "schedule_day": self.schedule_day,
            "is_active": self.is_active,
        }


class ScoutExecution(Base):
    __tablename__ = "scout_executions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    scout_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("scouts.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default=ExecutionStatus.RUNNING.value, index=True)

    started_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Result
    response: Mapped[str | None] = mapped_column(Text, nullable=True)
    found_results: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    scout: Mapped["Scout"] = relationship(back_populates="executions")

    __table_args__ = (
        Index("ix_scout_executions_scout_started", "scout_id", "started_at"),
    )

    @property
    def duration_secs(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

"""
Scout Cron — account activity and per-user preferences.

``accounts`` is owned by the authentication subsystem; the orchestrator only
reads ``last_sign_in_at`` from it.
"""

from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from scouts.database import Base
from scouts.models.types import UTCDateTime


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_sign_in_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class UserPreferences(Base):
    __tablename__ = "user_preferences"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Slack
    slack_webhook_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_test_slack_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Firecrawl key status: pending | active | fallback | failed | invalid
    firecrawl_api_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    firecrawl_key_status: Mapped[str | None] = mapped_column(String(20), default="pending")
    firecrawl_key_created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    firecrawl_key_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self):
        return f"<UserPreferences {self.user_id} firecrawl={self.firecrawl_key_status}>"

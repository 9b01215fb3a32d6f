"""
Scout Cron — Configuration via environment variables.
"""

from datetime import timedelta

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Database (empty means the service is misconfigured)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./scouts.db",
        description="Async SQLAlchemy DB URL",
    )

    # Recurring trigger
    cron_enabled: bool = Field(default=True, description="Run the in-process cron loop")
    cron_interval_secs: int = Field(default=300, description="Seconds between scheduled cycles")

    # Stuck executions: timeout must be >= executor ceiling
    stuck_execution_timeout_secs: int = Field(
        default=180, description="Age after which a 'running' execution is force-failed"
    )
    executor_max_runtime_secs: int = Field(
        default=180, description="Hard ceiling for a single scout execution"
    )

    # Dormancy
    inactivity_threshold_days: int = Field(
        default=30, description="Days without sign-in before an account's scouts are disabled"
    )

    # Scout agent (opaque executor)
    agent_url: str = Field(default="", description="Endpoint that runs one scout and returns its findings")
    agent_api_key: str = Field(default="")

    # Firecrawl partner integration
    firecrawl_api_url: str = Field(default="https://api.firecrawl.dev/v1/partner/keys")
    firecrawl_partner_key: str = Field(default="", description="Partner key used to mint per-user keys")

    # Slack
    slack_timeout_secs: int = Field(default=10)
    slack_test_cooldown_secs: int = Field(default=60)
    notification_timezone: str = Field(default="Asia/Tokyo")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_timeout_ordering(self) -> "Settings":
        if self.stuck_execution_timeout_secs < self.executor_max_runtime_secs:
            raise ValueError(
                "stuck_execution_timeout_secs must be >= executor_max_runtime_secs "
                f"({self.stuck_execution_timeout_secs} < {self.executor_max_runtime_secs})"
            )
        return self

    @property
    def cron_interval(self) -> timedelta:
        return timedelta(seconds=self.cron_interval_secs)

    @property
    def stuck_execution_timeout(self) -> timedelta:
        return timedelta(seconds=self.stuck_execution_timeout_secs)

    @property
    def executor_max_runtime(self) -> timedelta:
        return timedelta(seconds=self.executor_max_runtime_secs)

    @property
    def inactivity_threshold(self) -> timedelta:
        return timedelta(days=self.inactivity_threshold_days)


settings = Settings()

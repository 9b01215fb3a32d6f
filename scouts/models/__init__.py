from scouts.models.scout import (  # noqa: F401
    ExecutionStatus,
    Frequency,
    FREQUENCY_INTERVALS,
    Scout,
    ScoutExecution,
)
from scouts.models.account import Account, UserPreferences  # noqa: F401

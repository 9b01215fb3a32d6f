"""
Run Report Builder — folds a cycle's counters and per-scout outcomes into
the summary returned to the invoker.
"""

from datetime import datetime
from typing import Optional

from scouts.schemas import RunReport, ScoutRunEntry
from scouts.services.dispatcher import ScoutOutcome, Trigger


def build_run_report(
    trigger: Trigger,
    outcomes: list[ScoutOutcome],
    stuck_reconciled: int,
    scouts_deactivated: int,
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
) -> RunReport:
    entries = [
        ScoutRunEntry(id=o.scout_id, title=o.title, status=o.status, error=o.error)
        for o in outcomes
    ]
    succeeded = sum(1 for o in outcomes if o.ok)

    return RunReport(
        success=True,
        trigger=trigger.kind,
        scout_id=trigger.scout_id,
        scouts_executed=len(outcomes),
        succeeded=succeeded,
        failed=len(outcomes) - succeeded,
        stuck_executions_reconciled=max(0, stuck_reconciled),
        scouts_deactivated=max(0, scouts_deactivated),
        scouts=entries,
        started_at=started_at,
        finished_at=finished_at,
    )

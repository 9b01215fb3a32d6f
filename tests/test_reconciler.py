"""
Tests for the stuck-execution reconciler.
"""

from datetime import timedelta
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from scouts.models.scout import ScoutExecution
from scouts.services.reconciler import reconcile_stuck, timeout_message
from tests.conftest import NOW, make_execution, make_scout

TIMEOUT = timedelta(minutes=3)


async def _statuses(verify_db):
    async with verify_db() as db:
        rows = (await db.execute(select(ScoutExecution))).scalars().all()
        return {row.id: row for row in rows}


class TestReconcileStuck:
    async def test_marks_old_running_executions_failed(self, seed, verify_db):
        scout = make_scout()
        old_a = make_execution(scout, NOW - timedelta(minutes=10), status="running")
        old_b = make_execution(scout, NOW - timedelta(hours=2), status="running")
        await seed(scout, old_a, old_b)

        assert await reconcile_stuck(NOW, TIMEOUT) == 2

        rows = await _statuses(verify_db)
        for execution in (old_a, old_b):
            row = rows[execution.id]
            assert row.status == "failed"
            assert row.completed_at == NOW
            assert row.error_message == "Execution timed out after 3 minutes"

    async def test_leaves_young_running_execution(self, seed, verify_db):
        scout = make_scout()
        young = make_execution(scout, NOW - timedelta(minutes=1), status="running")
        await seed(scout, young)

        assert await reconcile_stuck(NOW, TIMEOUT) == 0
        rows = await _statuses(verify_db)
        assert rows[young.id].status == "running"
        assert rows[young.id].completed_at is None

    async def test_leaves_terminal_records(self, seed, verify_db):
        scout = make_scout()
        done = make_execution(scout, NOW - timedelta(hours=5), status="succeeded")
        failed = make_execution(scout, NOW - timedelta(hours=6), status="failed", error_message="agent error")
        await seed(scout, done, failed)

        assert await reconcile_stuck(NOW, TIMEOUT) == 0
        rows = await _statuses(verify_db)
        assert rows[done.id].status == "succeeded"
        assert rows[failed.id].error_message == "agent error"

    async def test_second_pass_is_noop(self, seed):
        scout = make_scout()
        await seed(scout, make_execution(scout, NOW - timedelta(minutes=30), status="running"))

        assert await reconcile_stuck(NOW, TIMEOUT) == 1
        assert await reconcile_stuck(NOW + timedelta(minutes=5), TIMEOUT) == 0

    async def test_exactly_at_cutoff_is_not_stuck(self, seed):
        scout = make_scout()
        await seed(scout, make_execution(scout, NOW - TIMEOUT, status="running"))
        assert await reconcile_stuck(NOW, TIMEOUT) == 0

    async def test_store_error_returns_zero(self):
        def _broken():
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        with patch("scouts.services.reconciler.async_session_factory", _broken):
            assert await reconcile_stuck(NOW, TIMEOUT) == 0


class TestTimeoutMessage:
    def test_minutes(self):
        assert timeout_message(timedelta(minutes=3)) == "Execution timed out after 3 minutes"

    def test_single_minute(self):
        assert timeout_message(timedelta(minutes=1)) == "Execution timed out after 1 minute"

    def test_seconds(self):
        assert timeout_message(timedelta(seconds=45)) == "Execution timed out after 45 seconds"

"""
Tests for the due-date policy.
"""

from datetime import datetime, timedelta, timezone

import pytest

from scouts.models.scout import Frequency
from scouts.services.due_policy import is_due, is_eligible, latest_slot
from tests.conftest import NOW, make_execution, make_scout

STUCK = timedelta(minutes=3)


def _due(scout, started_at=None, status="succeeded", now=NOW):
    last = make_execution(scout, started_at, status=status) if started_at else None
    return is_due(scout, last, now=now, stuck_timeout=STUCK)


class TestNoHistory:
    @pytest.mark.parametrize("frequency", [f.value for f in Frequency])
    def test_never_run_is_always_due(self, frequency):
        assert _due(make_scout(frequency=frequency)) is True

    def test_never_run_anchored_is_due(self):
        assert _due(make_scout(frequency="weekly", schedule_day=4, schedule_time="18:00")) is True


class TestIntervals:
    def test_daily_25_hours_ago_is_due(self):
        assert _due(make_scout(), NOW - timedelta(hours=25)) is True

    def test_daily_2_hours_ago_is_not_due(self):
        assert _due(make_scout(), NOW - timedelta(hours=2)) is False

    def test_daily_exactly_one_interval_is_due(self):
        assert _due(make_scout(), NOW - timedelta(days=1)) is True

    @pytest.mark.parametrize(
        "frequency,elapsed,expected",
        [
            ("hourly", timedelta(minutes=59), False),
            ("hourly", timedelta(minutes=61), True),
            ("every_3_days", timedelta(hours=71), False),
            ("every_3_days", timedelta(hours=73), True),
            ("weekly", timedelta(days=6, hours=23), False),
            ("weekly", timedelta(days=7, minutes=1), True),
        ],
    )
    def test_interval_boundaries(self, frequency, elapsed, expected):
        assert _due(make_scout(frequency=frequency), NOW - elapsed) is expected

    def test_failed_execution_still_counts_as_last_start(self):
        assert _due(make_scout(), NOW - timedelta(hours=2), status="failed") is False


class TestRunningExecution:
    def test_young_running_execution_blocks(self):
        assert _due(make_scout(frequency="hourly"), NOW - timedelta(minutes=2), status="running") is False

    def test_running_exactly_at_timeout_blocks(self):
        assert _due(make_scout(frequency="hourly"), NOW - STUCK, status="running") is False

    def test_stale_running_execution_past_interval_is_due(self):
        assert _due(make_scout(), NOW - timedelta(hours=25), status="running") is True

    def test_stale_running_execution_within_interval_is_not_due(self):
        assert _due(make_scout(), NOW - timedelta(minutes=10), status="running") is False


class TestAnchoredSchedules:
    def test_daily_slot_passed_since_last_run(self):
        scout = make_scout(schedule_time="09:00")
        assert _due(scout, datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)) is True

    def test_daily_slot_already_served(self):
        scout = make_scout(schedule_time="09:00")
        assert _due(scout, datetime(2026, 3, 11, 9, 1, tzinfo=timezone.utc)) is False

    def test_daily_before_todays_slot(self):
        scout = make_scout(schedule_time="09:00")
        now = datetime(2026, 3, 11, 8, 0, tzinfo=timezone.utc)
        assert _due(scout, datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc), now=now) is False

    def test_weekly_day_slot(self):
        scout = make_scout(frequency="weekly", schedule_day=0, schedule_time="09:00")  # Monday
        assert _due(scout, datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)) is True
        assert _due(scout, datetime(2026, 3, 9, 9, 5, tzinfo=timezone.utc)) is False

    def test_weekly_slot_is_most_recent_matching_weekday(self):
        scout = make_scout(frequency="weekly", schedule_day=2, schedule_time="13:00")  # Wed, later today
        slot, period = latest_slot(scout, NOW)
        assert slot == datetime(2026, 3, 4, 13, 0, tzinfo=timezone.utc)
        assert period == timedelta(days=7)

    def test_every_3_days_anchor_waits_for_third_slot(self):
        scout = make_scout(frequency="every_3_days", schedule_time="09:00")
        assert _due(scout, datetime(2026, 3, 8, 9, 0, tzinfo=timezone.utc)) is True
        assert _due(scout, datetime(2026, 3, 9, 9, 0, tzinfo=timezone.utc)) is False

    def test_run_just_before_slot_is_not_repeated_at_slot(self):
        scout = make_scout(schedule_time="09:00")
        now = datetime(2026, 3, 11, 9, 0, tzinfo=timezone.utc)
        assert _due(scout, datetime(2026, 3, 11, 8, 55, tzinfo=timezone.utc), now=now) is False

    @pytest.mark.parametrize("minutes_ago", [5, 60, 23 * 60])
    def test_anchored_terminal_run_within_interval_is_not_due(self, minutes_ago):
        scout = make_scout(schedule_time="09:00")
        now = datetime(2026, 3, 11, 9, 2, tzinfo=timezone.utc)
        assert _due(scout, now - timedelta(minutes=minutes_ago), now=now) is False

    def test_previous_run_late_by_less_than_a_tick_still_fires(self):
        scout = make_scout(schedule_time="09:00")
        now = datetime(2026, 3, 11, 9, 0, tzinfo=timezone.utc)
        assert _due(scout, datetime(2026, 3, 10, 9, 3, tzinfo=timezone.utc), now=now) is True

    def test_tick_controls_the_slack(self):
        scout = make_scout(schedule_time="09:00")
        now = datetime(2026, 3, 11, 9, 0, tzinfo=timezone.utc)
        last = make_execution(scout, datetime(2026, 3, 10, 9, 3, tzinfo=timezone.utc))
        assert is_due(scout, last, now=now, stuck_timeout=STUCK, tick=timedelta(minutes=1)) is False

    def test_hourly_ignores_anchor(self):
        scout = make_scout(frequency="hourly", schedule_time="09:00")
        assert latest_slot(scout, NOW) is None
        assert _due(scout, NOW - timedelta(minutes=30)) is False

    def test_unanchored_daily_has_no_slot(self):
        assert latest_slot(make_scout(), NOW) is None


class TestEligibility:
    def test_complete_active_scout(self):
        assert is_eligible(make_scout()) is True

    def test_inactive_scout(self):
        assert is_eligible(make_scout(is_active=False)) is False

    @pytest.mark.parametrize("missing", ["title", "goal", "description", "location", "frequency"])
    def test_missing_field(self, missing):
        assert is_eligible(make_scout(**{missing: None})) is False

    def test_no_search_queries(self):
        assert is_eligible(make_scout(search_queries=[])) is False


class TestFrequencyValidation:
    def test_unknown_frequency_rejected_at_save(self):
        with pytest.raises(ValueError):
            make_scout(frequency="fortnightly")

    def test_bad_schedule_time_rejected(self):
        with pytest.raises(ValueError):
            make_scout(schedule_time="25:00")

    def test_enum_maps_to_interval(self):
        assert Frequency("every_3_days").interval == timedelta(days=3)

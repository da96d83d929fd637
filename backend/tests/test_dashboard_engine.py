"""
test_dashboard_engine.py — Unit tests for DashboardAggregator.

Tests cover:
  - summary counts, completion rate and the date-driven delayed tally
  - manager vs employee scope (tasks, rows, plans, overlaps)
  - per-employee rows matching the employee's own summary
  - recent activity window and ordering
  - vacation × training overlap detection and day counting
"""

import pytest

from conftest import FIXED_NOW, days


def _aggregate(aggregator, snapshot, user_id, role):
    return aggregator.aggregate(
        snapshot.tasks, snapshot.users, snapshot.vacation_plans, snapshot.training_plans,
        caller_user_id=user_id, caller_role=role, now=FIXED_NOW,
    )


# ===========================================================================
# Class 1: Counting helpers
# ===========================================================================

class TestCounting:

    def test_empty_task_list_has_zero_rate(self):
        from app.services.dashboard_engine import count_tasks
        counts = count_tasks([], FIXED_NOW)
        assert counts.total_tasks == 0
        assert counts.completion_rate == 0.0

    def test_completion_rate_rounded_to_two_places(self, make_task):
        from app.services.dashboard_engine import count_tasks
        tasks = [make_task(status="Completed"), make_task(), make_task()]
        assert count_tasks(tasks, FIXED_NOW).completion_rate == 33.33

    def test_completion_rate_rounds_half_up(self, make_task):
        from app.services.dashboard_engine import count_tasks
        tasks = [make_task(status="Completed")] + [make_task() for _ in range(31)]
        # 1/32 = 3.125 %
        assert count_tasks(tasks, FIXED_NOW).completion_rate == 3.13

    @pytest.mark.parametrize("status,due_offset,expected", [
        ("In Progress", -1, True),
        ("Delayed", -1, True),
        ("In Progress", 1, False),
        ("Completed", -1, False),
        ("New", -1, False),
    ])
    def test_delayed_definition(self, make_task, status, due_offset, expected):
        from app.services.dashboard_engine import is_delayed
        task = make_task(status=status, due_date=FIXED_NOW + days(due_offset))
        assert is_delayed(task, FIXED_NOW) is expected

    def test_missing_due_date_never_delayed(self, make_task):
        from app.services.dashboard_engine import is_delayed
        assert is_delayed(make_task(due_date=None), FIXED_NOW) is False


# ===========================================================================
# Class 2: Scope
# ===========================================================================

class TestScope:

    def test_manager_sees_everything(self, dashboard_aggregator, sample_snapshot):
        result = _aggregate(dashboard_aggregator, sample_snapshot, "m1", "manager")
        assert result.summary.total_tasks == 4
        assert result.summary.completed_tasks == 1
        assert result.summary.in_progress_tasks == 2
        assert result.summary.new_tasks == 1
        assert result.summary.delayed_tasks == 1
        assert result.summary.completion_rate == 25.0
        assert result.tasks_by_priority.high == 2
        assert result.tasks_by_priority.medium == 1
        assert result.tasks_by_priority.low == 1
        assert [r.user_id for r in result.tasks_per_employee] == ["m1", "u1", "u2"]
        assert len(result.vacation_plans) == 1
        assert len(result.training_plans) == 2

    def test_owner_has_manager_scope(self, dashboard_aggregator, sample_snapshot):
        result = _aggregate(dashboard_aggregator, sample_snapshot, "m1", "owner")
        assert result.summary.total_tasks == 4

    def test_employee_sees_only_own_records(self, dashboard_aggregator, sample_snapshot):
        result = _aggregate(dashboard_aggregator, sample_snapshot, "u2", "employee")
        assert result.summary.total_tasks == 1
        assert [r.user_id for r in result.tasks_per_employee] == ["u2"]
        assert result.vacation_plans == []
        assert [p.id for p in result.training_plans] == ["tr2"]
        assert result.overlaps == []
        assert all(t.assigned_to_user_id == "u2" for t in result.recent_tasks)

    def test_employee_with_no_tasks(self, dashboard_aggregator, sample_snapshot):
        result = _aggregate(dashboard_aggregator, sample_snapshot, "m1", "employee")
        assert result.summary.total_tasks == 0
        assert result.summary.completion_rate == 0.0
        row = result.tasks_per_employee[0]
        assert row.user_name == "Mona Manager"
        assert row.progress_percentage == 0.0

    def test_manager_rows_match_employee_views(self, dashboard_aggregator, sample_snapshot):
        manager = _aggregate(dashboard_aggregator, sample_snapshot, "m1", "manager")
        for row in manager.tasks_per_employee:
            own = _aggregate(dashboard_aggregator, sample_snapshot, row.user_id, "employee")
            assert row.total_tasks == own.summary.total_tasks
            assert row.completed_tasks == own.summary.completed_tasks
            assert row.in_progress_tasks == own.summary.in_progress_tasks
            assert row.delayed_tasks == own.summary.delayed_tasks
            assert row.progress_percentage == own.summary.completion_rate

    def test_plan_listing_carries_names(self, dashboard_aggregator, sample_snapshot):
        result = _aggregate(dashboard_aggregator, sample_snapshot, "m1", "manager")
        vacation = result.vacation_plans[0]
        assert vacation.kind == "vacation"
        assert vacation.user_name == "Ali Employee"
        assert vacation.start_date == "2024-01-01"
        assert {p.label for p in result.training_plans} == {"Negotiation", "Support 101"}


# ===========================================================================
# Class 3: Recent activity
# ===========================================================================

class TestRecentActivity:

    def test_last_30_days_newest_first(self, dashboard_aggregator, sample_snapshot):
        result = _aggregate(dashboard_aggregator, sample_snapshot, "m1", "manager")
        # t4 was created 45 days ago
        assert [t.id for t in result.recent_tasks] == ["t3", "t2", "t1"]
        assert result.recent_tasks[0].assigned_user_name == "Ali Employee"

    def test_capped_at_ten(self, make_task):
        from app.services.dashboard_engine import DashboardAggregator
        tasks = [make_task(created_at=FIXED_NOW - days(i)) for i in range(15)]
        recent = DashboardAggregator.recent_activity(tasks, {}, FIXED_NOW)
        assert len(recent) == 10
        assert recent[0].id == "t1"
        assert recent[0].assigned_user_name == "Unknown"

    def test_equal_timestamps_ordered_by_id(self, make_task):
        from app.services.dashboard_engine import DashboardAggregator
        tasks = [make_task(id=i, created_at=FIXED_NOW - days(2)) for i in ("b", "c", "a")]
        recent = DashboardAggregator.recent_activity(tasks, {}, FIXED_NOW)
        assert [t.id for t in recent] == ["a", "b", "c"]


# ===========================================================================
# Class 4: Overlaps
# ===========================================================================

class TestOverlaps:

    def _vacation(self, start, end, user_id="u1", status="approved", id="v1"):
        from app.models.entities import LeavePlan, parse_timestamp
        return LeavePlan(id=id, user_id=user_id, type="Annual", status=status,
                         start_date=parse_timestamp(start), end_date=parse_timestamp(end))

    def _training(self, start, end, user_id="u1", status="approved", id="tr1"):
        from app.models.entities import TrainingPlan, parse_timestamp
        return TrainingPlan(id=id, user_id=user_id, course_name="Course", platform="Udemy",
                            status=status,
                            start_date=parse_timestamp(start), end_date=parse_timestamp(end))

    def test_inclusive_day_count(self):
        from app.services.dashboard_engine import DashboardAggregator
        overlaps = DashboardAggregator.detect_overlaps(
            [self._vacation("2024-01-01", "2024-01-10")],
            [self._training("2024-01-05", "2024-01-08")],
            ["u1"], {"u1": "Ali"},
        )
        assert len(overlaps) == 1
        record = overlaps[0]
        assert record.overlap_days == 4
        assert record.overlap_start.startswith("2024-01-05")
        assert record.overlap_end.startswith("2024-01-08")
        assert record.user_name == "Ali"
        assert record.vacation_start == "2024-01-01"

    def test_single_shared_day(self):
        from app.services.dashboard_engine import DashboardAggregator
        overlaps = DashboardAggregator.detect_overlaps(
            [self._vacation("2024-01-01", "2024-01-05")],
            [self._training("2024-01-05", "2024-01-09")],
            ["u1"], {},
        )
        assert overlaps[0].overlap_days == 1

    def test_disjoint_ranges(self):
        from app.services.dashboard_engine import DashboardAggregator
        overlaps = DashboardAggregator.detect_overlaps(
            [self._vacation("2024-01-01", "2024-01-04")],
            [self._training("2024-01-05", "2024-01-09")],
            ["u1"], {},
        )
        assert overlaps == []

    def test_no_cross_user_overlap(self):
        from app.services.dashboard_engine import DashboardAggregator
        overlaps = DashboardAggregator.detect_overlaps(
            [self._vacation("2024-01-01", "2024-01-10", user_id="u1")],
            [self._training("2024-01-05", "2024-01-08", user_id="u2")],
            ["u1", "u2"], {},
        )
        assert overlaps == []

    def test_unapproved_plans_skipped(self):
        from app.services.dashboard_engine import DashboardAggregator
        overlaps = DashboardAggregator.detect_overlaps(
            [self._vacation("2024-01-01", "2024-01-10", status="pending")],
            [self._training("2024-01-05", "2024-01-08")],
            ["u1"], {},
        )
        assert overlaps == []

    def test_plans_missing_dates_skipped(self):
        from app.services.dashboard_engine import DashboardAggregator
        overlaps = DashboardAggregator.detect_overlaps(
            [self._vacation("2024-01-01", None)],
            [self._training("2024-01-05", "2024-01-08")],
            ["u1"], {},
        )
        assert overlaps == []

    def test_manager_overlaps_in_aggregate(self, dashboard_aggregator, sample_snapshot):
        result = _aggregate(dashboard_aggregator, sample_snapshot, "m1", "manager")
        # u2 has a training in the same window but no vacation
        assert [(o.user_id, o.overlap_days) for o in result.overlaps] == [("u1", 4)]

    def test_employee_sees_own_overlap(self, dashboard_aggregator, sample_snapshot):
        result = _aggregate(dashboard_aggregator, sample_snapshot, "u1", "employee")
        assert len(result.overlaps) == 1
        assert result.overlaps[0].training_name == "Negotiation"

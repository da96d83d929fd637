"""
dashboard_engine.py — Role-scoped task dashboard aggregation.

Covers:
  - Summary counts with date-driven "delayed" tally and completion rate
  - Priority breakdown
  - Per-employee rows (identical math to the employee's own view)
  - Recent activity timeline (last 30 days, 10 most recent)
  - Vacation / training plan listings
  - Vacation × training overlap detection, per user
"""

import math
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from app.config import MANAGER_ROLES, RECENT_ACTIVITY_DAYS, RECENT_ACTIVITY_LIMIT
from app.models.analytics_schema import (
    DashboardSummary,
    EmployeeTaskRow,
    OverlapRecord,
    PlanEntry,
    PriorityBreakdown,
    RecentTask,
    TaskCounts,
)
from app.models.entities import (
    PLAN_APPROVED,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    SECONDS_PER_DAY,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_NEW,
    LeavePlan,
    Task,
    TrainingPlan,
    User,
    ensure_utc,
    iso_date,
)
from app.services.perf_monitor import timed
from app.services.risk_engine import round_half_up_to

logger = logging.getLogger("goalpulse-dashboard")

UNKNOWN_USER = "Unknown"


def is_delayed(task: Task, now: datetime) -> bool:
    """Past due and neither finished nor started; ignores the status enum's own "Delayed"."""
    if task.status in (STATUS_COMPLETED, STATUS_NEW):
        return False
    return task.is_past_due(now)


def count_tasks(tasks: List[Task], now: datetime) -> TaskCounts:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == STATUS_COMPLETED)
    rate = round_half_up_to(100.0 * completed / total) if total > 0 else 0.0
    return TaskCounts(
        total_tasks=total,
        completed_tasks=completed,
        in_progress_tasks=sum(1 for t in tasks if t.status == STATUS_IN_PROGRESS),
        delayed_tasks=sum(1 for t in tasks if is_delayed(t, now)),
        new_tasks=sum(1 for t in tasks if t.status == STATUS_NEW),
        completion_rate=rate,
    )


class DashboardAggregator:
    """Builds the caller's dashboard from an in-memory snapshot. Stateless."""

    @timed("dashboard")
    def aggregate(
        self,
        tasks: List[Task],
        users: List[User],
        vacation_plans: List[LeavePlan],
        training_plans: List[TrainingPlan],
        caller_user_id: str,
        caller_role: str,
        now: Optional[datetime] = None,
    ) -> DashboardSummary:
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        is_manager = caller_role in MANAGER_ROLES
        names: Dict[str, str] = {u.id: u.name for u in users}

        if is_manager:
            scoped_tasks = list(tasks)
            scoped_users = list(users)
            scoped_vacations = list(vacation_plans)
            scoped_trainings = list(training_plans)
        else:
            scoped_tasks = [t for t in tasks if t.assigned_to_user_id == caller_user_id]
            scoped_users = [u for u in users if u.id == caller_user_id]
            scoped_vacations = [p for p in vacation_plans if p.user_id == caller_user_id]
            scoped_trainings = [p for p in training_plans if p.user_id == caller_user_id]

        counts = count_tasks(scoped_tasks, now)

        if is_manager:
            rows = [self._employee_row(u.id, u.name, scoped_tasks, now) for u in scoped_users]
        else:
            rows = [
                self._employee_row(
                    caller_user_id, names.get(caller_user_id, UNKNOWN_USER), scoped_tasks, now
                )
            ]

        if is_manager:
            overlap_user_ids = sorted(
                {p.user_id for p in scoped_vacations if p.status == PLAN_APPROVED}
                | {p.user_id for p in scoped_trainings if p.status == PLAN_APPROVED}
            )
        else:
            overlap_user_ids = [caller_user_id]

        overlaps = self.detect_overlaps(
            scoped_vacations, scoped_trainings, overlap_user_ids, names
        )
        if overlaps:
            logger.info(f"Dashboard: {len(overlaps)} vacation/training overlap(s) detected")

        return DashboardSummary(
            summary=counts,
            tasks_by_priority=PriorityBreakdown(
                high=sum(1 for t in scoped_tasks if t.priority == PRIORITY_HIGH),
                medium=sum(1 for t in scoped_tasks if t.priority == PRIORITY_MEDIUM),
                low=sum(1 for t in scoped_tasks if t.priority == PRIORITY_LOW),
            ),
            tasks_per_employee=rows,
            recent_tasks=self.recent_activity(scoped_tasks, names, now),
            vacation_plans=[self._vacation_entry(p, names) for p in scoped_vacations],
            training_plans=[self._training_entry(p, names) for p in scoped_trainings],
            overlaps=overlaps,
        )

    # ─── Per-employee ─────────────────────────────────────────────────────

    @staticmethod
    def _employee_row(user_id: str, user_name: str, tasks: List[Task], now: datetime) -> EmployeeTaskRow:
        counts = count_tasks([t for t in tasks if t.assigned_to_user_id == user_id], now)
        return EmployeeTaskRow(
            user_id=user_id,
            user_name=user_name,
            total_tasks=counts.total_tasks,
            completed_tasks=counts.completed_tasks,
            in_progress_tasks=counts.in_progress_tasks,
            delayed_tasks=counts.delayed_tasks,
            progress_percentage=counts.completion_rate,
        )

    # ─── Recent activity ──────────────────────────────────────────────────

    @staticmethod
    def recent_activity(tasks: List[Task], names: Dict[str, str], now: datetime) -> List[RecentTask]:
        cutoff = now - timedelta(days=RECENT_ACTIVITY_DAYS)
        recent = [t for t in tasks if t.created_at is not None and t.created_at >= cutoff]
        # Newest first; id breaks ties so repeated calls agree
        recent.sort(key=lambda t: t.id)
        recent.sort(key=lambda t: t.created_at, reverse=True)
        return [
            RecentTask(
                id=t.id,
                title=t.title,
                status=t.status,
                priority=t.priority,
                assigned_to_user_id=t.assigned_to_user_id,
                assigned_user_name=names.get(t.assigned_to_user_id, UNKNOWN_USER),
                goal_id=t.goal_id,
                due_date=iso_date(t.due_date),
                created_at=t.created_at.isoformat(),
            )
            for t in recent[:RECENT_ACTIVITY_LIMIT]
        ]

    # ─── Overlaps ─────────────────────────────────────────────────────────

    @staticmethod
    def detect_overlaps(
        vacation_plans: List[LeavePlan],
        training_plans: List[TrainingPlan],
        user_ids: List[str],
        names: Dict[str, str],
    ) -> List[OverlapRecord]:
        """
        Compare each user's approved vacations against that same user's
        approved trainings. Plans without both dates are skipped.
        """
        overlaps: List[OverlapRecord] = []
        for uid in user_ids:
            vacations = [
                v for v in vacation_plans
                if v.user_id == uid and v.status == PLAN_APPROVED
                and v.start_date is not None and v.end_date is not None
            ]
            trainings = [
                t for t in training_plans
                if t.user_id == uid and t.status == PLAN_APPROVED
                and t.start_date is not None and t.end_date is not None
            ]
            for vacation in vacations:
                for training in trainings:
                    overlap_start = max(vacation.start_date, training.start_date)
                    overlap_end = min(vacation.end_date, training.end_date)
                    if overlap_start > overlap_end:
                        continue
                    span_days = (overlap_end - overlap_start).total_seconds() / SECONDS_PER_DAY
                    overlaps.append(OverlapRecord(
                        user_id=uid,
                        user_name=names.get(uid, UNKNOWN_USER),
                        vacation_id=vacation.id,
                        vacation_type=vacation.type,
                        vacation_start=iso_date(vacation.start_date),
                        vacation_end=iso_date(vacation.end_date),
                        training_id=training.id,
                        training_name=training.course_name,
                        training_platform=training.platform,
                        overlap_start=overlap_start.isoformat(),
                        overlap_end=overlap_end.isoformat(),
                        overlap_days=math.ceil(span_days) + 1,
                    ))
        return overlaps

    # ─── Plan listings ────────────────────────────────────────────────────

    @staticmethod
    def _vacation_entry(plan: LeavePlan, names: Dict[str, str]) -> PlanEntry:
        return PlanEntry(
            id=plan.id,
            user_id=plan.user_id,
            user_name=names.get(plan.user_id, UNKNOWN_USER),
            kind="vacation",
            label=plan.type,
            status=plan.status,
            start_date=iso_date(plan.start_date),
            end_date=iso_date(plan.end_date),
        )

    @staticmethod
    def _training_entry(plan: TrainingPlan, names: Dict[str, str]) -> PlanEntry:
        return PlanEntry(
            id=plan.id,
            user_id=plan.user_id,
            user_name=names.get(plan.user_id, UNKNOWN_USER),
            kind="training",
            label=plan.course_name,
            status=plan.status,
            start_date=iso_date(plan.start_date),
            end_date=iso_date(plan.end_date),
        )

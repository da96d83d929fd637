"""
workload_engine.py — Per-user workload analysis.

Workload score is assigned tasks as a percentage of MAX_RECOMMENDED_TASKS.
The reported score is clamped to 0–100; the status is derived from the
unclamped percentage so a user past capacity reads "overloaded" rather than
"optimal at 100".
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.config import (
    MAX_RECOMMENDED_TASKS,
    WORKLOAD_OVERLOADED_ABOVE,
    WORKLOAD_UNDERLOADED_BELOW,
)
from app.models.analytics_schema import GoalRiskAnalysis, UserWorkloadAnalysis
from app.models.entities import STATUS_COMPLETED, Goal, Task, User, ensure_utc
from app.services.dashboard_engine import is_delayed
from app.services.perf_monitor import timed
from app.services.risk_engine import clamp, round_half_up, safe_ratio

logger = logging.getLogger("goalpulse-workload")


def workload_status_for(workload_pct: float) -> str:
    if workload_pct < WORKLOAD_UNDERLOADED_BELOW:
        return "underloaded"
    if workload_pct > WORKLOAD_OVERLOADED_ABOVE:
        return "overloaded"
    return "optimal"


class WorkloadAnalyzer:
    """Stateless workload classifier."""

    def __init__(self, max_recommended_tasks: int = MAX_RECOMMENDED_TASKS):
        self.max_recommended_tasks = max_recommended_tasks

    def workload_pct(self, assigned: int) -> float:
        """Unclamped percentage of capacity."""
        return 100.0 * safe_ratio(assigned, self.max_recommended_tasks)

    def analyze_user(
        self,
        user: User,
        tasks: List[Task],
        risk_analyses: List[GoalRiskAnalysis],
        goals: Optional[List[Goal]] = None,
        now: Optional[datetime] = None,
    ) -> UserWorkloadAnalysis:
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        user_tasks = [t for t in tasks if t.assigned_to_user_id == user.id]
        total = len(user_tasks)
        pct = self.workload_pct(total)

        if goals is not None:
            owned = {g.id for g in goals if g.owner_user_id == user.id}
            at_risk = sum(1 for a in risk_analyses if a.goal_id in owned and a.risk_level == "HIGH")
        else:
            at_risk = sum(
                1 for a in risk_analyses
                if a.owner_user_id == user.id and a.risk_level == "HIGH"
            )

        return UserWorkloadAnalysis(
            user_id=user.id,
            user_name=user.name,
            total_assigned_tasks=total,
            completed_tasks=sum(1 for t in user_tasks if t.status == STATUS_COMPLETED),
            overdue_tasks=sum(1 for t in user_tasks if is_delayed(t, now)),
            workload_score=int(clamp(round_half_up(pct), 0, 100)),
            workload_status=workload_status_for(pct),
            goals_at_risk=at_risk,
        )

    @timed("workload")
    def analyze_users(
        self,
        users: List[User],
        tasks: List[Task],
        risk_analyses: List[GoalRiskAnalysis],
        goals: Optional[List[Goal]] = None,
        now: Optional[datetime] = None,
    ) -> List[UserWorkloadAnalysis]:
        """All users, busiest first (unclamped load, then user id)."""
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        rows = [self.analyze_user(u, tasks, risk_analyses, goals, now) for u in users]
        rows.sort(key=lambda r: (-r.total_assigned_tasks, r.user_id))
        overloaded = sum(1 for r in rows if r.workload_status == "overloaded")
        logger.info(f"Workload analysis: {len(rows)} users, {overloaded} overloaded")
        return rows

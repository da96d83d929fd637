"""Goal risk scoring engine — risk score, level and completion prediction per goal."""
import math
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from app.config import (
    CRITICAL_TIME_PRESSURE,
    HIGH_OVERDUE_RATIO,
    LOW_PROGRESS_RATIO,
    MAX_RECOMMENDED_TASKS,
    MIDPOINT_TIME_PRESSURE,
    ON_TRACK_EPSILON,
    PENDING_WORK_RATIO,
    RISK_HIGH_THRESHOLD,
    RISK_MEDIUM_THRESHOLD,
    RISK_WEIGHTS,
)
from app.models.analytics_schema import (
    GoalPredictionDetail,
    GoalRiskAnalysis,
    GoalTimeline,
    RiskFactors,
    TasksAnalysis,
)
from app.models.entities import (
    STATUS_COMPLETED,
    STATUS_DELAYED,
    STATUS_IN_PROGRESS,
    Goal,
    Task,
    days_between,
    ensure_utc,
    iso_date,
)
from app.services.perf_monitor import timed

logger = logging.getLogger("goalpulse-risk")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_half_up_to(value: float, places: int = 2) -> float:
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def safe_ratio(numerator: float, denominator: float) -> float:
    """Ratio with a zero denominator mapped to 0."""
    if not denominator:
        return 0.0
    return numerator / denominator


def risk_level_for_score(score: float) -> str:
    if score >= RISK_HIGH_THRESHOLD:
        return "HIGH"
    if score >= RISK_MEDIUM_THRESHOLD:
        return "MEDIUM"
    return "LOW"


def calculate_risk_score(factors: RiskFactors) -> int:
    """
    Weighted 0–100 score:

        100 × (0.4 × overdue + 0.3 × time_pressure
               + 0.2 × max(0, workload − 1) + 0.1 × (1 − progress))

    Workload only contributes once the owner is past capacity.
    """
    workload_excess = max(0.0, factors.workload_ratio - 1.0)
    raw = 100.0 * (
        RISK_WEIGHTS["overdue"] * factors.overdue_tasks_ratio
        + RISK_WEIGHTS["time_pressure"] * factors.time_pressure_ratio
        + RISK_WEIGHTS["workload_excess"] * workload_excess
        + RISK_WEIGHTS["incomplete"] * (1.0 - factors.progress_ratio)
    )
    return int(clamp(round_half_up(raw), 0, 100))


class GoalRiskEngine:
    """
    Read-only risk analysis over an in-memory snapshot.

    Stateless apart from its capacity constant; safe to share between
    concurrent requests.
    """

    def __init__(self, max_recommended_tasks: int = MAX_RECOMMENDED_TASKS):
        self.max_recommended_tasks = max_recommended_tasks

    @timed("goal_risk")
    def analyze_goals(
        self,
        goals: List[Goal],
        tasks: List[Task],
        now: Optional[datetime] = None,
    ) -> List[GoalRiskAnalysis]:
        """Analyze every goal; sorted by risk score desc, ties by goal id."""
        now = ensure_utc(now) if now else datetime.now(timezone.utc)

        known_ids = {g.id for g in goals}
        orphans = [t.id for t in tasks if t.goal_id and t.goal_id not in known_ids]
        if orphans:
            logger.warning(
                f"{len(orphans)} task(s) reference unknown goals and are excluded: "
                f"{', '.join(sorted(orphans)[:10])}"
            )

        analyses = [self.analyze_goal(g, tasks, goals, now) for g in goals]
        analyses.sort(key=lambda a: (-a.risk_score, a.goal_id))
        high = sum(1 for a in analyses if a.risk_level == "HIGH")
        logger.info(f"Goal risk analysis: {len(analyses)} goals, {high} high risk")
        return analyses

    def analyze_goal(
        self,
        goal: Goal,
        tasks: List[Task],
        goals: Optional[List[Goal]] = None,
        now: Optional[datetime] = None,
    ) -> GoalRiskAnalysis:
        """
        Score a single goal against its linked tasks.

        ``goals`` is the full goal list, used to pull in tasks of child goals
        (an annual goal covers the tasks of its MBO children). ``tasks`` is
        the full task list; the owner's workload is measured across it.
        """
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        linked_goal_ids = self._goal_and_descendants(goal, goals or [goal])
        linked = [t for t in tasks if t.goal_id in linked_goal_ids]

        counts = TasksAnalysis(
            total=len(linked),
            completed=sum(1 for t in linked if t.status == STATUS_COMPLETED),
            in_progress=sum(1 for t in linked if t.status == STATUS_IN_PROGRESS),
            delayed=sum(1 for t in linked if t.status == STATUS_DELAYED),
            overdue=sum(
                1 for t in linked if t.status != STATUS_COMPLETED and t.is_past_due(now)
            ),
        )

        start, end = self._resolve_window(goal, linked)
        timeline = self._timeline(start, end, now)

        owner_tasks = sum(1 for t in tasks if t.assigned_to_user_id == goal.owner_user_id)
        factors = RiskFactors(
            progress_ratio=safe_ratio(counts.completed, counts.total),
            overdue_tasks_ratio=safe_ratio(counts.overdue, counts.total),
            time_pressure_ratio=self._time_pressure(start, end, now),
            workload_ratio=safe_ratio(owner_tasks, self.max_recommended_tasks),
        )

        if counts.total == 0:
            # Nothing to miss yet: low risk by policy
            risk_score = 0
            prediction = GoalPredictionDetail(
                completion_probability=100,
                expected_completion_date=None,
                is_on_track=True,
            )
        else:
            risk_score = calculate_risk_score(factors)
            prediction = GoalPredictionDetail(
                completion_probability=int(clamp(100 - risk_score, 0, 100)),
                expected_completion_date=self._expected_completion(
                    start, now, factors.progress_ratio
                ),
                is_on_track=(
                    factors.time_pressure_ratio <= factors.progress_ratio + ON_TRACK_EPSILON
                    and counts.overdue == 0
                ),
            )
        risk_level = risk_level_for_score(risk_score)

        return GoalRiskAnalysis(
            goal_id=goal.id,
            goal_title=goal.title,
            goal_type=goal.goal_type,
            owner_user_id=goal.owner_user_id,
            risk_score=risk_score,
            risk_level=risk_level,
            prediction=prediction,
            factors=RiskFactors(
                progress_ratio=round(factors.progress_ratio, 4),
                overdue_tasks_ratio=round(factors.overdue_tasks_ratio, 4),
                time_pressure_ratio=round(factors.time_pressure_ratio, 4),
                workload_ratio=round(factors.workload_ratio, 4),
            ),
            reasons=self._reasons(factors, counts, timeline.days_remaining),
            recommendations=self._recommendations(risk_level, factors, counts, prediction),
            tasks_analysis=counts,
            timeline=timeline,
        )

    # ─── Linkage ──────────────────────────────────────────────────────────

    @staticmethod
    def _goal_and_descendants(goal: Goal, goals: Iterable[Goal]) -> set:
        children = defaultdict(list)
        for g in goals:
            if g.parent_goal_id:
                children[g.parent_goal_id].append(g.id)

        found = {goal.id}
        stack = [goal.id]
        while stack:
            for child_id in children.get(stack.pop(), []):
                if child_id not in found:
                    found.add(child_id)
                    stack.append(child_id)
        return found

    # ─── Timeline ─────────────────────────────────────────────────────────

    @staticmethod
    def _resolve_window(goal: Goal, linked: List[Task]):
        """Goal's own dates first; missing ends fall back to linked task dates."""
        start = goal.start_date
        end = goal.end_date
        if start is None:
            starts = [t.start_date for t in linked if t.start_date is not None]
            start = min(starts) if starts else None
        if end is None:
            dues = [t.due_date for t in linked if t.due_date is not None]
            end = max(dues) if dues else None
        return start, end

    @staticmethod
    def _time_pressure(start: Optional[datetime], end: Optional[datetime], now: datetime) -> float:
        if start is None or end is None:
            return 0.0
        span = (end - start).total_seconds()
        if span <= 0:
            return 0.0
        return clamp((now - start).total_seconds() / span, 0.0, 1.0)

    @staticmethod
    def _timeline(start: Optional[datetime], end: Optional[datetime], now: datetime) -> GoalTimeline:
        timeline = GoalTimeline(start_date=iso_date(start), end_date=iso_date(end))
        if start is not None:
            timeline.days_passed = max(0, days_between(start, now))
        if end is not None:
            timeline.days_remaining = max(0, days_between(now, end))
        if start is not None and end is not None:
            timeline.total_days = max(0, days_between(start, end))
        return timeline

    @staticmethod
    def _expected_completion(
        start: Optional[datetime], now: datetime, progress_ratio: float
    ) -> Optional[str]:
        if start is None or progress_ratio <= 0:
            return None
        elapsed = (now - start).total_seconds()
        if elapsed <= 0:
            return None
        return iso_date(start + timedelta(seconds=elapsed / progress_ratio))

    # ─── Narrative ────────────────────────────────────────────────────────

    @staticmethod
    def _reasons(factors: RiskFactors, counts: TasksAnalysis, days_remaining: int) -> List[str]:
        if counts.total == 0:
            return ["No tasks assigned to this goal"]

        reasons = []
        if counts.overdue > 0:
            reasons.append(f"{counts.overdue} task(s) overdue")
        if (
            factors.time_pressure_ratio > MIDPOINT_TIME_PRESSURE
            and factors.progress_ratio < LOW_PROGRESS_RATIO
        ):
            reasons.append("Goal is past its midpoint with low completion")
        if factors.time_pressure_ratio > CRITICAL_TIME_PRESSURE:
            reasons.append(f"Critical: only {days_remaining} day(s) remaining")
        if factors.workload_ratio > 1.0:
            reasons.append("Assignee workload exceeds recommended capacity")
        if counts.delayed > 0:
            reasons.append(f"{counts.delayed} task(s) marked as delayed")
        if counts.completed == 0:
            reasons.append("No tasks have been completed yet")
        return reasons

    @staticmethod
    def _recommendations(
        risk_level: str,
        factors: RiskFactors,
        counts: TasksAnalysis,
        prediction: GoalPredictionDetail,
    ) -> List[str]:
        if counts.total == 0:
            return ["Break the goal down into tasks"]

        recommendations = []
        if risk_level == "HIGH":
            recommendations.append("Immediate attention required")
            if factors.overdue_tasks_ratio > HIGH_OVERDUE_RATIO:
                recommendations.append("Prioritize completing overdue tasks")
            if factors.workload_ratio > 1.0:
                recommendations.append("Consider redistributing tasks to other team members")
            recommendations.append("Schedule a progress review meeting")
        elif risk_level == "MEDIUM":
            recommendations.append("Monitor progress closely")
            if counts.in_progress < counts.total * PENDING_WORK_RATIO:
                recommendations.append("Start working on pending tasks")
        else:
            recommendations.append("Continue current pace")
            if prediction.is_on_track:
                recommendations.append("Goal is on track for completion")
        return recommendations

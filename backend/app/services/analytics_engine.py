"""Analytics dashboard builder — summary, distribution, deadlines and velocity over goal risk output."""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from app.config import (
    TOP_RISKS_LIMIT,
    UPCOMING_DEADLINE_DAYS,
    UPCOMING_DEADLINE_LIMIT,
    VELOCITY_DECREASE_FACTOR,
    VELOCITY_INCREASE_FACTOR,
    VELOCITY_WINDOW_DAYS,
)
from app.models.analytics_schema import (
    AnalyticsDashboard,
    AnalyticsOverview,
    AnalyticsSummary,
    GoalPrediction,
    GoalRiskAnalysis,
    HighRiskGoals,
    RiskDistribution,
    UpcomingDeadline,
    VelocityMetrics,
)
from app.models.entities import (
    STATUS_COMPLETED,
    EntitySnapshot,
    Task,
    days_between,
    ensure_utc,
    parse_timestamp,
)
from app.services.perf_monitor import timed
from app.services.risk_engine import risk_level_for_score, round_half_up, round_half_up_to

logger = logging.getLogger("goalpulse-analytics")


def sort_by_risk(analyses: List[GoalRiskAnalysis]) -> List[GoalRiskAnalysis]:
    """Risk score desc, goal id asc."""
    return sorted(analyses, key=lambda a: (-a.risk_score, a.goal_id))


class AnalyticsEngine:
    """Aggregates per-goal analyses into the analytics dashboard views."""

    @timed("analytics_dashboard")
    def build_dashboard(
        self,
        analyses: List[GoalRiskAnalysis],
        tasks: List[Task],
        now: Optional[datetime] = None,
    ) -> AnalyticsDashboard:
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        ranked = sort_by_risk(analyses)

        total = len(ranked)
        average = round_half_up(sum(a.risk_score for a in ranked) / total) if total else 0
        distribution = RiskDistribution(
            low=sum(1 for a in ranked if a.risk_level == "LOW"),
            medium=sum(1 for a in ranked if a.risk_level == "MEDIUM"),
            high=sum(1 for a in ranked if a.risk_level == "HIGH"),
        )

        return AnalyticsDashboard(
            summary=AnalyticsSummary(
                total_goals=total,
                goals_at_risk=distribution.high,
                average_risk_score=average,
                overall_health_status=risk_level_for_score(average),
            ),
            risk_distribution=distribution,
            top_risks=ranked[:TOP_RISKS_LIMIT],
            upcoming_deadlines=self.upcoming_deadlines(ranked, now),
            velocity_metrics=self.velocity(tasks, now),
        )

    @staticmethod
    def upcoming_deadlines(analyses: List[GoalRiskAnalysis], now: datetime) -> List[UpcomingDeadline]:
        """Goals whose end date falls today or within the next 14 days, soonest first."""
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        horizon = now + timedelta(days=UPCOMING_DEADLINE_DAYS)
        deadlines = []
        for a in analyses:
            due = parse_timestamp(a.timeline.end_date)
            if due is None or not (today <= due <= horizon):
                continue
            deadlines.append(UpcomingDeadline(
                goal_id=a.goal_id,
                goal_title=a.goal_title,
                due_date=a.timeline.end_date,
                days_remaining=a.timeline.days_remaining,
                risk_level=a.risk_level,
            ))
        deadlines.sort(key=lambda d: (d.days_remaining, d.goal_id))
        return deadlines[:UPCOMING_DEADLINE_LIMIT]

    @staticmethod
    def velocity(tasks: List[Task], now: datetime) -> VelocityMetrics:
        one_week_ago = now - timedelta(days=VELOCITY_WINDOW_DAYS)
        two_weeks_ago = now - timedelta(days=2 * VELOCITY_WINDOW_DAYS)
        completed = [t for t in tasks if t.status == STATUS_COMPLETED]

        this_week = sum(
            1 for t in completed if t.updated_at is not None and t.updated_at >= one_week_ago
        )
        last_week = sum(
            1 for t in completed
            if t.updated_at is not None and two_weeks_ago <= t.updated_at < one_week_ago
        )

        trend = "stable"
        if this_week > last_week * VELOCITY_INCREASE_FACTOR:
            trend = "increasing"
        elif this_week < last_week * VELOCITY_DECREASE_FACTOR:
            trend = "decreasing"

        spans = [
            days_between(t.start_date, t.updated_at)
            for t in completed
            if t.start_date is not None and t.updated_at is not None
        ]
        spans = [d for d in spans if d > 0]
        average = round_half_up(sum(spans) / len(spans)) if spans else 0

        return VelocityMetrics(
            tasks_completed_this_week=this_week,
            tasks_completed_last_week=last_week,
            velocity_trend=trend,
            average_task_completion_time=average,
        )

    @staticmethod
    def high_risk(analyses: List[GoalRiskAnalysis]) -> HighRiskGoals:
        goals = [a for a in sort_by_risk(analyses) if a.risk_level == "HIGH"]
        return HighRiskGoals(count=len(goals), goals=goals)

    @staticmethod
    def predictions(analyses: List[GoalRiskAnalysis]) -> List[GoalPrediction]:
        return [
            GoalPrediction(
                goal_id=a.goal_id,
                goal_title=a.goal_title,
                goal_type=a.goal_type,
                completion_probability=a.prediction.completion_probability,
                expected_completion_date=a.prediction.expected_completion_date,
                is_on_track=a.prediction.is_on_track,
                current_progress=round_half_up(a.factors.progress_ratio * 100),
                days_remaining=a.timeline.days_remaining,
            )
            for a in sort_by_risk(analyses)
        ]

    @staticmethod
    def overview(snapshot: EntitySnapshot) -> AnalyticsOverview:
        kpis = snapshot.kpis
        average_kpi = (
            round_half_up_to(sum(k.achievement_pct for k in kpis) / len(kpis)) if kpis else 0.0
        )
        return AnalyticsOverview(
            total_users=len(snapshot.users),
            total_tasks=len(snapshot.tasks),
            completed_tasks=sum(1 for t in snapshot.tasks if t.status == STATUS_COMPLETED),
            total_goals=len(snapshot.goals),
            total_kpis=len(kpis),
            average_kpi_achievement=average_kpi,
        )

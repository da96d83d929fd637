"""
Analytics payload models.

Every report returned by /api/analytics/* and /api/dashboard serializes one
of these models so the frontend can render without branching on shape.
Dates are ISO strings (YYYY-MM-DD for calendar dates, full timestamps for
overlap bounds).
"""
from typing import Literal, Optional
from pydantic import BaseModel

RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]
WorkloadStatus = Literal["underloaded", "optimal", "overloaded"]
VelocityTrend = Literal["increasing", "stable", "decreasing"]


# ── Goal risk ─────────────────────────────────────────────────────────────────

class RiskFactors(BaseModel):
    progress_ratio: float = 0.0
    overdue_tasks_ratio: float = 0.0
    time_pressure_ratio: float = 0.0
    workload_ratio: float = 0.0


class GoalPredictionDetail(BaseModel):
    completion_probability: int = 100            # 0–100
    expected_completion_date: Optional[str] = None
    is_on_track: bool = True


class TasksAnalysis(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    delayed: int = 0   # explicit "Delayed" status
    overdue: int = 0   # past due and not completed


class GoalTimeline(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    days_remaining: int = 0
    days_passed: int = 0
    total_days: int = 0


class GoalRiskAnalysis(BaseModel):
    goal_id: str
    goal_title: str
    goal_type: str
    owner_user_id: str
    risk_score: int                # 0–100
    risk_level: RiskLevel
    prediction: GoalPredictionDetail
    factors: RiskFactors
    reasons: list[str] = []
    recommendations: list[str] = []
    tasks_analysis: TasksAnalysis
    timeline: GoalTimeline


# ── Analytics dashboard ───────────────────────────────────────────────────────

class AnalyticsSummary(BaseModel):
    total_goals: int = 0
    goals_at_risk: int = 0
    average_risk_score: int = 0
    overall_health_status: RiskLevel = "LOW"


class RiskDistribution(BaseModel):
    low: int = 0
    medium: int = 0
    high: int = 0


class UpcomingDeadline(BaseModel):
    goal_id: str
    goal_title: str
    due_date: str
    days_remaining: int
    risk_level: RiskLevel


class VelocityMetrics(BaseModel):
    tasks_completed_this_week: int = 0
    tasks_completed_last_week: int = 0
    velocity_trend: VelocityTrend = "stable"
    average_task_completion_time: int = 0   # days


class AnalyticsDashboard(BaseModel):
    summary: AnalyticsSummary
    risk_distribution: RiskDistribution
    top_risks: list[GoalRiskAnalysis] = []
    upcoming_deadlines: list[UpcomingDeadline] = []
    velocity_metrics: VelocityMetrics


class HighRiskGoals(BaseModel):
    count: int = 0
    goals: list[GoalRiskAnalysis] = []


class GoalPrediction(BaseModel):
    goal_id: str
    goal_title: str
    goal_type: str
    completion_probability: int
    expected_completion_date: Optional[str] = None
    is_on_track: bool
    current_progress: int      # percent
    days_remaining: int


class AnalyticsOverview(BaseModel):
    total_users: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    total_goals: int = 0
    total_kpis: int = 0
    average_kpi_achievement: float = 0.0


# ── Workload ──────────────────────────────────────────────────────────────────

class UserWorkloadAnalysis(BaseModel):
    user_id: str
    user_name: str
    total_assigned_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    workload_score: int = 0        # clamped 0–100 for display
    workload_status: WorkloadStatus = "underloaded"
    goals_at_risk: int = 0


# ── Role-scoped task dashboard ────────────────────────────────────────────────

class TaskCounts(BaseModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    delayed_tasks: int = 0
    new_tasks: int = 0
    completion_rate: float = 0.0


class PriorityBreakdown(BaseModel):
    high: int = 0
    medium: int = 0
    low: int = 0


class EmployeeTaskRow(BaseModel):
    user_id: str
    user_name: str
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    delayed_tasks: int = 0
    progress_percentage: float = 0.0


class RecentTask(BaseModel):
    id: str
    title: str
    status: str
    priority: str
    assigned_to_user_id: str
    assigned_user_name: str
    goal_id: Optional[str] = None
    due_date: Optional[str] = None
    created_at: Optional[str] = None


class PlanEntry(BaseModel):
    id: str
    user_id: str
    user_name: str
    kind: Literal["vacation", "training"]
    label: str                     # leave type or course name
    status: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class OverlapRecord(BaseModel):
    user_id: str
    user_name: str
    vacation_id: str
    vacation_type: str
    vacation_start: str
    vacation_end: str
    training_id: str
    training_name: str
    training_platform: str = ""
    overlap_start: str
    overlap_end: str
    overlap_days: int


class DashboardSummary(BaseModel):
    summary: TaskCounts
    tasks_by_priority: PriorityBreakdown
    tasks_per_employee: list[EmployeeTaskRow] = []
    recent_tasks: list[RecentTask] = []
    vacation_plans: list[PlanEntry] = []
    training_plans: list[PlanEntry] = []
    overlaps: list[OverlapRecord] = []


class AnalyticsStatus(BaseModel):
    enabled: bool
    version: str
    features: list[str]

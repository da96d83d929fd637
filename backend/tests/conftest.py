"""
conftest.py — Shared pytest fixtures for the GoalPulse backend test suite.

Engine tests are pure unit tests over in-memory entities with a fixed
``now``; route tests drive the FastAPI app through TestClient with an
in-memory entity store wired onto ``app.state``.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
from datetime import datetime, timedelta, timezone

import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# Fixed clock for every engine test: 2024-06-15 12:00 UTC
FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def days(n: float) -> timedelta:
    return timedelta(days=n)


@pytest.fixture
def now():
    return FIXED_NOW


def create_access_token(data: dict, secret: str, algorithm: str = "HS256",
                        expires_minutes: int = 480) -> str:
    """Sign a bearer token the way the identity provider does (sub, role, org_id claims)."""
    from jose import jwt
    claims = dict(data)
    claims["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode(claims, secret, algorithm=algorithm)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def risk_engine():
    """GoalRiskEngine with the default capacity of 10 tasks per person."""
    from app.services.risk_engine import GoalRiskEngine
    return GoalRiskEngine()


@pytest.fixture(scope="session")
def dashboard_aggregator():
    from app.services.dashboard_engine import DashboardAggregator
    return DashboardAggregator()


@pytest.fixture(scope="session")
def workload_analyzer():
    """WorkloadAnalyzer with the default capacity of 10 tasks per person."""
    from app.services.workload_engine import WorkloadAnalyzer
    return WorkloadAnalyzer()


@pytest.fixture(scope="session")
def analytics_engine():
    from app.services.analytics_engine import AnalyticsEngine
    return AnalyticsEngine()


# ---------------------------------------------------------------------------
# Entity factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_task():
    """
    Build a Task with sensible defaults; override any field by keyword.
    Default: In Progress, Medium priority, assigned to u1, goal g1,
    started 10 days before FIXED_NOW and due 10 days after.
    """
    from app.models.entities import Task

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = dict(
            id=f"t{counter['n']}",
            title=f"Task {counter['n']}",
            status="In Progress",
            priority="Medium",
            assigned_to_user_id="u1",
            goal_id="g1",
            start_date=FIXED_NOW - days(10),
            due_date=FIXED_NOW + days(10),
            created_at=FIXED_NOW - days(10),
            updated_at=FIXED_NOW - days(1),
        )
        fields.update(overrides)
        return Task(**fields)

    return _make


@pytest.fixture
def make_goal():
    """Annual goal owned by u1 spanning FIXED_NOW ± 50 days unless overridden."""
    from app.models.entities import Goal

    def _make(**overrides):
        fields = dict(
            id="g1",
            title="Grow revenue",
            goal_type="annual",
            owner_user_id="u1",
            parent_goal_id=None,
            start_date=FIXED_NOW - days(50),
            end_date=FIXED_NOW + days(50),
        )
        fields.update(overrides)
        return Goal(**fields)

    return _make


@pytest.fixture
def users():
    from app.models.entities import User
    return [
        User(id="m1", name="Mona Manager", role="manager"),
        User(id="u1", name="Ali Employee", role="employee"),
        User(id="u2", name="Sara Employee", role="employee"),
    ]


@pytest.fixture
def sample_snapshot(users):
    """
    Small organization:
      g1 annual (u1) with MBO child g2 (u1); g3 annual (u2)
      t1 completed on g2, t2 overdue on g2, t3 new on g1, t4 in progress on g3
      u1 vacation 2024-01-01..10 approved, u1 training 2024-01-05..08 approved
      u2 training 2024-01-05..08 approved (no vacation)
      one KPI at 50 % of target
    """
    from app.models.entities import (
        KPI, EntitySnapshot, Goal, LeavePlan, Task, TrainingPlan, parse_timestamp,
    )
    goals = [
        Goal(id="g1", title="Annual sales", goal_type="annual", owner_user_id="u1",
             start_date=FIXED_NOW - days(100), end_date=FIXED_NOW + days(100)),
        Goal(id="g2", title="Q2 pipeline", goal_type="mbo", owner_user_id="u1",
             parent_goal_id="g1",
             start_date=FIXED_NOW - days(30), end_date=FIXED_NOW + days(5)),
        Goal(id="g3", title="Support quality", goal_type="annual", owner_user_id="u2",
             start_date=FIXED_NOW - days(10), end_date=FIXED_NOW + days(90)),
    ]
    tasks = [
        Task(id="t1", title="Call leads", status="Completed", priority="High",
             assigned_to_user_id="u1", goal_id="g2",
             start_date=FIXED_NOW - days(20), due_date=FIXED_NOW - days(5),
             created_at=FIXED_NOW - days(20), updated_at=FIXED_NOW - days(3)),
        Task(id="t2", title="Send proposals", status="In Progress", priority="High",
             assigned_to_user_id="u1", goal_id="g2",
             start_date=FIXED_NOW - days(15), due_date=FIXED_NOW - days(2),
             created_at=FIXED_NOW - days(15), updated_at=FIXED_NOW - days(2)),
        Task(id="t3", title="Plan H2", status="New", priority="Low",
             assigned_to_user_id="u1", goal_id="g1",
             start_date=FIXED_NOW + days(1), due_date=FIXED_NOW + days(30),
             created_at=FIXED_NOW - days(1), updated_at=FIXED_NOW - days(1)),
        Task(id="t4", title="Triage tickets", status="In Progress", priority="Medium",
             assigned_to_user_id="u2", goal_id="g3",
             start_date=FIXED_NOW - days(5), due_date=FIXED_NOW + days(5),
             created_at=FIXED_NOW - days(45), updated_at=FIXED_NOW - days(1)),
    ]
    vacations = [
        LeavePlan(id="v1", user_id="u1", type="Annual",
                  start_date=parse_timestamp("2024-01-01"), end_date=parse_timestamp("2024-01-10"),
                  status="approved"),
    ]
    trainings = [
        TrainingPlan(id="tr1", user_id="u1", course_name="Negotiation", platform="Coursera",
                     start_date=parse_timestamp("2024-01-05"), end_date=parse_timestamp("2024-01-08"),
                     status="approved"),
        TrainingPlan(id="tr2", user_id="u2", course_name="Support 101", platform="Udemy",
                     start_date=parse_timestamp("2024-01-05"), end_date=parse_timestamp("2024-01-08"),
                     status="approved"),
    ]
    kpis = [KPI(id="k1", title="Revenue", goal_id="g1", unit="SAR",
                target_value=200.0, current_value=100.0)]
    return EntitySnapshot(
        users=users, goals=goals, tasks=tasks,
        vacation_plans=vacations, training_plans=trainings, kpis=kpis,
    )

"""
Smart Analytics routes — read-only decision support.

Every data endpoint loads one snapshot of the caller's organization and
hands it to the pure engines; nothing here writes to storage. The whole
surface (except /status) answers 403 when ENABLE_SMART_ANALYTICS is off.
"""
import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import (
    CurrentUser,
    get_current_user,
    get_entity_store,
    get_settings,
    require_analytics_enabled,
    require_manager,
)
from app.config import ANALYTICS_FEATURES, ANALYTICS_VERSION, AppSettings
from app.models.analytics_schema import (
    AnalyticsDashboard,
    AnalyticsOverview,
    AnalyticsStatus,
    GoalPrediction,
    GoalRiskAnalysis,
    HighRiskGoals,
    UserWorkloadAnalysis,
)
from app.models.entities import EntitySnapshot
from app.services.analytics_engine import AnalyticsEngine
from app.services.entity_store import EntityStore
from app.services.risk_engine import GoalRiskEngine
from app.services.workload_engine import WorkloadAnalyzer

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])
logger = logging.getLogger("goalpulse-analytics-api")


def _visible_analyses(
    snapshot: EntitySnapshot, user: CurrentUser, settings: AppSettings, now: datetime
) -> List[GoalRiskAnalysis]:
    """Managers see every goal in the organization; employees their own."""
    engine = GoalRiskEngine(settings.max_recommended_tasks)
    analyses = engine.analyze_goals(snapshot.goals, snapshot.tasks, now)
    if user.is_manager:
        return analyses
    return [a for a in analyses if a.owner_user_id == user.id]


async def _load(store: EntityStore, user: CurrentUser) -> EntitySnapshot:
    return await store.load_snapshot(user.organization_id)


@router.get("/status", response_model=AnalyticsStatus)
async def analytics_status(settings: AppSettings = Depends(get_settings)):
    return AnalyticsStatus(
        enabled=settings.enable_smart_analytics,
        version=ANALYTICS_VERSION,
        features=ANALYTICS_FEATURES,
    )


@router.get(
    "/goals",
    response_model=List[GoalRiskAnalysis],
    dependencies=[Depends(require_analytics_enabled)],
)
async def goals_risk(
    user: CurrentUser = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    store: EntityStore = Depends(get_entity_store),
):
    snapshot = await _load(store, user)
    return _visible_analyses(snapshot, user, settings, datetime.now(timezone.utc))


@router.get(
    "/goals/{goal_id}",
    response_model=GoalRiskAnalysis,
    dependencies=[Depends(require_analytics_enabled)],
)
async def goal_risk(
    goal_id: str,
    user: CurrentUser = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    store: EntityStore = Depends(get_entity_store),
):
    snapshot = await _load(store, user)
    goal = next((g for g in snapshot.goals if g.id == goal_id), None)
    if goal is None or (not user.is_manager and goal.owner_user_id != user.id):
        raise HTTPException(status_code=404, detail="Goal not found")
    engine = GoalRiskEngine(settings.max_recommended_tasks)
    return engine.analyze_goal(goal, snapshot.tasks, snapshot.goals, datetime.now(timezone.utc))


@router.get(
    "/dashboard",
    response_model=AnalyticsDashboard,
    dependencies=[Depends(require_analytics_enabled)],
)
async def analytics_dashboard(
    user: CurrentUser = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    store: EntityStore = Depends(get_entity_store),
):
    snapshot = await _load(store, user)
    now = datetime.now(timezone.utc)
    try:
        analyses = _visible_analyses(snapshot, user, settings, now)
        tasks = snapshot.tasks
        if not user.is_manager:
            tasks = [t for t in tasks if t.assigned_to_user_id == user.id]
        return AnalyticsEngine().build_dashboard(analyses, tasks, now)
    except Exception as e:
        logger.error(
            f"Analytics dashboard failed: {e}",
            exc_info=True,
            extra={"organization_id": user.organization_id, "user_id": user.id},
        )
        raise HTTPException(status_code=500, detail="Failed to fetch analytics dashboard")


@router.get(
    "/workload",
    response_model=List[UserWorkloadAnalysis],
    dependencies=[Depends(require_analytics_enabled)],
)
async def workload(
    user: CurrentUser = Depends(require_manager),
    settings: AppSettings = Depends(get_settings),
    store: EntityStore = Depends(get_entity_store),
):
    snapshot = await _load(store, user)
    now = datetime.now(timezone.utc)
    analyses = _visible_analyses(snapshot, user, settings, now)
    analyzer = WorkloadAnalyzer(settings.max_recommended_tasks)
    return analyzer.analyze_users(snapshot.users, snapshot.tasks, analyses, snapshot.goals, now)


@router.get(
    "/high-risk",
    response_model=HighRiskGoals,
    dependencies=[Depends(require_analytics_enabled)],
)
async def high_risk(
    user: CurrentUser = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    store: EntityStore = Depends(get_entity_store),
):
    snapshot = await _load(store, user)
    analyses = _visible_analyses(snapshot, user, settings, datetime.now(timezone.utc))
    return AnalyticsEngine.high_risk(analyses)


@router.get(
    "/predictions",
    response_model=List[GoalPrediction],
    dependencies=[Depends(require_analytics_enabled)],
)
async def predictions(
    user: CurrentUser = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    store: EntityStore = Depends(get_entity_store),
):
    snapshot = await _load(store, user)
    analyses = _visible_analyses(snapshot, user, settings, datetime.now(timezone.utc))
    return AnalyticsEngine.predictions(analyses)


@router.get(
    "/overview",
    response_model=AnalyticsOverview,
    dependencies=[Depends(require_analytics_enabled)],
)
async def overview(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    snapshot = await _load(store, user)
    return AnalyticsEngine.overview(snapshot)

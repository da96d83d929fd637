"""
Task dashboard route.

Managers and owners get the organization-wide view with per-employee rows;
employees get their own tasks and plans only.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.api.deps import CurrentUser, get_current_user, get_entity_store
from app.models.analytics_schema import DashboardSummary
from app.services.dashboard_engine import DashboardAggregator
from app.services.entity_store import EntityStore

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardSummary)
async def dashboard(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    snapshot = await store.load_snapshot(user.organization_id)
    return DashboardAggregator().aggregate(
        tasks=snapshot.tasks,
        users=snapshot.users,
        vacation_plans=snapshot.vacation_plans,
        training_plans=snapshot.training_plans,
        caller_user_id=user.id,
        caller_role=user.role,
        now=datetime.now(timezone.utc),
    )

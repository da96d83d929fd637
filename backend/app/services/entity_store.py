"""
Read-only entity store adapters.

The analytics routes depend on a single read interface (``EntityStore``);
whichever adapter is wired at startup satisfies it:

  - SqlEntityStore      — async SQLAlchemy over the Postgres tables
  - InMemoryEntityStore — a fixed snapshot; ``from_json_file`` loads the
                          legacy camelCase JSON database

Key-casing translation (camelCase JSON → snake_case entities) happens here
and nowhere else.
"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.entities import (
    KPI,
    EntitySnapshot,
    Goal,
    LeavePlan,
    Task,
    TrainingPlan,
    User,
    parse_timestamp,
)
from app.models.orm_models import (
    GoalRecord,
    KPIRecord,
    LeavePlanRecord,
    TaskRecord,
    TrainingPlanRecord,
    UserRecord,
)

logger = logging.getLogger("goalpulse-store")

T = TypeVar("T")


class EntityStore(ABC):
    """Per-organization read interface consumed by the HTTP layer."""

    @abstractmethod
    async def fetch_users(self, org_id: str) -> List[User]: ...

    @abstractmethod
    async def fetch_goals(self, org_id: str) -> List[Goal]: ...

    @abstractmethod
    async def fetch_tasks(self, org_id: str) -> List[Task]: ...

    @abstractmethod
    async def fetch_vacation_plans(self, org_id: str) -> List[LeavePlan]: ...

    @abstractmethod
    async def fetch_training_plans(self, org_id: str) -> List[TrainingPlan]: ...

    @abstractmethod
    async def fetch_kpis(self, org_id: str) -> List[KPI]: ...

    async def load_snapshot(self, org_id: str) -> EntitySnapshot:
        """Single point-in-time read of everything the engines need."""
        return EntitySnapshot(
            users=await self.fetch_users(org_id),
            goals=await self.fetch_goals(org_id),
            tasks=await self.fetch_tasks(org_id),
            vacation_plans=await self.fetch_vacation_plans(org_id),
            training_plans=await self.fetch_training_plans(org_id),
            kpis=await self.fetch_kpis(org_id),
        )


# ─── SQL ──────────────────────────────────────────────────────────────────────

class SqlEntityStore(EntityStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _rows(self, model, org_id: str) -> list:
        result = await self.session.execute(
            select(model).where(model.organization_id == org_id).order_by(model.id)
        )
        return list(result.scalars().all())

    async def fetch_users(self, org_id: str) -> List[User]:
        return [
            User(id=r.id, name=r.name or "", role=r.role, email=r.email, organization_id=r.organization_id)
            for r in await self._rows(UserRecord, org_id)
        ]

    async def fetch_goals(self, org_id: str) -> List[Goal]:
        return [
            Goal(
                id=r.id,
                title=r.title,
                goal_type=r.goal_type,
                owner_user_id=r.owner_user_id,
                parent_goal_id=r.parent_goal_id,
                start_date=parse_timestamp(r.start_date),
                end_date=parse_timestamp(r.end_date),
                organization_id=r.organization_id,
            )
            for r in await self._rows(GoalRecord, org_id)
        ]

    async def fetch_tasks(self, org_id: str) -> List[Task]:
        return [
            Task(
                id=r.id,
                title=r.title,
                status=r.status,
                priority=r.priority,
                assigned_to_user_id=r.assigned_to_user_id,
                goal_id=r.goal_id,
                start_date=parse_timestamp(r.start_date),
                due_date=parse_timestamp(r.due_date),
                created_at=parse_timestamp(r.created_at),
                updated_at=parse_timestamp(r.updated_at),
                organization_id=r.organization_id,
            )
            for r in await self._rows(TaskRecord, org_id)
        ]

    async def fetch_vacation_plans(self, org_id: str) -> List[LeavePlan]:
        return [
            LeavePlan(
                id=r.id,
                user_id=r.user_id,
                type=r.leave_type,
                start_date=parse_timestamp(r.start_date),
                end_date=parse_timestamp(r.end_date),
                status=r.status,
                notes=r.notes or "",
                organization_id=r.organization_id,
            )
            for r in await self._rows(LeavePlanRecord, org_id)
        ]

    async def fetch_training_plans(self, org_id: str) -> List[TrainingPlan]:
        return [
            TrainingPlan(
                id=r.id,
                user_id=r.user_id,
                course_name=r.course_name,
                platform=r.platform or "",
                start_date=parse_timestamp(r.start_date),
                end_date=parse_timestamp(r.end_date),
                status=r.status,
                notes=r.notes or "",
                organization_id=r.organization_id,
            )
            for r in await self._rows(TrainingPlanRecord, org_id)
        ]

    async def fetch_kpis(self, org_id: str) -> List[KPI]:
        return [
            KPI(
                id=r.id,
                title=r.title,
                goal_id=r.goal_id,
                unit=r.unit or "",
                target_value=float(r.target_value or 0),
                current_value=float(r.current_value or 0),
                organization_id=r.organization_id,
            )
            for r in await self._rows(KPIRecord, org_id)
        ]


# ─── In-memory / JSON file ────────────────────────────────────────────────────

def _visible(records: List[T], org_id: str) -> List[T]:
    """Records without an organization belong to a single-tenant data file."""
    return [r for r in records if r.organization_id is None or r.organization_id == org_id]


def _ref(value: Any) -> Optional[str]:
    """Id or foreign key as a string; JSON files mix numeric and string ids."""
    if value is None or value == "":
        return None
    return str(value)


def _first_ref(raw: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        ref = _ref(raw.get(key))
        if ref is not None:
            return ref
    return None


def _text(raw: Dict[str, Any], key: str, default: str = "") -> str:
    """String field where a missing key and an explicit null both mean ``default``."""
    value = raw.get(key)
    if value is None:
        return default
    return str(value)


def _amount(raw: Dict[str, Any], key: str) -> float:
    try:
        return float(raw.get(key) or 0)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric {key} ignored on record {raw.get('id')}: {raw.get(key)!r}")
        return 0.0


def _goal_window(raw: Dict[str, Any]):
    start = parse_timestamp(raw.get("startDate"))
    end = parse_timestamp(raw.get("endDate"))
    if start is not None and end is not None and end < start:
        logger.warning(f"Goal {raw.get('id')} has endDate before startDate; end date dropped")
        end = None
    return start, end


def _goal(raw: Dict[str, Any], goal_type: str, parent_goal_id: Optional[str], owner_keys=("userId",)) -> Goal:
    start, end = _goal_window(raw)
    return Goal(
        id=str(raw["id"]),
        title=_text(raw, "title"),
        goal_type=goal_type,
        owner_user_id=_first_ref(raw, *owner_keys) or "",
        parent_goal_id=parent_goal_id,
        start_date=start,
        end_date=end,
        organization_id=_ref(raw.get("organizationId")),
    )


class InMemoryEntityStore(EntityStore):
    def __init__(self, snapshot: Optional[EntitySnapshot] = None):
        self.snapshot = snapshot or EntitySnapshot()

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryEntityStore":
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Data file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Data file {path} must contain a JSON object")
        store = cls(cls.snapshot_from_dict(data))
        logger.info(
            f"Loaded {len(store.snapshot.goals)} goals, {len(store.snapshot.tasks)} tasks "
            f"from {path}"
        )
        return store

    @staticmethod
    def snapshot_from_dict(data: Dict[str, Any]) -> EntitySnapshot:
        """
        Translate the camelCase JSON layout into entity records.

        Ids and foreign keys are normalised to strings so numeric and string
        ids link up; null string fields read as their default.
        """
        users = [
            User(
                id=str(u["id"]),
                name=_text(u, "name"),
                role=_text(u, "role", "employee").lower(),
                email=_text(u, "email"),
                organization_id=_ref(u.get("organizationId")),
            )
            for u in data.get("users") or []
        ]

        goals: List[Goal] = []
        for g in data.get("annualGoals") or []:
            goals.append(_goal(g, "annual", None))
        for g in data.get("mboGoals") or []:
            goals.append(_goal(g, "mbo", _ref(g.get("annualGoalId"))))
        for g in data.get("goals") or []:
            goal_type = _text(g, "goalType") or _text(g, "type") or "annual"
            goals.append(_goal(
                g, goal_type, _ref(g.get("parentGoalId")), owner_keys=("ownerUserId", "userId")
            ))

        tasks = [
            Task(
                id=str(t["id"]),
                title=_text(t, "title"),
                status=_text(t, "status", "New"),
                priority=_text(t, "priority", "Medium"),
                assigned_to_user_id=_first_ref(t, "assignedTo", "assignedToUserId") or "",
                # The most specific goal wins; annual goals reach MBO tasks through parentage
                goal_id=_first_ref(t, "mboGoalId", "goalId", "annualGoalId"),
                start_date=parse_timestamp(t.get("startDate")),
                due_date=parse_timestamp(t.get("dueDate")),
                created_at=parse_timestamp(t.get("createdAt")),
                updated_at=parse_timestamp(t.get("updatedAt")),
                organization_id=_ref(t.get("organizationId")),
            )
            for t in data.get("tasks") or []
        ]

        vacations = [
            LeavePlan(
                id=str(p["id"]),
                user_id=_ref(p.get("userId")) or "",
                type=_text(p, "type", "Other"),
                start_date=parse_timestamp(p.get("startDate")),
                end_date=parse_timestamp(p.get("endDate")),
                status=_text(p, "status", "pending"),
                notes=_text(p, "notes"),
                organization_id=_ref(p.get("organizationId")),
            )
            for p in (data.get("vacationPlans") or []) + (data.get("leaves") or [])
        ]

        trainings = [
            TrainingPlan(
                id=str(p["id"]),
                user_id=_ref(p.get("userId")) or "",
                course_name=_text(p, "courseName"),
                platform=_text(p, "platform"),
                start_date=parse_timestamp(p.get("startDate")),
                end_date=parse_timestamp(p.get("endDate")),
                status=_text(p, "status", "pending"),
                notes=_text(p, "notes"),
                organization_id=_ref(p.get("organizationId")),
            )
            for p in data.get("trainingPlans") or []
        ]

        kpis = [
            KPI(
                id=str(k["id"]),
                title=_text(k, "title"),
                goal_id=_first_ref(k, "mboGoalId", "annualGoalId", "goalId"),
                unit=_text(k, "unit"),
                target_value=_amount(k, "targetValue"),
                current_value=_amount(k, "currentValue"),
                organization_id=_ref(k.get("organizationId")),
            )
            for k in data.get("kpis") or []
        ]

        return EntitySnapshot(
            users=users, goals=goals, tasks=tasks,
            vacation_plans=vacations, training_plans=trainings, kpis=kpis,
        )

    async def fetch_users(self, org_id: str) -> List[User]:
        return _visible(self.snapshot.users, org_id)

    async def fetch_goals(self, org_id: str) -> List[Goal]:
        return _visible(self.snapshot.goals, org_id)

    async def fetch_tasks(self, org_id: str) -> List[Task]:
        return _visible(self.snapshot.tasks, org_id)

    async def fetch_vacation_plans(self, org_id: str) -> List[LeavePlan]:
        return _visible(self.snapshot.vacation_plans, org_id)

    async def fetch_training_plans(self, org_id: str) -> List[TrainingPlan]:
        return _visible(self.snapshot.training_plans, org_id)

    async def fetch_kpis(self, org_id: str) -> List[KPI]:
        return _visible(self.snapshot.kpis, org_id)

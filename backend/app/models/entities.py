"""
Read-only entity records consumed by the analytics engines.

Storage adapters translate rows/JSON into these records; the engines never
see database rows or camelCase payloads.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Union

logger = logging.getLogger("goalpulse-entities")

# Task status values as stored
STATUS_NEW = "New"
STATUS_IN_PROGRESS = "In Progress"
STATUS_COMPLETED = "Completed"
STATUS_DELAYED = "Delayed"

PRIORITY_HIGH = "High"
PRIORITY_MEDIUM = "Medium"
PRIORITY_LOW = "Low"

PLAN_APPROVED = "approved"

SECONDS_PER_DAY = 86_400


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (date-only or full timestamp, trailing ``Z``
    allowed) into an aware UTC datetime. Unparseable input yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        logger.warning(f"Unparseable timestamp ignored: {value!r}")
        return None


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from ``start`` to ``end``, rounded half-up; negative if end < start."""
    return int(math.floor((end - start).total_seconds() / SECONDS_PER_DAY + 0.5))


def iso_date(value: Optional[datetime]) -> Optional[str]:
    return value.date().isoformat() if value is not None else None


@dataclass(frozen=True)
class User:
    id: str
    name: str
    role: str = "employee"  # owner | manager | employee
    email: str = ""
    organization_id: Optional[str] = None


@dataclass(frozen=True)
class Goal:
    id: str
    title: str
    goal_type: str  # annual | mbo
    owner_user_id: str
    parent_goal_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    organization_id: Optional[str] = None


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    status: str
    priority: str
    assigned_to_user_id: str
    goal_id: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    organization_id: Optional[str] = None

    def is_past_due(self, now: datetime) -> bool:
        return self.due_date is not None and self.due_date < now


@dataclass(frozen=True)
class LeavePlan:
    """Vacation / leave request."""
    id: str
    user_id: str
    type: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: str = "pending"
    notes: str = ""
    organization_id: Optional[str] = None


@dataclass(frozen=True)
class TrainingPlan:
    id: str
    user_id: str
    course_name: str
    platform: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: str = "pending"
    notes: str = ""
    organization_id: Optional[str] = None


@dataclass(frozen=True)
class KPI:
    id: str
    title: str
    goal_id: Optional[str] = None
    unit: str = ""
    target_value: float = 0.0
    current_value: float = 0.0
    organization_id: Optional[str] = None

    @property
    def achievement_pct(self) -> float:
        if self.target_value <= 0:
            return 0.0
        return self.current_value / self.target_value * 100.0


@dataclass(frozen=True)
class EntitySnapshot:
    """One point-in-time read of an organization's records."""
    users: list[User] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    vacation_plans: list[LeavePlan] = field(default_factory=list)
    training_plans: list[TrainingPlan] = field(default_factory=list)
    kpis: list[KPI] = field(default_factory=list)

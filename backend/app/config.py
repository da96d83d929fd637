"""
Analytics configuration — single source of truth for thresholds, weights,
reporting windows and runtime settings.

Import from here in all engines and routes rather than hardcoding values.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# ── Capacity ───────────────────────────────────────────────────────────────────

# Per-person task capacity used by the workload factor and the workload analyzer
MAX_RECOMMENDED_TASKS: int = 10


# ── Risk score weights ─────────────────────────────────────────────────────────
# score = 100 × Σ weight × factor; overdue work must dominate.
RISK_WEIGHTS: dict[str, float] = {
    "overdue":        0.4,
    "time_pressure":  0.3,
    "workload_excess": 0.2,
    "incomplete":     0.1,
}

# Band edges: LOW < 34 <= MEDIUM < 67 <= HIGH
RISK_MEDIUM_THRESHOLD: int = 34
RISK_HIGH_THRESHOLD: int = 67

# Tolerance when comparing elapsed time against progress
ON_TRACK_EPSILON: float = 1e-9


# ── Reason / recommendation triggers ───────────────────────────────────────────
MIDPOINT_TIME_PRESSURE: float = 0.5
LOW_PROGRESS_RATIO: float = 0.3
CRITICAL_TIME_PRESSURE: float = 0.8
HIGH_OVERDUE_RATIO: float = 0.3
PENDING_WORK_RATIO: float = 0.3


# ── Workload bands (percent of capacity) ──────────────────────────────────────
WORKLOAD_UNDERLOADED_BELOW: float = 50.0
WORKLOAD_OVERLOADED_ABOVE: float = 100.0


# ── Reporting windows (days) and list limits ──────────────────────────────────
RECENT_ACTIVITY_DAYS: int = 30
RECENT_ACTIVITY_LIMIT: int = 10
UPCOMING_DEADLINE_DAYS: int = 14
UPCOMING_DEADLINE_LIMIT: int = 10
TOP_RISKS_LIMIT: int = 5
VELOCITY_WINDOW_DAYS: int = 7
VELOCITY_INCREASE_FACTOR: float = 1.2
VELOCITY_DECREASE_FACTOR: float = 0.8


# ── Roles ──────────────────────────────────────────────────────────────────────
# Roles that see every record in their organization
MANAGER_ROLES: frozenset[str] = frozenset({"owner", "manager"})

ANALYTICS_VERSION: str = "1.0.0"
ANALYTICS_FEATURES: list[str] = ["risk-analysis", "predictions", "workload-analysis"]


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


@dataclass(frozen=True)
class AppSettings:
    """Runtime settings, read once at startup and injected into the HTTP layer."""
    enable_smart_analytics: bool = True
    jwt_secret_key: str = "changethis_use_a_real_secret_in_production_64chars"
    jwt_algorithm: str = "HS256"
    storage_backend: str = "sql"            # "sql" | "json"
    data_file: str = "data/database.json"   # used by the json backend
    max_recommended_tasks: int = MAX_RECOMMENDED_TASKS
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:8000"]
    )
    log_level: str = "INFO"
    json_logs: bool = True

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> "AppSettings":
        if load_dotenv_file:
            load_dotenv()
        cors_raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8000")
        return cls(
            # Enabled unless explicitly switched off
            enable_smart_analytics=_env_flag("ENABLE_SMART_ANALYTICS", True),
            jwt_secret_key=os.getenv(
                "JWT_SECRET_KEY", "changethis_use_a_real_secret_in_production_64chars"
            ),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            storage_backend=os.getenv("STORAGE_BACKEND", "sql").strip().lower(),
            data_file=os.getenv("DATA_FILE", "data/database.json"),
            max_recommended_tasks=int(os.getenv("MAX_RECOMMENDED_TASKS", str(MAX_RECOMMENDED_TASKS))),
            cors_origins=[o.strip() for o in cors_raw.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=os.getenv("LOG_FORMAT", "json").lower() != "text",
        )

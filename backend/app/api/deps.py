"""FastAPI dependency injection — settings, auth guards, feature flag, entity store."""
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.config import MANAGER_ROLES, AppSettings
from app.db import AsyncSessionLocal
from app.services.entity_store import EntityStore, SqlEntityStore

security = HTTPBearer(auto_error=False)

ANALYTICS_DISABLED_DETAIL = {
    "error": "Smart Analytics module is disabled",
    "message": "Set ENABLE_SMART_ANALYTICS=true to enable this feature",
}


@dataclass(frozen=True)
class CurrentUser:
    """Caller identity taken from verified token claims."""
    id: str
    role: str
    organization_id: str
    email: str = ""

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


def get_settings(request: Request) -> AppSettings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = AppSettings.from_env()
        request.app.state.settings = settings
    return settings


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: AppSettings = Depends(get_settings),
) -> CurrentUser:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            credentials.credentials, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    org_id = payload.get("org_id")
    if not org_id:
        raise HTTPException(status_code=400, detail="User has no organization assigned")
    # Picked up by RequestTimingMiddleware for the request log line
    request.state.user_id = str(user_id)
    request.state.organization_id = str(org_id)
    return CurrentUser(
        id=str(user_id),
        role=str(payload.get("role", "employee")).lower(),
        organization_id=str(org_id),
        email=payload.get("email", ""),
    )


def require_manager(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Manager or owner only; 403 for everyone else."""
    if not current_user.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only managers can view workload analysis",
        )
    return current_user


def require_analytics_enabled(settings: AppSettings = Depends(get_settings)) -> None:
    if not settings.enable_smart_analytics:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ANALYTICS_DISABLED_DETAIL)


async def get_entity_store(request: Request) -> AsyncGenerator[EntityStore, None]:
    """The store wired at startup, or a per-request SQL session."""
    store = getattr(request.app.state, "entity_store", None)
    if store is not None:
        yield store
        return
    async with AsyncSessionLocal() as session:
        yield SqlEntityStore(session)

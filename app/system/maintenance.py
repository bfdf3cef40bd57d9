"""
Maintenance mode: an admin switch that turns away non-admin API traffic
with 503 while work is in progress.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from app.auth.auth_utils import peek_role, ADMIN_ROLE
from app.config import MAINTENANCE_MODE, MAINTENANCE_MESSAGE
from app.dependencies import get_db, require_admin
from app.system.logger import get_logger

logger = get_logger(__name__)

SETTINGS_KEY = "maintenance"

# Paths that stay reachable while maintenance is on
EXEMPT_PREFIXES = ("/api/maintenance", "/api/admin/maintenance", "/api/health")


class MaintenanceState:
    def __init__(self, enabled: bool = False, message: str = MAINTENANCE_MESSAGE):
        self.enabled = enabled
        self.message = message
        self.updated_at: Optional[datetime] = None

    def set(self, enabled: bool, message: Optional[str] = None):
        self.enabled = enabled
        if message:
            self.message = message
        self.updated_at = datetime.utcnow()

    def as_dict(self) -> dict:
        return {"enabled": self.enabled, "message": self.message, "updated_at": self.updated_at}


state = MaintenanceState(enabled=MAINTENANCE_MODE)


async def load_state(db: AsyncIOMotorDatabase):
    """Restore the last persisted switch position on startup"""
    doc = await db.system_settings.find_one({"_id": SETTINGS_KEY})
    if doc:
        state.enabled = doc.get("enabled", False)
        state.message = doc.get("message") or MAINTENANCE_MESSAGE
        state.updated_at = doc.get("updated_at")
        logger.info(f"Maintenance mode restored: enabled={state.enabled}")


class MaintenanceMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if (
            state.enabled
            and path.startswith("/api")
            and not path.startswith(EXEMPT_PREFIXES)
            and request.method != "OPTIONS"
            and peek_role(request.headers.get("authorization")) != ADMIN_ROLE
        ):
            return JSONResponse(
                status_code=503,
                content={"detail": state.message, "maintenance": True}
            )
        return await call_next(request)

# ==================== ROUTES ====================

router = APIRouter(tags=["Maintenance"])


class MaintenanceToggle(BaseModel):
    enabled: bool
    message: Optional[str] = None


@router.get("/maintenance/status")
async def maintenance_status():
    return state.as_dict()


@router.post("/admin/maintenance")
async def set_maintenance(
    payload: MaintenanceToggle,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    state.set(payload.enabled, payload.message)
    try:
        await db.system_settings.update_one(
            {"_id": SETTINGS_KEY},
            {"$set": {
                "enabled": state.enabled,
                "message": state.message,
                "updated_at": state.updated_at,
                "updated_by": admin["sub"]
            }},
            upsert=True
        )
    except Exception:
        logger.exception("Error persisting maintenance mode")
        raise HTTPException(status_code=500, detail="Failed to save maintenance mode")
    logger.warning(f"Maintenance mode set to {state.enabled} by {admin['sub']}")
    return state.as_dict()

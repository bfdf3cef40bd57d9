from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import VERSION
from app.dependencies import get_db
from app.system.logger import get_logger

router = APIRouter(tags=["System"])
logger = get_logger(__name__)


@router.get("/health")
async def health(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Liveness plus a database ping"""
    try:
        await db.command("ping")
        database = "UP"
    except Exception as e:
        logger.warning(f"Database ping failed: {e}")
        database = "DOWN"

    return {
        "status": "ok" if database == "UP" else "degraded",
        "version": VERSION,
        "database": database
    }

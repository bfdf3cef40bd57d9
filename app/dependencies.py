# app/dependencies.py

from fastapi import Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.auth_utils import get_current_user, get_optional_user, require_admin, is_admin
from app.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.database import get_db

__all__ = [
    "get_db", "get_current_user", "get_optional_user", "require_admin", "is_admin",
    "get_current_user_id", "Pagination",
]


async def get_current_user_id(user: dict = Depends(get_current_user)) -> str:
    """Extract user_id from the authenticated request"""
    return str(user.get("sub"))


class Pagination:
    def __init__(
        self,
        skip: int = Query(0, ge=0),
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    ):
        self.skip = skip
        self.limit = limit

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timezone
from typing import List, Optional
import uuid

from app.contests.models import ContestStatus
from app.system.logger import get_logger

logger = get_logger(__name__)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """MongoDB hands back naive UTC datetimes, so store them that way"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def contest_status(contest: dict, now: Optional[datetime] = None) -> ContestStatus:
    now = now or datetime.utcnow()
    if now < contest["start_time"]:
        return ContestStatus.UPCOMING
    if now >= contest["end_time"]:
        return ContestStatus.ENDED
    return ContestStatus.ACTIVE


def valid_window(start_time: datetime, end_time: datetime) -> bool:
    return end_time > start_time

# ==================== CONTEST CRUD ====================

async def create_contest(db: AsyncIOMotorDatabase, data: dict, created_by: str) -> dict:
    now = datetime.utcnow()
    contest = {
        **data,
        "id": f"CONTEST_{uuid.uuid4().hex[:12].upper()}",
        "start_time": to_naive_utc(data["start_time"]),
        "end_time": to_naive_utc(data["end_time"]),
        "participants": [],
        "created_by": created_by,
        "created_at": now,
        "updated_at": now,
    }
    await db.contests.insert_one(contest)
    logger.info(f"Contest {contest['id']} created by {created_by}")
    return contest


async def get_contest(db: AsyncIOMotorDatabase, contest_id: str) -> Optional[dict]:
    return await db.contests.find_one({"id": contest_id})


async def list_contests(
    db: AsyncIOMotorDatabase,
    include_private: bool = False,
    skip: int = 0,
    limit: int = 50
) -> List[dict]:
    query = {} if include_private else {"is_public": True}
    cursor = db.contests.find(query).sort("start_time", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)


async def update_contest(db: AsyncIOMotorDatabase, contest_id: str, updates: dict) -> Optional[dict]:
    for key in ("start_time", "end_time"):
        if key in updates:
            updates[key] = to_naive_utc(updates[key])
    updates["updated_at"] = datetime.utcnow()
    return await db.contests.find_one_and_update(
        {"id": contest_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )


async def delete_contest(db: AsyncIOMotorDatabase, contest_id: str) -> bool:
    result = await db.contests.delete_one({"id": contest_id})
    if result.deleted_count == 0:
        return False
    await db.contest_participants.delete_many({"contest_id": contest_id})
    return True

# ==================== PARTICIPANTS ====================

async def get_participant(db: AsyncIOMotorDatabase, contest_id: str, user_id: str) -> Optional[dict]:
    return await db.contest_participants.find_one({"contest_id": contest_id, "user_id": user_id})


async def register_participant(db: AsyncIOMotorDatabase, contest_id: str, user_id: str) -> tuple[dict, bool]:
    existing = await get_participant(db, contest_id, user_id)
    if existing:
        return existing, False

    participant = {
        "contest_id": contest_id,
        "user_id": user_id,
        "registered_at": datetime.utcnow(),
    }
    try:
        await db.contest_participants.insert_one(participant)
    except DuplicateKeyError:
        return await get_participant(db, contest_id, user_id), False
    await db.contests.update_one({"id": contest_id}, {"$addToSet": {"participants": user_id}})
    return participant, True


async def list_participants(db: AsyncIOMotorDatabase, contest_id: str) -> List[dict]:
    cursor = db.contest_participants.find({"contest_id": contest_id}).sort("registered_at", 1)
    return await cursor.to_list(length=None)

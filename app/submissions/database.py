from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import List, Optional
import uuid

# ==================== SUBMISSION CRUD ====================

async def create_submission(db: AsyncIOMotorDatabase, submission_data: dict, user_id: str) -> dict:
    submission = {
        "id": f"SUB_{uuid.uuid4().hex[:12].upper()}",
        "user_id": user_id,
        "problem_id": submission_data["problem_id"],
        "problem_set_id": submission_data.get("problem_set_id"),
        "contest_id": submission_data.get("contest_id"),
        "language": submission_data["language"],
        "code": submission_data["code"],
        "status": "queued",
        "submitted_at": datetime.utcnow()
    }
    await db.submissions.insert_one(submission)
    return submission


async def get_submission(db: AsyncIOMotorDatabase, submission_id: str) -> Optional[dict]:
    return await db.submissions.find_one({"id": submission_id})


async def list_submissions(
    db: AsyncIOMotorDatabase,
    filters: dict,
    skip: int = 0,
    limit: int = 50
) -> List[dict]:
    """List submissions newest first; filters are exact matches on user/problem/set"""
    query = {k: v for k, v in filters.items() if v is not None}
    cursor = db.submissions.find(query).sort("submitted_at", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)


async def delete_submission(db: AsyncIOMotorDatabase, submission_id: str) -> bool:
    result = await db.submissions.delete_one({"id": submission_id})
    return result.deleted_count > 0

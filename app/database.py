from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from bson import ObjectId
from typing import Any

from app.config import MONGO_URL, MONGO_DB_NAME
from app.system.logger import get_logger

logger = get_logger(__name__)

client = AsyncIOMotorClient(MONGO_URL)
db = client[MONGO_DB_NAME]


def get_db_instance() -> AsyncIOMotorDatabase:
    return db


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()


# ==================== SERIALIZATION ====================

def _to_json_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _to_json_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_json_value(v) for v in value]
    return value


def serialize_mongo(doc: dict) -> dict:
    """Make a raw document JSON-safe (ObjectIds become strings)"""
    if doc is None:
        return None
    return _to_json_value(doc)


def serialize_many(docs: list[dict]) -> list[dict]:
    return [serialize_mongo(doc) for doc in docs]


def is_object_id(value: str) -> bool:
    return ObjectId.is_valid(value) if isinstance(value, str) else False


# ==================== SEQUENCES ====================

async def next_sequence(db: AsyncIOMotorDatabase, name: str) -> int:
    """Atomically allocate the next integer id for a collection"""
    counter = await db.counters.find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER
    )
    return counter["seq"]


# ==================== INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes, called on application startup"""

    # Courses
    await db.courses.create_index("id", unique=True)
    await db.courses.create_index("created_by")
    await db.courses.create_index("is_public")
    await db.courses.create_index("category")
    await db.courses.create_index("difficulty")
    await db.courses.create_index("enrolled_users")

    # Course enrollments
    await db.course_enrollments.create_index("id", unique=True)
    await db.course_enrollments.create_index([("user_id", 1), ("course_id", 1)], unique=True)
    await db.module_progress.create_index([("user_id", 1), ("course_id", 1)])

    # Problem sets
    await db.problemsets.create_index("id", unique=True)
    await db.problemsets.create_index("created_by")
    await db.problemsets.create_index("is_public")
    await db.problemsets.create_index("category")
    await db.problemsets.create_index("difficulty")
    await db.problemsets.create_index("participants")

    # Problem set enrollments
    await db.problemsetenrollments.create_index("id", unique=True)
    await db.problemsetenrollments.create_index([("problem_set_id", 1), ("user_id", 1)], unique=True)
    await db.problemsetenrollments.create_index("user_id")

    # Submissions
    await db.submissions.create_index("id", unique=True)
    await db.submissions.create_index([("user_id", 1), ("submitted_at", -1)])
    await db.submissions.create_index("problem_set_id")

    # Contests
    await db.contests.create_index("id", unique=True)
    await db.contests.create_index("start_time")
    await db.contest_participants.create_index([("contest_id", 1), ("user_id", 1)], unique=True)

    logger.info("Database indexes created")

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime
from typing import List, Optional

from app.database import next_sequence
from app.system.logger import get_logger

logger = get_logger(__name__)

# ==================== COURSE CRUD ====================

def full_title(course: dict) -> str:
    """Title with the category appended, e.g. "Graphs - Algorithms" """
    category = course.get("category")
    return f"{course['title']} - {category}" if category else course["title"]


async def create_course(db: AsyncIOMotorDatabase, course_data: dict, created_by: str) -> dict:
    course_id = await next_sequence(db, "courses")
    now = datetime.utcnow()

    course = {
        **course_data,
        "id": course_id,
        "created_by": created_by,
        "enrolled_users": [],
        "enrollment_count": 0,
        "created_at": now,
        "updated_at": now,
    }
    course.setdefault("completion_rate", 0)

    await db.courses.insert_one(course)
    logger.info(f"Course {course_id} created by {created_by}")
    return course


async def get_course(db: AsyncIOMotorDatabase, course_id: int) -> Optional[dict]:
    return await db.courses.find_one({"id": course_id})


async def list_courses(
    db: AsyncIOMotorDatabase,
    filters: dict,
    include_private: bool = False,
    skip: int = 0,
    limit: int = 50
) -> List[dict]:
    """List courses, newest first. Non-admin callers only see public ones."""
    query = {}
    if filters.get("category"):
        query["category"] = filters["category"]
    if filters.get("difficulty"):
        query["difficulty"] = filters["difficulty"]
    if not include_private:
        query["is_public"] = True

    cursor = db.courses.find(query).sort("created_at", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)


async def update_course(db: AsyncIOMotorDatabase, course_id: int, updates: dict) -> Optional[dict]:
    updates["updated_at"] = datetime.utcnow()
    return await db.courses.find_one_and_update(
        {"id": course_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )


async def delete_course(db: AsyncIOMotorDatabase, course_id: int) -> bool:
    result = await db.courses.delete_one({"id": course_id})
    if result.deleted_count == 0:
        return False
    await db.course_enrollments.delete_many({"course_id": course_id})
    await db.module_progress.delete_many({"course_id": course_id})
    return True


async def find_by_user_enrollment(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    """Courses whose enrolled_users list contains the user"""
    cursor = db.courses.find({"enrolled_users": user_id}).sort("created_at", -1)
    return await cursor.to_list(length=None)


async def increment_enrollment(db: AsyncIOMotorDatabase, course_id: int) -> Optional[dict]:
    return await db.courses.find_one_and_update(
        {"id": course_id},
        {"$inc": {"enrollment_count": 1}, "$set": {"updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER
    )


async def decrement_enrollment(db: AsyncIOMotorDatabase, course_id: int) -> Optional[dict]:
    """Decrement enrollment_count, never going below zero"""
    updated = await db.courses.find_one_and_update(
        {"id": course_id, "enrollment_count": {"$gt": 0}},
        {"$inc": {"enrollment_count": -1}, "$set": {"updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        # Already at zero (or missing): clamp instead of going negative
        return await db.courses.find_one_and_update(
            {"id": course_id},
            {"$set": {"enrollment_count": 0, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER
        )
    return updated

# ==================== ENROLLMENT CRUD ====================

async def get_enrollment(db: AsyncIOMotorDatabase, course_id: int, user_id: str) -> Optional[dict]:
    return await db.course_enrollments.find_one({
        "course_id": course_id,
        "user_id": user_id
    })


async def enroll_user(db: AsyncIOMotorDatabase, course_id: int, user_id: str) -> tuple[dict, bool]:
    """
    Enroll user in course.
    Returns (enrollment, created). Enrolling twice is a no-op.
    """
    existing = await get_enrollment(db, course_id, user_id)
    if existing:
        return existing, False

    now = datetime.utcnow()
    enrollment = {
        "id": await next_sequence(db, "course_enrollments"),
        "course_id": course_id,
        "user_id": user_id,
        "progress": 0.0,
        "completed_modules": [],
        "enrolled_at": now,
        "updated_at": now,
    }
    try:
        await db.course_enrollments.insert_one(enrollment)
    except DuplicateKeyError:
        # Lost a race with a concurrent enroll for the same user
        return await get_enrollment(db, course_id, user_id), False

    await db.courses.update_one({"id": course_id}, {"$addToSet": {"enrolled_users": user_id}})
    await increment_enrollment(db, course_id)
    return enrollment, True


async def unenroll_user(db: AsyncIOMotorDatabase, course_id: int, user_id: str) -> bool:
    result = await db.course_enrollments.delete_one({"course_id": course_id, "user_id": user_id})
    if result.deleted_count == 0:
        return False

    await db.courses.update_one({"id": course_id}, {"$pull": {"enrolled_users": user_id}})
    await decrement_enrollment(db, course_id)
    return True


async def list_course_enrollments(db: AsyncIOMotorDatabase, course_id: int) -> List[dict]:
    cursor = db.course_enrollments.find({"course_id": course_id}).sort("enrolled_at", 1)
    return await cursor.to_list(length=None)

# ==================== ACCESS & PROGRESS ====================

async def can_user_access_course(
    db: AsyncIOMotorDatabase,
    course: dict,
    user_id: str,
    is_admin: bool
) -> bool:
    if is_admin or course.get("is_public"):
        return True
    if user_id in course.get("enrolled_users", []):
        return True
    return await get_enrollment(db, course["id"], user_id) is not None


async def reset_user_course_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: int) -> None:
    """Clear module completion and zero the enrollment progress"""
    deleted = await db.module_progress.delete_many({"user_id": user_id, "course_id": course_id})
    await db.course_enrollments.update_one(
        {"user_id": user_id, "course_id": course_id},
        {"$set": {
            "progress": 0.0,
            "completed_modules": [],
            "updated_at": datetime.utcnow()
        }}
    )
    logger.info(
        f"Reset progress for user {user_id} in course {course_id} "
        f"({deleted.deleted_count} module records cleared)"
    )

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from bson import ObjectId
from datetime import datetime
from typing import List, Optional
import uuid

from app.database import next_sequence, is_object_id
from app.system.logger import get_logger

logger = get_logger(__name__)

DIFFICULTY_WEIGHTS = {"easy": 1, "medium": 2, "hard": 3}


class ProblemSetNotFoundError(LookupError):
    pass


class ProblemInstanceNotFoundError(LookupError):
    pass


class EnrollmentNotFoundError(LookupError):
    pass

# ==================== DERIVED FIELDS ====================

def average_difficulty(problem_set: dict) -> str:
    instances = problem_set.get("problem_instances") or []
    if not instances:
        return "N/A"

    total = sum(DIFFICULTY_WEIGHTS.get(p.get("difficulty"), 0) for p in instances)
    avg = total / len(instances)

    if avg <= 1.5:
        return "Easy"
    if avg <= 2.5:
        return "Medium"
    return "Hard"


def count_problems(problem_set: dict) -> int:
    """First non-empty of problem_instances, problems, problem_ids"""
    return (
        len(problem_set.get("problem_instances") or [])
        or len(problem_set.get("problems") or [])
        or len(problem_set.get("problem_ids") or [])
    )


def build_instance(data: dict, position: int, modified_by: Optional[str] = None) -> dict:
    instance = {k: v for k, v in data.items() if v is not None}
    instance["instance_id"] = f"PI_{uuid.uuid4().hex[:12].upper()}"
    instance.setdefault("order", position)
    instance.setdefault("is_customized", False)
    instance["last_modified"] = datetime.utcnow()
    if modified_by:
        instance["modified_by"] = modified_by
    return instance

# ==================== PROBLEM SET CRUD ====================

async def create_problem_set(db: AsyncIOMotorDatabase, data: dict, created_by: str) -> dict:
    now = datetime.utcnow()
    instances_data = data.pop("problem_instances", [])
    instances = [
        build_instance(item, position, created_by)
        for position, item in enumerate(instances_data, start=1)
    ]

    problem_set = {
        **data,
        "id": f"PS_{uuid.uuid4().hex[:12].upper()}",
        "problem_instances": instances,
        "total_problems": len(instances),
        "created_by": created_by,
        "participants": [],
        "created_at": now,
        "updated_at": now,
    }
    await db.problemsets.insert_one(problem_set)
    logger.info(f"Problem set {problem_set['id']} created by {created_by}")
    return problem_set


async def get_problem_set(db: AsyncIOMotorDatabase, problem_set_id: str) -> Optional[dict]:
    return await db.problemsets.find_one({"id": problem_set_id})


async def list_problem_sets(
    db: AsyncIOMotorDatabase,
    include_private: bool = False,
    skip: int = 0,
    limit: int = 50
) -> List[dict]:
    query = {} if include_private else {"is_public": True}
    cursor = db.problemsets.find(query).sort("created_at", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)


async def find_by_difficulty(db: AsyncIOMotorDatabase, difficulty: str) -> List[dict]:
    cursor = db.problemsets.find({"difficulty": difficulty, "is_public": True}).sort("created_at", -1)
    return await cursor.to_list(length=None)


async def find_by_category(db: AsyncIOMotorDatabase, category: str) -> List[dict]:
    cursor = db.problemsets.find({"category": category, "is_public": True}).sort("created_at", -1)
    return await cursor.to_list(length=None)


async def get_stats(db: AsyncIOMotorDatabase) -> List[dict]:
    """Per-difficulty counts, average size and public count"""
    pipeline = [
        {
            "$group": {
                "_id": "$difficulty",
                "count": {"$sum": 1},
                "avg_problems": {"$avg": "$total_problems"},
                "public_count": {"$sum": {"$cond": ["$is_public", 1, 0]}},
            }
        },
        {"$sort": {"_id": 1}},
    ]
    rows = await db.problemsets.aggregate(pipeline).to_list(length=None)
    return [
        {
            "difficulty": row["_id"],
            "count": row["count"],
            "avg_problems": row["avg_problems"],
            "public_count": row["public_count"],
        }
        for row in rows
    ]


async def update_problem_set(db: AsyncIOMotorDatabase, problem_set_id: str, updates: dict) -> Optional[dict]:
    updates["updated_at"] = datetime.utcnow()
    return await db.problemsets.find_one_and_update(
        {"id": problem_set_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )


async def delete_problem_set(db: AsyncIOMotorDatabase, problem_set_id: str) -> bool:
    result = await db.problemsets.delete_one({"id": problem_set_id})
    if result.deleted_count == 0:
        return False
    await db.problemsetenrollments.delete_many({"problem_set_id": problem_set_id})
    return True

# ==================== PROBLEM INSTANCES ====================

async def _save_instances(db: AsyncIOMotorDatabase, problem_set: dict, instances: List[dict]) -> dict:
    """Persist the instance list and keep total_problems in step with it"""
    updated = await db.problemsets.find_one_and_update(
        {"id": problem_set["id"]},
        {"$set": {
            "problem_instances": instances,
            "total_problems": len(instances),
            "updated_at": datetime.utcnow(),
        }},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise ProblemSetNotFoundError(problem_set["id"])
    return updated


def find_instance(problem_set: dict, instance_id: str) -> Optional[dict]:
    for instance in problem_set.get("problem_instances") or []:
        if str(instance.get("instance_id") or instance.get("_id")) == str(instance_id):
            return instance
    return None


async def add_problem(
    db: AsyncIOMotorDatabase,
    problem_set: dict,
    instance_data: dict,
    modified_by: Optional[str] = None
) -> dict:
    instances = list(problem_set.get("problem_instances") or [])
    instances.append(build_instance(instance_data, len(instances) + 1, modified_by))
    return await _save_instances(db, problem_set, instances)


async def remove_problem(db: AsyncIOMotorDatabase, problem_set: dict, problem_id: int) -> dict:
    """Remove every instance of the given problem"""
    instances = [
        p for p in problem_set.get("problem_instances") or []
        if p.get("problem_id") != problem_id
    ]
    return await _save_instances(db, problem_set, instances)


async def update_problem_instance(
    db: AsyncIOMotorDatabase,
    problem_set: dict,
    instance_id: str,
    updates: dict,
    modified_by: Optional[str] = None
) -> dict:
    instances = [dict(p) for p in problem_set.get("problem_instances") or []]
    target = find_instance({"problem_instances": instances}, instance_id)
    if target is None:
        raise ProblemInstanceNotFoundError("Problem instance not found")

    target.update(updates)
    target["last_modified"] = datetime.utcnow()
    if modified_by:
        target["modified_by"] = modified_by
    return await _save_instances(db, problem_set, instances)


async def remove_problem_instance(db: AsyncIOMotorDatabase, problem_set: dict, instance_id: str) -> dict:
    instances = [
        p for p in problem_set.get("problem_instances") or []
        if str(p.get("instance_id") or p.get("_id")) != str(instance_id)
    ]
    return await _save_instances(db, problem_set, instances)


def reorder_instances(instances: List[dict], new_order: List[int]) -> List[dict]:
    """
    Arrange instances by problem id. Each id takes the first instance with that
    problem_id not already placed; order becomes its 1-based position.
    Unknown ids are skipped and instances left unnamed are dropped.
    """
    remaining = [dict(p) for p in instances]
    reordered = []
    for problem_id in new_order:
        match = next((p for p in remaining if p.get("problem_id") == problem_id), None)
        if match is None:
            continue
        remaining.remove(match)
        match["order"] = len(reordered) + 1
        reordered.append(match)
    return reordered


async def reorder_problems(db: AsyncIOMotorDatabase, problem_set: dict, new_order: List[int]) -> dict:
    instances = reorder_instances(problem_set.get("problem_instances") or [], new_order)
    return await _save_instances(db, problem_set, instances)

# ==================== ENROLLMENTS ====================

def _participant_query(user_id: str) -> dict:
    # Legacy rows stored participants as ObjectIds
    if is_object_id(user_id):
        return {"$or": [{"participants": user_id}, {"participants": ObjectId(user_id)}]}
    return {"participants": user_id}


def _participant_values(user_id: str) -> list:
    return [user_id, ObjectId(user_id)] if is_object_id(user_id) else [user_id]


async def get_problem_set_enrollment(db: AsyncIOMotorDatabase, enrollment_id: int) -> Optional[dict]:
    return await db.problemsetenrollments.find_one({"id": enrollment_id})


async def list_problem_set_enrollments(db: AsyncIOMotorDatabase, problem_set_id: str) -> List[dict]:
    cursor = db.problemsetenrollments.find({"problem_set_id": problem_set_id}).sort("enrolled_at", 1)
    return await cursor.to_list(length=None)


async def is_user_enrolled(db: AsyncIOMotorDatabase, problem_set: dict, user_id: str) -> bool:
    participants = {str(p) for p in problem_set.get("participants") or []}
    if user_id in participants:
        return True
    record = await db.problemsetenrollments.find_one({
        "problem_set_id": problem_set["id"],
        "user_id": user_id
    })
    return record is not None


async def enroll_in_problem_set(
    db: AsyncIOMotorDatabase,
    problem_set: dict,
    user_id: str,
    enrollment_type: str = "self"
) -> tuple[dict, bool]:
    """
    Enroll a user through both mechanisms: the participants array and an
    enrollment record. Returns (enrollment, created).
    """
    await db.problemsets.update_one(
        {"id": problem_set["id"]},
        {"$addToSet": {"participants": user_id}}
    )

    existing = await db.problemsetenrollments.find_one({
        "problem_set_id": problem_set["id"],
        "user_id": user_id
    })
    if existing:
        return existing, False

    now = datetime.utcnow()
    enrollment = {
        "id": await next_sequence(db, "problemsetenrollments"),
        "problem_set_id": problem_set["id"],
        "user_id": user_id,
        "enrollment_type": enrollment_type,
        "status": "active",
        "progress": 0.0,
        "completed_problems": [],
        "enrolled_at": now,
        "created_at": now,
        "updated_at": now,
    }
    try:
        await db.problemsetenrollments.insert_one(enrollment)
    except DuplicateKeyError:
        existing = await db.problemsetenrollments.find_one({
            "problem_set_id": problem_set["id"],
            "user_id": user_id
        })
        return existing, False
    logger.info(f"User {user_id} enrolled in problem set {problem_set['id']} ({enrollment_type})")
    return enrollment, True


async def update_problem_set_enrollment(
    db: AsyncIOMotorDatabase,
    enrollment_id: int,
    updates: dict
) -> Optional[dict]:
    updates["updated_at"] = datetime.utcnow()
    return await db.problemsetenrollments.find_one_and_update(
        {"id": enrollment_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )


async def delete_problem_set_enrollment(db: AsyncIOMotorDatabase, enrollment_id: int) -> dict:
    enrollment = await get_problem_set_enrollment(db, enrollment_id)
    if not enrollment:
        raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found")

    await db.problemsetenrollments.delete_one({"id": enrollment_id})
    await db.problemsets.update_one(
        {"id": enrollment["problem_set_id"]},
        {"$pullAll": {"participants": _participant_values(enrollment["user_id"])}}
    )
    return enrollment


async def get_enrolled_problem_set_ids(db: AsyncIOMotorDatabase, user_id: str) -> set:
    """
    Union of both enrollment mechanisms: enrollment records plus problem sets
    listing the user as a participant. Values are id or _id strings.
    """
    records = await db.problemsetenrollments.find({"user_id": user_id}).to_list(length=None)
    record_ids = [str(e["problem_set_id"]) for e in records]

    with_participant = await db.problemsets.find(
        _participant_query(user_id),
        {"id": 1, "_id": 1}
    ).to_list(length=None)
    participant_ids = [str(ps.get("id") or ps["_id"]) for ps in with_participant]

    logger.debug(
        f"User {user_id} enrollments: records={record_ids} participants={participant_ids}"
    )
    return set(record_ids) | set(participant_ids)


async def list_problem_sets_with_enrollment(db: AsyncIOMotorDatabase, user_id: Optional[str]) -> List[dict]:
    problem_sets = await db.problemsets.find({}).sort("created_at", -1).to_list(length=None)
    enrolled = await get_enrolled_problem_set_ids(db, user_id) if user_id else set()

    result = []
    for ps in problem_sets:
        result.append({
            **ps,
            "problems": ps.get("problems") or [],
            "tags": ps.get("tags") or [],
            "total_problems": count_problems(ps),
            "is_enrolled": str(ps.get("id")) in enrolled or str(ps.get("_id")) in enrolled,
        })
    return result

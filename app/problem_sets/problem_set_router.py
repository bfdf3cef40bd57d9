"""
PROBLEM SET ROUTER

Mounted under /api/problem-sets, /api/admin/problem-sets and
/api/admin/assignments. Write operations are admin-only regardless of prefix.
"""

from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from typing import Optional

from app.problem_sets.models import (
    ProblemSetCreate, ProblemSetUpdate, ProblemInstanceCreate, ProblemInstanceUpdate,
    ReorderPayload, AdminEnrollRequest
)
from app.problem_sets.database import (
    create_problem_set, get_problem_set, list_problem_sets, update_problem_set, delete_problem_set,
    find_by_difficulty, find_by_category, get_stats, average_difficulty, find_instance,
    add_problem, remove_problem, update_problem_instance, remove_problem_instance, reorder_problems,
    enroll_in_problem_set, list_problem_set_enrollments, is_user_enrolled,
    ProblemSetNotFoundError, ProblemInstanceNotFoundError
)
from app.database import serialize_mongo, serialize_many
from app.dependencies import (
    get_db, get_current_user, get_optional_user, require_admin, is_admin, Pagination
)
from app.system.logger import get_logger

router = APIRouter(tags=["Problem Sets"])
logger = get_logger(__name__)


def problem_set_response(problem_set: dict) -> dict:
    data = serialize_mongo(problem_set)
    data["average_difficulty"] = average_difficulty(problem_set)
    return data


async def _problem_set_or_404(db: AsyncIOMotorDatabase, problem_set_id: str) -> dict:
    problem_set = await get_problem_set(db, problem_set_id)
    if not problem_set:
        raise HTTPException(status_code=404, detail="Problem set not found")
    return problem_set

# ==================== LISTING ====================

@router.get("")
@router.get("/", include_in_schema=False)
async def list_problem_sets_endpoint(
    difficulty: Optional[str] = None,
    category: Optional[str] = None,
    page: Pagination = Depends(),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_optional_user)
):
    try:
        if difficulty:
            problem_sets = await find_by_difficulty(db, difficulty)
            if category:
                problem_sets = [ps for ps in problem_sets if ps.get("category") == category]
            problem_sets = problem_sets[page.skip:page.skip + page.limit]
        elif category:
            problem_sets = await find_by_category(db, category)
            problem_sets = problem_sets[page.skip:page.skip + page.limit]
        else:
            problem_sets = await list_problem_sets(db, is_admin(user), page.skip, page.limit)
        return [problem_set_response(ps) for ps in problem_sets]
    except Exception:
        logger.exception("Error fetching problem sets")
        raise HTTPException(status_code=500, detail="Failed to fetch problem sets")


@router.get("/stats")
async def problem_set_stats(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        return await get_stats(db)
    except Exception:
        logger.exception("Error computing problem set stats")
        raise HTTPException(status_code=500, detail="Failed to fetch problem set stats")


@router.get("/{problem_set_id}")
async def get_problem_set_endpoint(
    problem_set_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_optional_user)
):
    try:
        problem_set = await _problem_set_or_404(db, problem_set_id)

        if not is_admin(user) and not problem_set.get("is_public"):
            # Private sets are visible to enrolled users only
            if not user or not await is_user_enrolled(db, problem_set, user["sub"]):
                raise HTTPException(status_code=404, detail="Problem set not found")

        return problem_set_response(problem_set)
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error fetching problem set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch problem set")

# ==================== ADMIN CRUD ====================

@router.post("")
@router.post("/", include_in_schema=False)
async def create_problem_set_endpoint(
    payload: ProblemSetCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        created = await create_problem_set(db, payload.model_dump(mode="json"), admin["sub"])
        return problem_set_response(created)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Problem set with this id already exists")
    except Exception:
        logger.exception("Error creating problem set")
        raise HTTPException(status_code=500, detail="Failed to create problem set")


@router.patch("/{problem_set_id}")
async def update_problem_set_endpoint(
    problem_set_id: str,
    payload: ProblemSetUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        updated = await update_problem_set(
            db, problem_set_id, payload.model_dump(mode="json", exclude_unset=True)
        )
        if not updated:
            raise HTTPException(status_code=404, detail="Problem set not found")
        return problem_set_response(updated)
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error updating problem set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to update problem set")


@router.delete("/{problem_set_id}")
async def delete_problem_set_endpoint(
    problem_set_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        if not await delete_problem_set(db, problem_set_id):
            raise HTTPException(status_code=404, detail="Problem set not found")
        logger.info(f"Problem set {problem_set_id} deleted by {admin['sub']}")
        return {"message": "Problem set deleted"}
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error deleting problem set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to delete problem set")

# ==================== PROBLEM INSTANCES ====================

@router.post("/{problem_set_id}/problems")
async def add_problem_endpoint(
    problem_set_id: str,
    payload: ProblemInstanceCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        problem_set = await _problem_set_or_404(db, problem_set_id)
        updated = await add_problem(db, problem_set, payload.model_dump(mode="json"), admin["sub"])
        return problem_set_response(updated)
    except HTTPException:
        raise
    except ProblemSetNotFoundError:
        raise HTTPException(status_code=404, detail="Problem set not found")
    except Exception:
        logger.exception(f"Error adding problem to set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to add problem")


@router.delete("/{problem_set_id}/problems/{problem_id}")
async def remove_problem_endpoint(
    problem_set_id: str,
    problem_id: int,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        problem_set = await _problem_set_or_404(db, problem_set_id)
        return problem_set_response(await remove_problem(db, problem_set, problem_id))
    except HTTPException:
        raise
    except ProblemSetNotFoundError:
        raise HTTPException(status_code=404, detail="Problem set not found")
    except Exception:
        logger.exception(f"Error removing problem {problem_id} from set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to remove problem")


@router.patch("/{problem_set_id}/instances/{instance_id}")
async def update_instance_endpoint(
    problem_set_id: str,
    instance_id: str,
    payload: ProblemInstanceUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        problem_set = await _problem_set_or_404(db, problem_set_id)
        updated = await update_problem_instance(
            db, problem_set, instance_id,
            payload.model_dump(mode="json", exclude_unset=True),
            admin["sub"]
        )
        return problem_set_response(updated)
    except HTTPException:
        raise
    except ProblemInstanceNotFoundError:
        raise HTTPException(status_code=404, detail="Problem instance not found")
    except ProblemSetNotFoundError:
        raise HTTPException(status_code=404, detail="Problem set not found")
    except Exception:
        logger.exception(f"Error updating instance {instance_id} in set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to update problem instance")


@router.delete("/{problem_set_id}/instances/{instance_id}")
async def remove_instance_endpoint(
    problem_set_id: str,
    instance_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        problem_set = await _problem_set_or_404(db, problem_set_id)
        if find_instance(problem_set, instance_id) is None:
            raise HTTPException(status_code=404, detail="Problem instance not found")
        return problem_set_response(await remove_problem_instance(db, problem_set, instance_id))
    except HTTPException:
        raise
    except ProblemSetNotFoundError:
        raise HTTPException(status_code=404, detail="Problem set not found")
    except Exception:
        logger.exception(f"Error removing instance {instance_id} from set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to remove problem instance")


@router.put("/{problem_set_id}/reorder")
async def reorder_endpoint(
    problem_set_id: str,
    payload: ReorderPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        problem_set = await _problem_set_or_404(db, problem_set_id)
        return problem_set_response(await reorder_problems(db, problem_set, payload.order))
    except HTTPException:
        raise
    except ProblemSetNotFoundError:
        raise HTTPException(status_code=404, detail="Problem set not found")
    except Exception:
        logger.exception(f"Error reordering problem set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to reorder problems")

# ==================== ENROLLMENT ====================

@router.post("/{problem_set_id}/enroll")
async def self_enroll_endpoint(
    problem_set_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    try:
        problem_set = await _problem_set_or_404(db, problem_set_id)
        if not is_admin(user) and not problem_set.get("allow_direct_enrollment", False):
            raise HTTPException(status_code=403, detail="Direct enrollment is not allowed for this problem set")

        enrollment, created = await enroll_in_problem_set(db, problem_set, user["sub"], "self")
        return {
            "success": True,
            "enrollment": serialize_mongo(enrollment),
            "already_enrolled": not created
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error enrolling {user['sub']} in problem set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to enroll")


@router.get("/{problem_set_id}/enrollments")
async def list_enrollments_endpoint(
    problem_set_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        await _problem_set_or_404(db, problem_set_id)
        return serialize_many(await list_problem_set_enrollments(db, problem_set_id))
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error fetching enrollments for problem set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch enrollments")


@router.post("/{problem_set_id}/enrollments")
async def admin_enroll_endpoint(
    problem_set_id: str,
    payload: AdminEnrollRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        problem_set = await _problem_set_or_404(db, problem_set_id)
        enrolled = []
        for user_id in payload.user_ids:
            enrollment, _ = await enroll_in_problem_set(db, problem_set, user_id, "admin")
            enrolled.append(enrollment)
        return {"enrollments": serialize_many(enrolled), "count": len(enrolled)}
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error enrolling users in problem set {problem_set_id}")
        raise HTTPException(status_code=500, detail="Failed to enroll users")

"""
Enrollment compatibility endpoints used by the client UI.

Problem-set enrollment is tracked two ways: records in the
problemsetenrollments collection, and the participants array on each
problem set. These endpoints treat the union of both as the truth.
"""

from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.problem_sets.models import ProblemSetEnrollmentUpdate
from app.problem_sets.database import (
    list_problem_sets_with_enrollment, delete_problem_set_enrollment,
    update_problem_set_enrollment, EnrollmentNotFoundError
)
from app.database import serialize_mongo, serialize_many
from app.dependencies import get_db, get_current_user, require_admin
from app.system.logger import get_logger

router = APIRouter(tags=["Enrollments"])
logger = get_logger(__name__)


def _parse_enrollment_id(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid enrollment id")


@router.get("/problem-sets-with-enrollment")
async def problem_sets_with_enrollment(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Every problem set with an is_enrolled flag for the current user"""
    try:
        return serialize_many(await list_problem_sets_with_enrollment(db, user.get("sub")))
    except Exception:
        logger.exception("Error fetching problem sets with enrollment")
        raise HTTPException(status_code=500, detail="Failed to fetch problem sets")


@router.delete("/problem-set-enrollments/{enrollment_id}")
async def delete_enrollment(
    enrollment_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    enrollment_pk = _parse_enrollment_id(enrollment_id)
    try:
        await delete_problem_set_enrollment(db, enrollment_pk)
        return {"message": "Enrollment deleted"}
    except EnrollmentNotFoundError:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    except Exception:
        logger.exception(f"Error deleting enrollment {enrollment_pk}")
        raise HTTPException(status_code=500, detail="Failed to delete enrollment")


@router.patch("/problem-set-enrollments/{enrollment_id}")
async def update_enrollment(
    enrollment_id: str,
    payload: ProblemSetEnrollmentUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    enrollment_pk = _parse_enrollment_id(enrollment_id)
    try:
        updated = await update_problem_set_enrollment(
            db, enrollment_pk, payload.model_dump(mode="json", exclude_unset=True)
        )
        if not updated:
            raise HTTPException(status_code=404, detail="Enrollment not found")
        return serialize_mongo(updated)
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error updating enrollment {enrollment_pk}")
        raise HTTPException(status_code=500, detail="Failed to update enrollment")

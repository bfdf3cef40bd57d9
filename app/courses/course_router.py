from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from typing import List, Optional

from app.courses.models import CourseCreate, CourseUpdate, CourseDifficulty, CourseEnrollmentResponse
from app.courses.database import (
    create_course, get_course, list_courses, update_course, delete_course,
    find_by_user_enrollment, enroll_user, unenroll_user, list_course_enrollments,
    can_user_access_course, reset_user_course_progress, full_title
)
from app.database import serialize_mongo, serialize_many
from app.dependencies import (
    get_db, get_current_user, get_current_user_id, get_optional_user, require_admin, is_admin, Pagination
)
from app.system.logger import get_logger

router = APIRouter(tags=["Courses"])
logger = get_logger(__name__)


def course_response(course: dict) -> dict:
    data = serialize_mongo(course)
    data["full_title"] = full_title(course)
    return data


async def _course_or_404(db: AsyncIOMotorDatabase, course_id: int) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course

# ==================== COURSE CRUD ====================

@router.get("")
@router.get("/", include_in_schema=False)
async def list_courses_endpoint(
    category: Optional[str] = None,
    difficulty: Optional[CourseDifficulty] = None,
    page: Pagination = Depends(),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_optional_user)
):
    """List courses (admins also see private ones)"""
    try:
        filters = {"category": category, "difficulty": difficulty.value if difficulty else None}
        courses = await list_courses(db, filters, is_admin(user), page.skip, page.limit)
        return [course_response(c) for c in courses]
    except Exception:
        logger.exception("Error fetching courses")
        raise HTTPException(status_code=500, detail="Failed to fetch courses")


@router.get("/enrolled")
async def list_enrolled_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    try:
        courses = await find_by_user_enrollment(db, user_id)
        return [course_response(c) for c in courses]
    except Exception:
        logger.exception(f"Error fetching enrolled courses for {user_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch enrolled courses")


@router.get("/{course_id}")
async def get_course_endpoint(
    course_id: int,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    try:
        course = await _course_or_404(db, course_id)
        if not await can_user_access_course(db, course, user["sub"], is_admin(user)):
            raise HTTPException(status_code=403, detail="Access denied")
        return course_response(course)
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error fetching course {course_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch course")


@router.post("")
@router.post("/", include_in_schema=False)
async def create_course_endpoint(
    course: CourseCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        created = await create_course(db, course.model_dump(mode="json"), admin["sub"])
        return course_response(created)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Course with this id already exists")
    except Exception:
        logger.exception("Error creating course")
        raise HTTPException(status_code=500, detail="Failed to create course")


@router.patch("/{course_id}")
async def update_course_endpoint(
    course_id: int,
    updates: CourseUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        changes = updates.model_dump(mode="json", exclude_unset=True)
        updated = await update_course(db, course_id, changes)
        if not updated:
            raise HTTPException(status_code=404, detail="Course not found")
        return course_response(updated)
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error updating course {course_id}")
        raise HTTPException(status_code=500, detail="Failed to update course")


@router.delete("/{course_id}")
async def delete_course_endpoint(
    course_id: int,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        if not await delete_course(db, course_id):
            raise HTTPException(status_code=404, detail="Course not found")
        logger.info(f"Course {course_id} deleted by {admin['sub']}")
        return {"message": "Course deleted"}
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error deleting course {course_id}")
        raise HTTPException(status_code=500, detail="Failed to delete course")

# ==================== ENROLLMENT ====================

@router.post("/{course_id}/enroll")
async def enroll_endpoint(
    course_id: int,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Self-enroll; only allowed on courses open for direct enrollment"""
    try:
        course = await _course_or_404(db, course_id)
        if not is_admin(user) and not course.get("allow_direct_enrollment", False):
            raise HTTPException(status_code=403, detail="Direct enrollment is not allowed for this course")

        enrollment, created = await enroll_user(db, course_id, user["sub"])
        return {
            "success": True,
            "enrollment": serialize_mongo(enrollment),
            "already_enrolled": not created,
            "message": "Enrolled successfully" if created else "Already enrolled in this course"
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error enrolling user {user['sub']} in course {course_id}")
        raise HTTPException(status_code=500, detail="Failed to enroll")


@router.delete("/{course_id}/enroll")
async def unenroll_endpoint(
    course_id: int,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    try:
        await _course_or_404(db, course_id)
        if not await unenroll_user(db, course_id, user["sub"]):
            raise HTTPException(status_code=404, detail="Not enrolled in this course")
        return {"success": True, "message": "Unenrolled"}
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error unenrolling user {user['sub']} from course {course_id}")
        raise HTTPException(status_code=500, detail="Failed to unenroll")


@router.get("/{course_id}/enrollments", response_model=List[CourseEnrollmentResponse])
async def list_enrollments_endpoint(
    course_id: int,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        await _course_or_404(db, course_id)
        return serialize_many(await list_course_enrollments(db, course_id))
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error fetching enrollments for course {course_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch enrollments")


@router.post("/{course_id}/reset-progress")
async def reset_progress_endpoint(
    course_id: int,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Reset the current user's progress in a course"""
    try:
        course = await _course_or_404(db, course_id)
        if not await can_user_access_course(db, course, user["sub"], is_admin(user)):
            raise HTTPException(status_code=403, detail="Access denied")
        await reset_user_course_progress(db, user["sub"], course_id)
        return {"success": True}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error resetting course progress")
        raise HTTPException(status_code=500, detail="Failed to reset course progress")

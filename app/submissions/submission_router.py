from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.submissions.models import SubmissionCreate
from app.submissions.database import (
    create_submission, get_submission, list_submissions, delete_submission
)
from app.problem_sets.database import get_problem_set, is_user_enrolled
from app.contests.database import get_contest, get_participant, contest_status
from app.contests.models import ContestStatus
from app.database import serialize_mongo, serialize_many
from app.dependencies import get_db, get_current_user, is_admin, Pagination
from app.system.logger import get_logger

router = APIRouter(tags=["Submissions"])
logger = get_logger(__name__)


async def _check_problem_set_access(db: AsyncIOMotorDatabase, problem_set_id: str, user: dict):
    problem_set = await get_problem_set(db, problem_set_id)
    if not problem_set:
        raise HTTPException(status_code=404, detail="Problem set not found")
    if not is_admin(user) and not await is_user_enrolled(db, problem_set, user["sub"]):
        raise HTTPException(status_code=403, detail="Not enrolled in this problem set")


async def _check_contest_access(db: AsyncIOMotorDatabase, contest_id: str, user: dict):
    contest = await get_contest(db, contest_id)
    if not contest:
        raise HTTPException(status_code=404, detail="Contest not found")
    if is_admin(user):
        return
    if not await get_participant(db, contest_id, user["sub"]):
        raise HTTPException(status_code=403, detail="Not registered for this contest")
    if contest_status(contest) != ContestStatus.ACTIVE:
        raise HTTPException(status_code=400, detail="Contest is not running")


@router.get("")
@router.get("/", include_in_schema=False)
async def list_submissions_endpoint(
    user_id: Optional[str] = None,
    problem_id: Optional[int] = None,
    problem_set_id: Optional[str] = None,
    page: Pagination = Depends(),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Own submissions; admins may look at anyone's (or everyone's)"""
    try:
        owner = user_id if is_admin(user) else user["sub"]
        filters = {"user_id": owner, "problem_id": problem_id, "problem_set_id": problem_set_id}
        submissions = await list_submissions(db, filters, page.skip, page.limit)
        return serialize_many(submissions)
    except Exception:
        logger.exception("Error listing submissions")
        raise HTTPException(status_code=500, detail="Failed to fetch submissions")


@router.post("")
@router.post("/", include_in_schema=False)
async def create_submission_endpoint(
    payload: SubmissionCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    try:
        if payload.problem_set_id:
            await _check_problem_set_access(db, payload.problem_set_id, user)
        if payload.contest_id:
            await _check_contest_access(db, payload.contest_id, user)

        submission = await create_submission(db, payload.model_dump(), user["sub"])
        logger.info(f"Submission {submission['id']} created by {user['sub']} for problem {payload.problem_id}")
        return serialize_mongo(submission)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error creating submission")
        raise HTTPException(status_code=500, detail="Failed to create submission")


@router.delete("/{submission_id}")
async def delete_submission_endpoint(
    submission_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    try:
        submission = await get_submission(db, submission_id)
        if not submission:
            raise HTTPException(status_code=404, detail="Submission not found")
        if submission["user_id"] != user["sub"] and not is_admin(user):
            raise HTTPException(status_code=403, detail="Not authorized")

        await delete_submission(db, submission_id)
        return {"message": "Submission deleted"}
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error deleting submission {submission_id}")
        raise HTTPException(status_code=500, detail="Failed to delete submission")

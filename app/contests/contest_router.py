from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.contests.models import ContestCreate, ContestUpdate, ContestStatus
from app.contests.database import (
    create_contest, get_contest, list_contests, update_contest, delete_contest,
    register_participant, list_participants, contest_status, valid_window, to_naive_utc
)
from app.database import serialize_mongo, serialize_many
from app.dependencies import (
    get_db, get_current_user, get_optional_user, require_admin, is_admin, Pagination
)
from app.system.logger import get_logger

router = APIRouter(tags=["Contests"])
logger = get_logger(__name__)


def contest_response(contest: dict) -> dict:
    data = serialize_mongo(contest)
    data["status"] = contest_status(contest).value
    return data


async def _visible_contest(db: AsyncIOMotorDatabase, contest_id: str, user: Optional[dict]) -> dict:
    contest = await get_contest(db, contest_id)
    if not contest or (not contest.get("is_public") and not is_admin(user)):
        raise HTTPException(status_code=404, detail="Contest not found")
    return contest


@router.get("")
@router.get("/", include_in_schema=False)
async def list_contests_endpoint(
    page: Pagination = Depends(),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_optional_user)
):
    try:
        contests = await list_contests(db, is_admin(user), page.skip, page.limit)
        return [contest_response(c) for c in contests]
    except Exception:
        logger.exception("Error fetching contests")
        raise HTTPException(status_code=500, detail="Failed to fetch contests")


@router.get("/{contest_id}")
async def get_contest_endpoint(
    contest_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_optional_user)
):
    try:
        return contest_response(await _visible_contest(db, contest_id, user))
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error fetching contest {contest_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch contest")


@router.post("")
@router.post("/", include_in_schema=False)
async def create_contest_endpoint(
    payload: ContestCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    if not valid_window(to_naive_utc(payload.start_time), to_naive_utc(payload.end_time)):
        raise HTTPException(status_code=400, detail="end_time must be after start_time")
    try:
        return contest_response(await create_contest(db, payload.model_dump(), admin["sub"]))
    except Exception:
        logger.exception("Error creating contest")
        raise HTTPException(status_code=500, detail="Failed to create contest")


@router.patch("/{contest_id}")
async def update_contest_endpoint(
    contest_id: str,
    payload: ContestUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        contest = await get_contest(db, contest_id)
        if not contest:
            raise HTTPException(status_code=404, detail="Contest not found")

        changes = payload.model_dump(exclude_unset=True)
        start = to_naive_utc(changes.get("start_time", contest["start_time"]))
        end = to_naive_utc(changes.get("end_time", contest["end_time"]))
        if not valid_window(start, end):
            raise HTTPException(status_code=400, detail="end_time must be after start_time")

        return contest_response(await update_contest(db, contest_id, changes))
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error updating contest {contest_id}")
        raise HTTPException(status_code=500, detail="Failed to update contest")


@router.delete("/{contest_id}")
async def delete_contest_endpoint(
    contest_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        if not await delete_contest(db, contest_id):
            raise HTTPException(status_code=404, detail="Contest not found")
        logger.info(f"Contest {contest_id} deleted by {admin['sub']}")
        return {"message": "Contest deleted"}
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error deleting contest {contest_id}")
        raise HTTPException(status_code=500, detail="Failed to delete contest")


@router.post("/{contest_id}/register")
async def register_endpoint(
    contest_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    try:
        contest = await _visible_contest(db, contest_id, user)
        if contest_status(contest) == ContestStatus.ENDED:
            raise HTTPException(status_code=400, detail="Contest has already ended")

        participant, created = await register_participant(db, contest_id, user["sub"])
        return {
            "success": True,
            "participant": serialize_mongo(participant),
            "already_registered": not created
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error registering {user['sub']} for contest {contest_id}")
        raise HTTPException(status_code=500, detail="Failed to register")


@router.get("/{contest_id}/participants")
async def list_participants_endpoint(
    contest_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    try:
        if not await get_contest(db, contest_id):
            raise HTTPException(status_code=404, detail="Contest not found")
        return serialize_many(await list_participants(db, contest_id))
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Error fetching participants for contest {contest_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch participants")

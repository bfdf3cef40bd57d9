from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import CORS_ORIGINS, VERSION
from app.database import get_db_instance, create_indexes
from app.system.logger import setup_logging, get_logger
from app.system.maintenance import MaintenanceMiddleware, load_state, router as maintenance_router
from app.system.health_router import router as health_router
from app.courses.course_router import router as course_router
from app.problem_sets.problem_set_router import router as problem_set_router
from app.problem_sets.enrollment_router import router as enrollment_router
from app.submissions.submission_router import router as submission_router
from app.contests.contest_router import router as contest_router

setup_logging()
logger = get_logger(__name__)

app = FastAPI(title="Learning Platform API", version=VERSION)


@app.on_event("startup")
async def startup_event():
    db = get_db_instance()
    await create_indexes(db)
    await load_state(db)
    logger.info("Learning platform API started")


app.add_middleware(MaintenanceMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ROUTER REGISTRATION ====================
# Admin routes
app.include_router(problem_set_router, prefix="/api/admin/problem-sets")
app.include_router(problem_set_router, prefix="/api/admin/assignments")  # alias
app.include_router(contest_router, prefix="/api/admin/contests")

# Other API routes
app.include_router(problem_set_router, prefix="/api/problem-sets")
app.include_router(course_router, prefix="/api/courses")
app.include_router(submission_router, prefix="/api/submissions")
app.include_router(contest_router, prefix="/api/contests")
app.include_router(enrollment_router, prefix="/api")
app.include_router(maintenance_router, prefix="/api")
app.include_router(health_router, prefix="/api")
# ============================================================


# JSON 404 for unknown API paths; must stay registered last
@app.api_route(
    "/api/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False
)
async def api_not_found(request: Request, path: str):
    return JSONResponse(status_code=404, content={"detail": "Not Found"})

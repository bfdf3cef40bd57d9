from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional
from enum import Enum

# ==================== ENUMS ====================

class ProblemDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class EnrollmentType(str, Enum):
    SELF = "self"
    ADMIN = "admin"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"

# ==================== PROBLEM INSTANCE MODELS ====================

class ProblemInstanceCreate(BaseModel):
    problem_id: int
    title: Optional[str] = None
    description: Optional[str] = None
    difficulty: Optional[ProblemDifficulty] = None
    custom_test_cases: List[Any] = []
    custom_examples: List[Any] = []
    custom_starter_code: Optional[Any] = None
    time_limit: Optional[float] = None
    memory_limit: Optional[int] = None
    hints: List[str] = []
    constraints: Optional[str] = None
    input_format: Optional[str] = None
    output_format: Optional[str] = None
    notes: Optional[str] = None
    order: Optional[int] = None  # defaults to the next position
    is_customized: bool = False
    selected_problem_id: Optional[int] = None
    original_problem_id: Optional[int] = None

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ProblemInstanceUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    difficulty: Optional[ProblemDifficulty] = None
    custom_test_cases: Optional[List[Any]] = None
    custom_examples: Optional[List[Any]] = None
    custom_starter_code: Optional[Any] = None
    time_limit: Optional[float] = None
    memory_limit: Optional[int] = None
    hints: Optional[List[str]] = None
    constraints: Optional[str] = None
    input_format: Optional[str] = None
    output_format: Optional[str] = None
    notes: Optional[str] = None
    order: Optional[int] = None
    is_customized: Optional[bool] = None
    selected_problem_id: Optional[int] = None
    original_problem_id: Optional[int] = None

    @field_validator("order", "is_customized")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ReorderPayload(BaseModel):
    order: List[int]  # problem ids in their new order

# ==================== PROBLEM SET MODELS ====================

class ProblemSetCreate(BaseModel):
    title: str
    description: Optional[str] = None
    difficulty: str
    category: Optional[str] = None
    tags: List[str] = []
    problem_ids: List[str] = []
    problem_instances: List[ProblemInstanceCreate] = []
    is_public: bool = False
    estimated_time: Optional[int] = None
    allow_direct_enrollment: bool = False

    @field_validator("title", "difficulty")
    @classmethod
    def validate_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("description", "category")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ProblemSetUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    difficulty: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    problem_ids: Optional[List[str]] = None
    is_public: Optional[bool] = None
    estimated_time: Optional[int] = None
    allow_direct_enrollment: Optional[bool] = None

    @field_validator("title", "difficulty", "tags", "problem_ids", "is_public", "allow_direct_enrollment")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("title", "difficulty")
    @classmethod
    def validate_required(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

# ==================== ENROLLMENT MODELS ====================

class AdminEnrollRequest(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)


class ProblemSetEnrollmentUpdate(BaseModel):
    status: Optional[EnrollmentStatus] = None
    progress: Optional[float] = Field(None, ge=0, le=100)
    completed_problems: Optional[List[int]] = None
    enrollment_type: Optional[EnrollmentType] = None

    @field_validator("status", "progress", "completed_problems", "enrollment_type")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum

# ==================== ENUMS ====================

class CourseDifficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


def _strip(v):
    return v.strip() if isinstance(v, str) else v

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[CourseDifficulty] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    prerequisites: List[str] = []
    learning_objectives: List[str] = []
    problems: List[int] = []
    modules: List[int] = []
    is_public: bool = False
    enable_mark_complete: bool = True
    allow_direct_enrollment: bool = False
    tags: List[str] = []
    rating: Optional[float] = Field(None, ge=0, le=5)
    completion_rate: float = Field(0, ge=0, le=100)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Course title is required")
        return v

    @field_validator("description", "category")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[CourseDifficulty] = None
    estimated_hours: Optional[float] = Field(None, ge=0)
    prerequisites: Optional[List[str]] = None
    learning_objectives: Optional[List[str]] = None
    problems: Optional[List[int]] = None
    modules: Optional[List[int]] = None
    is_public: Optional[bool] = None
    enable_mark_complete: Optional[bool] = None
    allow_direct_enrollment: Optional[bool] = None
    tags: Optional[List[str]] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    completion_rate: Optional[float] = Field(None, ge=0, le=100)

    @field_validator(
        "title", "is_public", "enable_mark_complete", "allow_direct_enrollment",
        "prerequisites", "learning_objectives", "problems", "modules", "tags", "completion_rate"
    )
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Course title is required")
        return v

    @field_validator("description", "category")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)

# ==================== ENROLLMENT MODELS ====================

class CourseEnrollmentResponse(BaseModel):
    id: int
    course_id: int
    user_id: str
    progress: float = 0.0
    completed_modules: List[int] = []
    enrolled_at: datetime

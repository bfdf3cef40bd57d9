from pydantic import BaseModel, field_validator
from typing import Optional


class SubmissionCreate(BaseModel):
    problem_id: int
    language: str
    code: str
    problem_set_id: Optional[str] = None
    contest_id: Optional[str] = None

    @field_validator("language")
    @classmethod
    def validate_language(cls, v):
        v = v.strip().lower()
        if not v:
            raise ValueError("language is required")
        return v

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        if not v.strip():
            raise ValueError("code must not be empty")
        return v

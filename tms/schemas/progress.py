"""
tms/schemas/progress.py
Pydantic schemas for section completion and course progress

All endpoints use the standardized response format:
{
    "success": bool,
    "message": str,
    "data": dict
}
"""
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgressStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


# ================= REQUEST SCHEMAS =================

class CompleteSectionRequest(BaseModel):
    """
    Request schema for marking a section as completed.

    Used by: POST /api/progress/sections/{section_id}/complete
    """
    course_id: str = Field(..., min_length=1, description="Course the section belongs to")
    time_spent_seconds: int = Field(0, ge=0, description="Time spent since the last completion")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "course_id": "3f1c9a0e-6c55-4b1e-9d2b-9d8d3c2f4a10",
            "time_spent_seconds": 180
        }
    })


# ================= RESPONSE SCHEMAS =================

class StandardResponse(BaseModel):
    """
    Standardized response format for all endpoints.
    """
    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Human-readable status message")
    data: Any = Field(..., description="Endpoint-specific response data")


class CompletionRecordView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    learner_id: str
    course_id: str
    section_id: str
    completed: bool
    completed_at: Optional[datetime] = None
    time_spent_seconds: int = 0


class CourseProgressSnapshot(BaseModel):
    """Computed on read, never stored."""
    completed_sections: int = Field(..., ge=0)
    total_sections: int = Field(..., ge=0)
    progress_percentage: int = Field(..., ge=0, le=100)


class SectionCompletionResult(BaseModel):
    record: CompletionRecordView
    course_progress: CourseProgressSnapshot


class LearnerCourseSummary(BaseModel):
    """One row of a learner's course listing."""
    id: str
    course_code: Optional[str] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    estimated_duration: Optional[int] = None
    progress: int = Field(..., ge=0, le=100)
    sections_completed: int
    total_sections: int
    status: ProgressStatus
    assigned_at: Optional[datetime] = None
    last_accessed: Optional[datetime] = None
    due_date: Optional[datetime] = None


class LearnerStats(BaseModel):
    enrolled_courses: int
    completed_courses: int
    average_progress: int = Field(..., ge=0, le=100)


class LearnerCourseList(BaseModel):
    learner_id: str
    courses: List[LearnerCourseSummary] = Field(default_factory=list)

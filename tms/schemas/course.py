"""
tms/schemas/course.py
Pydantic schemas for course authoring and assignment
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SectionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: Optional[str] = None
    video_url: Optional[str] = Field(None, max_length=500)
    duration: Optional[int] = Field(None, ge=0, description="Minutes")


class CourseCreate(BaseModel):
    """Used by: POST /api/courses. Sections keep the order they are sent in."""
    course_code: Optional[str] = Field(None, max_length=50)
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    estimated_duration: Optional[int] = Field(None, ge=0)
    sections: List[SectionCreate] = Field(default_factory=list)


class AssignmentCreate(BaseModel):
    """Used by: POST /api/courses/{course_id}/assignments"""
    learner_id: str = Field(..., min_length=1, max_length=64)
    due_date: Optional[datetime] = None

"""
tms/routes/courses.py
Course authoring and assignment endpoints (teacher/admin)
"""
import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tms.database import get_db
from tms.schemas.course import AssignmentCreate, CourseCreate, SectionCreate
from tms.schemas.progress import StandardResponse
from tms.security.rbac import AuthContext, require_any_role, require_staff
from tms.services import course_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.post("", response_model=StandardResponse, status_code=201)
async def create_course(
    payload: CourseCreate,
    context: AuthContext = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    course = await course_service.create_course(db, payload)
    return StandardResponse(
        success=True,
        message="Course created successfully",
        data=course.to_dict(include_sections=True)
    )


@router.get("/{course_id}", response_model=StandardResponse)
async def get_course(
    course_id: str,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    course = await course_service.get_course(db, course_id)
    return StandardResponse(success=True, message="Course loaded", data=course.to_dict(include_sections=True))


@router.post("/{course_id}/sections", response_model=StandardResponse, status_code=201)
async def add_section(
    course_id: str,
    payload: SectionCreate,
    context: AuthContext = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Append a section to the end of a course (teacher/admin)."""
    section = await course_service.add_section(db, course_id, payload)
    return StandardResponse(success=True, message="Section added", data=section.to_dict())


@router.post("/{course_id}/assignments", response_model=StandardResponse)
async def assign_course(
    course_id: str,
    payload: AssignmentCreate,
    response: Response,
    context: AuthContext = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign a course to a learner.

    201 when the assignment is new, 200 when it already existed.
    """
    result = await course_service.assign_course(db, course_id, payload.learner_id, payload.due_date)
    if result["created"]:
        response.status_code = 201
        message = "Course assigned"
    else:
        message = "Course already assigned"
    return StandardResponse(success=True, message=message, data=result)

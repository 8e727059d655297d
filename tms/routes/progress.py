"""
tms/routes/progress.py
Section completion and course progress endpoints

KEY FEATURES:
- Standardized response format: {success, message, data}
- Completion is an idempotent upsert; time spent accumulates
- Course progress is computed on every read, never cached
- Learners see their own progress; teachers and admins see anyone's
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tms.database import get_db
from tms.schemas.progress import CompleteSectionRequest, StandardResponse
from tms.security.rbac import AuthContext, ensure_self_or_staff, require_any_role
from tms.services import progress_aggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/progress", tags=["Progress"])


@router.post("/sections/{section_id}/complete", response_model=StandardResponse)
async def complete_section(
    section_id: str,
    payload: CompleteSectionRequest,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """
    Mark a section as completed for the calling learner.

    BEHAVIOR:
    - First call creates the completion record
    - Later calls keep it completed, refresh completed_at and add time spent

    RESPONSE data:
        record: completion record
        course_progress: {completed_sections, total_sections, progress_percentage}
    """
    result = await progress_aggregator.mark_section_complete(
        db, context.user_id, payload.course_id, section_id, payload.time_spent_seconds
    )
    return StandardResponse(
        success=True,
        message="Section marked as completed",
        data=result.model_dump(mode="json")
    )


@router.get("/{learner_id}/courses/{course_id}", response_model=StandardResponse)
async def get_course_progress(
    learner_id: str,
    course_id: str,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """Every completion record of the learner in the course (possibly none)."""
    ensure_self_or_staff(context, learner_id)
    records = await progress_aggregator.get_learner_progress(db, learner_id, course_id)
    return StandardResponse(
        success=True,
        message="Progress loaded",
        data=[r.model_dump(mode="json") for r in records]
    )


@router.get("/{learner_id}/courses/{course_id}/summary", response_model=StandardResponse)
async def get_course_progress_summary(
    learner_id: str,
    course_id: str,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    ensure_self_or_staff(context, learner_id)
    snapshot = await progress_aggregator.compute_course_progress(db, learner_id, course_id)
    return StandardResponse(success=True, message="Progress computed", data=snapshot.model_dump(mode="json"))

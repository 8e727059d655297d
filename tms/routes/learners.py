"""
tms/routes/learners.py
Learner dashboard endpoints: assigned courses with progress, and summary stats
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tms.database import get_db
from tms.schemas.progress import LearnerCourseList, StandardResponse
from tms.security.rbac import AuthContext, ensure_self_or_staff, require_any_role
from tms.services import progress_aggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/learners", tags=["Learners"])


@router.get("/{learner_id}/courses", response_model=StandardResponse)
async def list_courses(
    learner_id: str,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    ensure_self_or_staff(context, learner_id, "course list")
    courses = await progress_aggregator.list_learner_courses(db, learner_id)
    data = LearnerCourseList(learner_id=learner_id, courses=courses)
    return StandardResponse(success=True, message="Courses loaded", data=data.model_dump(mode="json"))


@router.get("/{learner_id}/stats", response_model=StandardResponse)
async def get_stats(
    learner_id: str,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    ensure_self_or_staff(context, learner_id, "stats")
    stats = await progress_aggregator.get_learner_stats(db, learner_id)
    return StandardResponse(success=True, message="Stats loaded", data=stats.model_dump(mode="json"))

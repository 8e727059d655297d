"""
tms/routes/assessments.py
Assessment authoring, submission and grading endpoints

KEY FEATURES:
- Standardized response format: {success, message, data}
- Every submit creates a new submission (resubmission allowed)
- Server-side grading: answer keys never leave the server before submit
- The learner is always the token subject, never a body field
"""
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tms.config.settings import settings
from tms.database import get_db
from tms.schemas.assessment import AssessmentCreate, ManualGradeRequest, SubmitAssessmentRequest
from tms.schemas.progress import StandardResponse
from tms.security.rate_limit import limiter
from tms.security.rbac import AuthContext, ensure_self_or_staff, require_any_role, require_staff
from tms.services import assessment_service, submission_grader

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Assessments"])


@router.post("/assessments", response_model=StandardResponse, status_code=201)
async def create_assessment(
    payload: AssessmentCreate,
    context: AuthContext = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Create an assessment with its questions (teacher/admin)."""
    assessment = await assessment_service.create_assessment(db, payload)
    view = await assessment_service.get_assessment(db, assessment.id, include_questions=True)
    return StandardResponse(
        success=True,
        message="Assessment created successfully",
        data=view.model_dump(mode="json")
    )


@router.get("/assessments", response_model=StandardResponse)
async def list_assessments(
    course_id: str = Query(..., min_length=1),
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """Assessments of one course, so learners can find what to take."""
    views = await assessment_service.list_assessments_by_course(db, course_id)
    return StandardResponse(
        success=True,
        message="Assessments loaded",
        data=[v.model_dump(mode="json") for v in views]
    )


@router.get("/assessments/{assessment_id}", response_model=StandardResponse)
async def get_assessment(
    assessment_id: str,
    include_questions: bool = False,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    view = await assessment_service.get_assessment(db, assessment_id, include_questions)
    return StandardResponse(success=True, message="Assessment loaded", data=view.model_dump(mode="json"))


@router.post("/assessments/{assessment_id}/submit", response_model=StandardResponse)
@limiter.limit(settings.SUBMIT_RATE_LIMIT)
async def submit_assessment(
    request: Request,  # Required by slowapi
    assessment_id: str,
    payload: SubmitAssessmentRequest,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit answers for auto-grading.

    REQUEST:
        {"answers": [{"question_id": "...", "answer_text": "A"}]}

    RESPONSE data:
        submission_id, submitted_at, auto_graded_score, max_auto_graded_score,
        pending_manual_grading, max_score, correct_count, total_questions,
        percent_correct, answer_details[]
    """
    logger.info(
        f"Submit assessment: assessment_id={assessment_id}, learner={context.user_id}, "
        f"answers={len(payload.answers)}"
    )
    result = await submission_grader.submit_assessment(db, assessment_id, context.user_id, payload.answers)
    return StandardResponse(
        success=True,
        message="Assessment submitted. Objective questions auto-graded. Text answers pending review.",
        data=result.model_dump(mode="json")
    )


@router.get("/assessments/{assessment_id}/submissions/{submission_id}", response_model=StandardResponse)
async def get_submission(
    assessment_id: str,
    submission_id: str,
    context: AuthContext = Depends(require_any_role),
    db: AsyncSession = Depends(get_db)
):
    view = await submission_grader.get_submission(db, assessment_id, submission_id)
    ensure_self_or_staff(context, view.learner_id, "submission")
    return StandardResponse(success=True, message="Submission loaded", data=view.model_dump(mode="json"))


@router.post("/submissions/{submission_id}/answers/{question_id}/grade", response_model=StandardResponse)
async def grade_answer(
    submission_id: str,
    question_id: str,
    payload: ManualGradeRequest,
    context: AuthContext = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Manually grade one free-text answer (teacher/admin)."""
    logger.info(
        f"Manual grade: submission={submission_id}, question={question_id}, "
        f"grader={context.user_id}, points={payload.points_earned}"
    )
    view = await submission_grader.apply_manual_grade(
        db, submission_id, question_id, payload.points_earned, payload.is_correct
    )
    return StandardResponse(success=True, message="Answer graded", data=view.model_dump(mode="json"))

"""
tms/services/assessment_service.py
Assessment authoring
"""
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tms.exceptions import StoreFailureError
from tms.orm.assessment import Assessment, AssessmentQuestion, QuestionType
from tms.schemas.assessment import AssessmentCreate, AssessmentView
from tms.services.course_service import get_course
from tms.services.submission_grader import load_assessment

logger = logging.getLogger(__name__)


async def create_assessment(db: AsyncSession, payload: AssessmentCreate) -> Assessment:
    """Create an assessment and its questions, numbered 1..n in the order given."""
    await get_course(db, payload.course_id)

    assessment = Assessment(
        course_id=payload.course_id,
        title=payload.title,
        description=payload.description,
        duration=payload.duration,
        passing_score=payload.passing_score,
    )
    assessment.questions = [
        AssessmentQuestion(
            question_type=QuestionType(q.question_type),
            question_text=q.question_text,
            option_a=q.options.get("A"),
            option_b=q.options.get("B"),
            option_c=q.options.get("C"),
            option_d=q.options.get("D"),
            correct_label=q.correct_label,
            points=q.points,
            order_index=index,
        )
        for index, q in enumerate(payload.questions, start=1)
    ]

    try:
        db.add(assessment)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreFailureError("create assessment", e) from e

    logger.info(
        f"Assessment created: id={assessment.id}, course={payload.course_id}, "
        f"questions={len(assessment.questions)}"
    )
    return assessment


async def get_assessment(db: AsyncSession, assessment_id: str, include_questions: bool = False) -> AssessmentView:
    """
    Assessment metadata, optionally with questions.

    Answer keys are never included: this view is what learners see.
    """
    assessment = await load_assessment(db, assessment_id)
    view = AssessmentView.model_validate(assessment.to_dict())

    if include_questions:
        view.questions = [q.to_dict() for q in assessment.questions]
        view.total_questions = len(assessment.questions)
        view.total_points = sum(q.points or 0 for q in assessment.questions)
    return view


async def list_assessments_by_course(db: AsyncSession, course_id: str) -> List[AssessmentView]:
    """
    Every assessment of a course, oldest first, without questions.

    Raises:
        NotFoundError: course does not exist
    """
    await get_course(db, course_id)
    try:
        result = await db.execute(
            select(Assessment)
            .where(Assessment.course_id == course_id)
            .order_by(Assessment.created_at)
        )
        assessments = result.scalars().all()
    except SQLAlchemyError as e:
        raise StoreFailureError("list assessments", e) from e

    views = []
    for assessment in assessments:
        view = AssessmentView.model_validate(assessment.to_dict())
        view.total_questions = len(assessment.questions)
        view.total_points = sum(q.points or 0 for q in assessment.questions)
        views.append(view)

    logger.info(f"Listed assessments: course={course_id}, count={len(views)}")
    return views

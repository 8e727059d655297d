"""
tms/services/submission_grader.py
Assessment submission and auto-grading

Flow for one submit:
1. Load the assessment (NotFound if it does not exist) and its questions
2. Match each submitted answer to a question; unknown ids are skipped
3. Objective questions are scored immediately, free-text ones are parked
   in the pending-manual pool with unknown correctness
4. Persist one Submission with one GradedAnswer per matched answer

Submitting twice creates two submissions. Preventing repeated attempts is
the caller's policy, not this module's.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tms.exceptions import InvalidInputError, NotFoundError, StoreFailureError
from tms.orm.assessment import Assessment, AssessmentQuestion, QuestionType
from tms.orm.submission import GradedAnswer, Submission, SubmissionStatus
from tms.schemas.assessment import (
    AnswerDetail,
    FreeTextQuestion,
    GradingResult,
    GradingTally,
    ObjectiveQuestion,
    Question,
    SubmissionAnswerView,
    SubmissionView,
    SubmittedAnswer,
)
from tms.utils.percentages import percentage

logger = logging.getLogger(__name__)


def to_typed_question(row: AssessmentQuestion) -> Question:
    """Convert a stored question row into the tagged question variant."""
    if row.question_type == QuestionType.OBJECTIVE:
        if not row.correct_label:
            logger.warning(f"Objective question without answer key: question_id={row.id}")
        return ObjectiveQuestion(
            id=row.id,
            points=row.points or 0,
            order_index=row.order_index,
            options=row.options(),
            correct_label=row.correct_label,
        )
    return FreeTextQuestion(id=row.id, points=row.points or 0, order_index=row.order_index)


def grade_answers(questions: Sequence[Question], answers: Sequence[SubmittedAnswer]) -> GradingTally:
    """
    Grade answers against a question set. Pure: touches no store.

    - max_score is the sum of every question's points, answered or not
    - an answer whose question_id is not in the set is dropped
    - only the first answer for a given question is graded
    """
    by_id: Dict[str, Question] = {q.id: q for q in questions}
    tally = GradingTally(
        max_score=sum(q.points for q in questions),
        total_questions=len(questions),
    )
    seen = set()

    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            logger.debug(f"Skipping answer for unknown question_id={answer.question_id}")
            continue
        if question.id in seen:
            logger.debug(f"Skipping repeated answer for question_id={question.id}")
            continue
        seen.add(question.id)

        if isinstance(question, ObjectiveQuestion):
            is_correct = question.is_correct(answer.answer_text)
            points_earned = question.points if is_correct else 0
            tally.max_auto_graded_score += question.points
            tally.auto_graded_score += points_earned
            if is_correct:
                tally.correct_count += 1
            tally.answer_details.append(AnswerDetail(
                question_id=question.id,
                is_correct=is_correct,
                answer_text=answer.answer_text,
                correct_label=question.correct_label,
                points_earned=points_earned,
                auto_graded=True,
            ))
        else:
            tally.pending_manual_grading += question.points
            tally.answer_details.append(AnswerDetail(
                question_id=question.id,
                is_correct=None,
                answer_text=answer.answer_text,
                points_earned=0,
                auto_graded=False,
            ))

    return tally


async def load_assessment(db: AsyncSession, assessment_id: str) -> Assessment:
    try:
        result = await db.execute(select(Assessment).where(Assessment.id == assessment_id))
        assessment = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise StoreFailureError("load assessment", e) from e

    if assessment is None:
        logger.warning(f"Assessment not found: {assessment_id}")
        raise NotFoundError("assessment", assessment_id)
    return assessment


async def submit_assessment(
    db: AsyncSession,
    assessment_id: str,
    learner_id: str,
    answers: Sequence[SubmittedAnswer]
) -> GradingResult:
    """
    Grade and persist one attempt.

    Args:
        db: Database session
        assessment_id: Assessment being answered
        learner_id: Identity of the submitting learner
        answers: (question_id, answer_text) pairs, possibly partial

    Returns:
        GradingResult with scores, pools and per-answer detail

    Raises:
        NotFoundError: assessment does not exist
        StoreFailureError: the store rejected the write
    """
    assessment = await load_assessment(db, assessment_id)
    questions = [to_typed_question(row) for row in assessment.questions]
    tally = grade_answers(questions, answers)

    submission = Submission(
        assessment_id=assessment.id,
        learner_id=learner_id,
        status=SubmissionStatus.SUBMITTED,
        submitted_at=datetime.utcnow(),
        score=tally.auto_graded_score,
        max_score=tally.max_score,
    )
    submission.answers = [
        GradedAnswer(
            question_id=detail.question_id,
            answer_text=detail.answer_text,
            auto_graded=detail.auto_graded,
            is_correct=detail.is_correct,
            points_earned=detail.points_earned,
        )
        for detail in tally.answer_details
    ]
    # Nothing left for a person to grade
    if not submission.has_pending_answers():
        submission.status = SubmissionStatus.GRADED

    try:
        db.add(submission)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Submission write failed: assessment={assessment_id}, learner={learner_id}: {e}")
        raise StoreFailureError("persist submission", e) from e

    logger.info(
        f"Submission graded: id={submission.id}, assessment={assessment_id}, learner={learner_id}, "
        f"score={tally.auto_graded_score}/{tally.max_auto_graded_score} auto, "
        f"pending={tally.pending_manual_grading}, max={tally.max_score}, "
        f"answers={len(tally.answer_details)}/{len(answers)}"
    )

    return GradingResult(
        submission_id=submission.id,
        assessment_id=assessment.id,
        learner_id=learner_id,
        submitted_at=submission.submitted_at,
        status=submission.status.value,
        **tally.model_dump(),
    )


async def get_submission(db: AsyncSession, assessment_id: str, submission_id: str) -> SubmissionView:
    """Stored submission with answers joined to their questions."""
    assessment = await load_assessment(db, assessment_id)
    try:
        result = await db.execute(
            select(Submission).where(
                Submission.id == submission_id,
                Submission.assessment_id == assessment_id
            )
        )
        submission = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise StoreFailureError("load submission", e) from e

    if submission is None:
        raise NotFoundError("submission", submission_id)

    return _submission_view(submission, assessment)


def _submission_view(submission: Submission, assessment: Assessment) -> SubmissionView:
    questions = {q.id: q for q in assessment.questions}
    score = submission.score or 0
    max_score = submission.max_score or 0
    pct = percentage(score, max_score)
    graded = submission.status == SubmissionStatus.GRADED

    answers: List[SubmissionAnswerView] = []
    for answer in submission.answers:
        question = questions.get(answer.question_id)
        answers.append(SubmissionAnswerView(
            question_id=answer.question_id,
            question_text=question.question_text if question else None,
            answer_text=answer.answer_text,
            is_correct=answer.is_correct,
            points_earned=answer.points_earned or 0,
            max_points=(question.points or 0) if question else 0,
        ))
    answers.sort(key=lambda a: questions[a.question_id].order_index if a.question_id in questions else 0)

    return SubmissionView(
        submission_id=submission.id,
        assessment_id=submission.assessment_id,
        learner_id=submission.learner_id,
        submitted_at=submission.submitted_at,
        score=score,
        max_score=max_score,
        percentage=pct,
        status=submission.status.value,
        passed=graded and pct >= (assessment.passing_score or 0),
        answers=answers,
    )


async def apply_manual_grade(
    db: AsyncSession,
    submission_id: str,
    question_id: str,
    points_earned: int,
    is_correct: Optional[bool] = None
) -> SubmissionView:
    """
    Record a person's grade for one free-text answer and recompute the total.

    The submission's score becomes the sum of points over all its answers.
    Once no answer has unknown correctness the status moves to graded.
    Free-text answers may be re-graded; objective answers may not.

    Raises:
        NotFoundError: unknown submission, or no answer for question_id
        InvalidInputError: objective question, or points outside [0, question.points]
    """
    try:
        result = await db.execute(select(Submission).where(Submission.id == submission_id))
        submission = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise StoreFailureError("load submission", e) from e

    if submission is None:
        raise NotFoundError("submission", submission_id)

    answer = next((a for a in submission.answers if a.question_id == question_id), None)
    if answer is None:
        raise NotFoundError("answer", question_id)

    assessment = await load_assessment(db, submission.assessment_id)
    question = next((q for q in assessment.questions if q.id == question_id), None)
    if question is None:
        raise NotFoundError("question", question_id)

    if question.question_type != QuestionType.FREE_TEXT:
        raise InvalidInputError(
            "Only free-text answers can be graded manually",
            kind="question_type",
            identity=question_id
        )
    if points_earned < 0 or points_earned > (question.points or 0):
        raise InvalidInputError(
            f"points_earned must be between 0 and {question.points}",
            kind="points_earned",
            identity=points_earned
        )

    answer.points_earned = points_earned
    answer.is_correct = is_correct if is_correct is not None else points_earned > 0
    submission.recalculate_score()

    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreFailureError("persist manual grade", e) from e

    logger.info(
        f"Manual grade applied: submission={submission_id}, question={question_id}, "
        f"points={points_earned}, score={submission.score}/{submission.max_score}, "
        f"status={submission.status.value}"
    )
    return _submission_view(submission, assessment)

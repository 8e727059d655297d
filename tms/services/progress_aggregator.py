"""
tms/services/progress_aggregator.py
Section completion and course progress

Completion records are written with a single atomic upsert keyed on
(learner_id, course_id, section_id). The store adds the new elapsed time
to the existing total inside the same statement, so concurrent completions
of one section never duplicate the row and never lose time.

Course progress is recomputed from completion rows on every call.
No percentage is stored anywhere.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tms.exceptions import InvalidInputError, NotFoundError, StoreFailureError
from tms.orm.assignment import CourseAssignment
from tms.orm.base import new_id
from tms.orm.completion import CompletionRecord
from tms.orm.course import Course, CourseSection
from tms.schemas.progress import (
    CompletionRecordView,
    CourseProgressSnapshot,
    LearnerCourseSummary,
    LearnerStats,
    ProgressStatus,
    SectionCompletionResult,
)
from tms.utils.percentages import percentage, round_half_up

logger = logging.getLogger(__name__)

UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def derive_status(completed: int, total: int) -> ProgressStatus:
    """
    Status from section counts, not the rounded percentage: 199 of 200
    rounds to 100% but is still in progress.
    """
    if total > 0 and completed >= total:
        return ProgressStatus.COMPLETED
    if completed > 0:
        return ProgressStatus.IN_PROGRESS
    return ProgressStatus.NOT_STARTED


async def _get_section(db: AsyncSession, course_id: str, section_id: str) -> CourseSection:
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("course", course_id)

    result = await db.execute(
        select(CourseSection).where(
            CourseSection.id == section_id,
            CourseSection.course_id == course_id
        )
    )
    section = result.scalar_one_or_none()
    if section is None:
        raise NotFoundError("section", section_id)
    return section


async def upsert_completion(
    db: AsyncSession,
    learner_id: str,
    course_id: str,
    section_id: str,
    elapsed: int,
    now: Optional[datetime] = None
) -> CompletionRecord:
    """
    Insert or update the completion row for one triple in one statement.

    New row: completed, completed_at=now, time_spent=elapsed.
    Existing row: completed, completed_at=now, time_spent += elapsed.
    """
    now = now or datetime.utcnow()
    dialect = db.get_bind().dialect.name
    insert = UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise StoreFailureError(f"completion upsert (unsupported dialect {dialect})")

    table = CompletionRecord.__table__
    stmt = insert(table).values(
        id=new_id(),
        learner_id=learner_id,
        course_id=course_id,
        section_id=section_id,
        completed=True,
        completed_at=now,
        time_spent_seconds=elapsed,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.learner_id, table.c.course_id, table.c.section_id],
        set_={
            "completed": True,
            "completed_at": now,
            "updated_at": now,
            "time_spent_seconds": table.c.time_spent_seconds + stmt.excluded.time_spent_seconds,
        },
    )
    await db.execute(stmt)

    result = await db.execute(
        select(CompletionRecord)
        .where(
            CompletionRecord.learner_id == learner_id,
            CompletionRecord.course_id == course_id,
            CompletionRecord.section_id == section_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def compute_course_progress(db: AsyncSession, learner_id: str, course_id: str) -> CourseProgressSnapshot:
    """
    Recalculate course progress from completion rows.

    Steps:
    1. Count sections in the course
    2. Count the learner's completed rows for the course
    3. Percentage, rounded half-up and clamped to [0, 100]
    """
    try:
        total = (await db.execute(
            select(func.count(CourseSection.id)).where(CourseSection.course_id == course_id)
        )).scalar() or 0

        completed = (await db.execute(
            select(func.count(CompletionRecord.id)).where(
                CompletionRecord.learner_id == learner_id,
                CompletionRecord.course_id == course_id,
                CompletionRecord.completed.is_(True)
            )
        )).scalar() or 0
    except SQLAlchemyError as e:
        raise StoreFailureError("count course progress", e) from e

    snapshot = CourseProgressSnapshot(
        completed_sections=completed,
        total_sections=total,
        progress_percentage=percentage(completed, total),
    )
    logger.info(
        f"Recalculated progress: learner={learner_id}, course={course_id}, "
        f"completion={snapshot.progress_percentage}% ({completed}/{total})"
    )
    return snapshot


async def mark_section_complete(
    db: AsyncSession,
    learner_id: str,
    course_id: str,
    section_id: str,
    elapsed: int
) -> SectionCompletionResult:
    """
    Mark a section complete and return the record plus fresh course progress.

    Raises:
        InvalidInputError: elapsed < 0
        NotFoundError: course or section does not exist
        StoreFailureError: the store rejected the write
    """
    if elapsed is None or elapsed < 0:
        raise InvalidInputError("elapsed time must be >= 0", kind="elapsed_time", identity=elapsed)

    try:
        await _get_section(db, course_id, section_id)
        record = await upsert_completion(db, learner_id, course_id, section_id, elapsed)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Completion upsert failed: learner={learner_id}, section={section_id}: {e}")
        raise StoreFailureError("upsert completion", e) from e

    logger.info(
        f"Section completed: learner={learner_id}, course={course_id}, section={section_id}, "
        f"time_spent={record.time_spent_seconds}s"
    )

    snapshot = await compute_course_progress(db, learner_id, course_id)
    return SectionCompletionResult(
        record=CompletionRecordView.model_validate(record),
        course_progress=snapshot,
    )


async def get_learner_progress(db: AsyncSession, learner_id: str, course_id: str) -> List[CompletionRecordView]:
    """Every completion row for (learner, course). Empty when none exist."""
    try:
        result = await db.execute(
            select(CompletionRecord)
            .where(
                CompletionRecord.learner_id == learner_id,
                CompletionRecord.course_id == course_id
            )
            .order_by(CompletionRecord.created_at)
        )
        records = result.scalars().all()
    except SQLAlchemyError as e:
        raise StoreFailureError("load completion records", e) from e

    return [CompletionRecordView.model_validate(r) for r in records]


async def list_learner_courses(db: AsyncSession, learner_id: str) -> List[LearnerCourseSummary]:
    """
    Every course assigned to the learner with its computed progress.

    Per course:
    - completed / total sections and clamped percentage
    - status: not-started (none done), in-progress, completed (every section done)
    - assigned_at: earliest assignment
    - last_accessed: latest completed_at across its sections (or None)
    - due_date: first due date carried by an assignment (or None)
    """
    try:
        assignments = (await db.execute(
            select(CourseAssignment)
            .where(CourseAssignment.learner_id == learner_id)
            .order_by(CourseAssignment.assigned_at)
        )).scalars().all()

        if not assignments:
            return []

        course_ids = list(dict.fromkeys(a.course_id for a in assignments))

        courses = (await db.execute(
            select(Course).where(Course.id.in_(course_ids))
        )).scalars().all()

        section_counts: Dict[str, int] = dict((await db.execute(
            select(CourseSection.course_id, func.count(CourseSection.id))
            .where(CourseSection.course_id.in_(course_ids))
            .group_by(CourseSection.course_id)
        )).all())

        records = (await db.execute(
            select(CompletionRecord).where(
                CompletionRecord.learner_id == learner_id,
                CompletionRecord.course_id.in_(course_ids)
            )
        )).scalars().all()
    except SQLAlchemyError as e:
        raise StoreFailureError("load learner courses", e) from e

    courses_by_id = {c.id: c for c in courses}
    summaries: List[LearnerCourseSummary] = []

    for course_id in course_ids:
        course = courses_by_id.get(course_id)
        if course is None:
            logger.warning(f"Assignment points at missing course: learner={learner_id}, course={course_id}")
            continue

        course_records = [r for r in records if r.course_id == course_id]
        completed = sum(1 for r in course_records if r.completed)
        total = section_counts.get(course_id, 0)
        progress = percentage(completed, total)

        course_assignments = [a for a in assignments if a.course_id == course_id]
        assigned_at = min((a.assigned_at for a in course_assignments if a.assigned_at), default=None)
        last_accessed = max((r.completed_at for r in course_records if r.completed_at), default=None)
        due_date = next((a.due_date for a in course_assignments if a.due_date), None)

        summaries.append(LearnerCourseSummary(
            id=course.id,
            course_code=course.course_code,
            title=course.title,
            description=course.description,
            category=course.category,
            estimated_duration=course.estimated_duration,
            progress=progress,
            sections_completed=completed,
            total_sections=total,
            status=derive_status(completed, total),
            assigned_at=assigned_at,
            last_accessed=last_accessed,
            due_date=due_date,
        ))

    logger.info(f"Listed courses: learner={learner_id}, courses={len(summaries)}")
    return summaries


async def get_learner_stats(db: AsyncSession, learner_id: str) -> LearnerStats:
    """Dashboard summary built from the same listing, so the numbers agree."""
    courses = await list_learner_courses(db, learner_id)
    enrolled = len(courses)
    completed = sum(1 for c in courses if c.status == ProgressStatus.COMPLETED)
    average = round_half_up(sum(c.progress for c in courses) / enrolled) if enrolled else 0

    return LearnerStats(
        enrolled_courses=enrolled,
        completed_courses=completed,
        average_progress=average,
    )

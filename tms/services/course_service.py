"""
tms/services/course_service.py
Course authoring and course-to-learner assignment
"""
import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tms.exceptions import InvalidInputError, NotFoundError, StoreFailureError
from tms.orm.assignment import CourseAssignment
from tms.orm.course import Course, CourseSection
from tms.schemas.course import CourseCreate, SectionCreate

logger = logging.getLogger(__name__)


async def create_course(db: AsyncSession, payload: CourseCreate) -> Course:
    """Create a course with its sections, numbered 1..n in the order given."""
    course = Course(
        course_code=payload.course_code,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        estimated_duration=payload.estimated_duration,
    )
    course.sections = [
        CourseSection(
            title=section.title,
            content=section.content,
            video_url=section.video_url,
            duration=section.duration,
            order_index=index,
        )
        for index, section in enumerate(payload.sections, start=1)
    ]

    try:
        db.add(course)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Duplicate course code: {payload.course_code}")
        raise InvalidInputError("Course code already exists", kind="course_code", identity=payload.course_code) from e
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreFailureError("create course", e) from e

    logger.info(f"Course created: id={course.id}, sections={len(course.sections)}")
    return course


async def get_course(db: AsyncSession, course_id: str) -> Course:
    try:
        course = await db.get(Course, course_id)
    except SQLAlchemyError as e:
        raise StoreFailureError("load course", e) from e
    if course is None:
        raise NotFoundError("course", course_id)
    return course


async def add_section(db: AsyncSession, course_id: str, payload: SectionCreate) -> CourseSection:
    """
    Append a section to an existing course (order_index = current max + 1).

    Progress of every learner in the course drops accordingly on the next
    read, since percentages are recomputed from section counts.
    """
    course = await get_course(db, course_id)

    try:
        last_index = (await db.execute(
            select(func.max(CourseSection.order_index)).where(CourseSection.course_id == course_id)
        )).scalar() or 0

        section = CourseSection(
            course_id=course_id,
            title=payload.title,
            content=payload.content,
            video_url=payload.video_url,
            duration=payload.duration,
            order_index=last_index + 1,
        )
        course.sections.append(section)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreFailureError("add section", e) from e

    logger.info(f"Section added: course={course_id}, section={section.id}, order_index={section.order_index}")
    return section


async def assign_course(
    db: AsyncSession,
    course_id: str,
    learner_id: str,
    due_date: datetime = None
) -> Dict[str, Any]:
    """
    Assign a course to a learner if not already assigned.

    An existing assignment is left untouched (its assigned_at and due_date
    are kept).

    Returns:
        {"assignment": {...}, "created": bool}
    """
    await get_course(db, course_id)

    stmt = select(CourseAssignment).where(
        CourseAssignment.course_id == course_id,
        CourseAssignment.learner_id == learner_id
    )
    try:
        existing = (await db.execute(stmt)).scalar_one_or_none()
    except SQLAlchemyError as e:
        raise StoreFailureError("load assignment", e) from e
    if existing:
        return {"assignment": existing.to_dict(), "created": False}

    assignment = CourseAssignment(
        course_id=course_id,
        learner_id=learner_id,
        assigned_at=datetime.utcnow(),
        due_date=due_date,
    )
    db.add(assignment)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent assign for the same pair
        await db.rollback()
        try:
            existing = (await db.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise StoreFailureError("load assignment", e) from e
        return {"assignment": existing.to_dict(), "created": False}
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreFailureError("assign course", e) from e

    logger.info(f"Course assigned: course={course_id}, learner={learner_id}, due={due_date}")
    return {"assignment": assignment.to_dict(), "created": True}

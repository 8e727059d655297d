"""
tms/orm/completion.py
CompletionRecord - Tracks course sections completed by learners

This model records the durable fact that a learner finished a section
of a course, together with the cumulative time spent on it.

Key Design Decisions:
- Exactly one row per (learner_id, course_id, section_id)
- Written only through an atomic upsert (see services/progress_aggregator.py)
- time_spent_seconds only ever grows: re-completion adds to it
- completed_at is refreshed on every completion
- No stored percentage: course progress is recomputed from these rows
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index, UniqueConstraint
from tms.orm.base import BaseModel


class CompletionRecord(BaseModel):
    """
    Fields:
    - learner_id: Identity provider subject of the learner
    - course_id: Course the section belongs to (FK)
    - section_id: Completed section (FK)
    - completed: True once completed
    - completed_at: Most recent completion timestamp
    - time_spent_seconds: Total time across all completions

    Constraints:
    - Unique: (learner_id, course_id, section_id)
    """
    __tablename__ = "completion_records"

    learner_id = Column(String(64), nullable=False, index=True)

    course_id = Column(
        String(36),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    section_id = Column(
        String(36),
        ForeignKey("course_sections.id", ondelete="CASCADE"),
        nullable=False
    )

    completed = Column(Boolean, default=False, nullable=False)

    completed_at = Column(DateTime, nullable=True, default=datetime.utcnow)

    time_spent_seconds = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "learner_id",
            "course_id",
            "section_id",
            name="uq_completion_learner_course_section"
        ),
        Index(
            "ix_completion_learner_course",
            "learner_id",
            "course_id",
            "completed"
        ),
    )

    def __repr__(self):
        return (
            f"<CompletionRecord("
            f"learner_id={self.learner_id}, "
            f"course_id={self.course_id}, "
            f"section_id={self.section_id}, "
            f"completed={self.completed})>"
        )

"""
tms/orm/assignment.py
CourseAssignment - which learner must take which course

Rows may be written directly (teacher assigns a course to a learner) or by
an upstream process that fans a batch assignment out to its members.
Either way there is one row per (course_id, learner_id).
"""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from tms.orm.base import BaseModel


class CourseAssignment(BaseModel):
    __tablename__ = "course_assignments"

    course_id = Column(
        String(36),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    learner_id = Column(String(64), nullable=False, index=True)
    assigned_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    due_date = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("course_id", "learner_id", name="uq_assignment_course_learner"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "learner_id": self.learner_id,
            "assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
        }

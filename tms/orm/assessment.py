"""
tms/orm/assessment.py
Assessment and AssessmentQuestion models

Questions are either objective (up to four labeled options A-D with one
correct label) or free-text (no answer key, graded by a person).
Questions are treated as immutable once submissions exist.
"""
from enum import Enum
from typing import Dict

from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from tms.orm.base import BaseModel

OPTION_LABELS = ("A", "B", "C", "D")


class QuestionType(str, Enum):
    """
    - OBJECTIVE: Multiple choice, machine-checkable
    - FREE_TEXT: Open response, pending manual grading
    """
    OBJECTIVE = "objective"
    FREE_TEXT = "free-text"


class Assessment(BaseModel):
    """
    A test attached to a course.

    Fields:
    - duration: Minutes allowed (>= 1)
    - passing_score: Percentage (0-100) needed to pass once fully graded
    """
    __tablename__ = "assessments"

    course_id = Column(
        String(36),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)
    passing_score = Column(Integer, nullable=False, default=70)

    questions = relationship(
        "AssessmentQuestion",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="AssessmentQuestion.order_index",
        lazy="selectin"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description,
            "duration": self.duration,
            "passing_score": self.passing_score,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AssessmentQuestion(BaseModel):
    """One question of an assessment, ordered by order_index (1-based)."""
    __tablename__ = "assessment_questions"

    assessment_id = Column(
        String(36),
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    question_type = Column(SQLEnum(QuestionType), nullable=False)
    question_text = Column(Text, nullable=False)

    option_a = Column(Text, nullable=True)
    option_b = Column(Text, nullable=True)
    option_c = Column(Text, nullable=True)
    option_d = Column(Text, nullable=True)
    correct_label = Column(String(1), nullable=True, comment="A-D, objective only")

    points = Column(Integer, nullable=False, default=1)
    order_index = Column(Integer, nullable=False)

    assessment = relationship("Assessment", back_populates="questions")

    __table_args__ = (
        Index("ix_assessment_question_order", "assessment_id", "order_index"),
    )

    def options(self) -> Dict[str, str]:
        """Labeled options that are actually set."""
        raw = zip(OPTION_LABELS, (self.option_a, self.option_b, self.option_c, self.option_d))
        return {label: text for label, text in raw if text is not None}

    def to_dict(self, include_answer_key: bool = False):
        data = {
            "id": self.id,
            "question_type": self.question_type.value if self.question_type else None,
            "question_text": self.question_text,
            "options": self.options(),
            "points": self.points,
            "order_index": self.order_index,
        }
        if include_answer_key:
            data["correct_label"] = self.correct_label
        return data

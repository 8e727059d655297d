"""
tms/orm/submission.py
Submission and GradedAnswer models

One Submission = one learner's one attempt at one assessment.
Resubmission is allowed: every submit creates a new row.

Scores:
- score: points achieved so far (auto-graded, plus manual grades once applied)
- max_score: sum of point values of EVERY question in the assessment
"""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from tms.orm.base import BaseModel


class SubmissionStatus(str, Enum):
    """
    - SUBMITTED: At least one answer still awaits manual grading
    - GRADED: Every answer has a known correctness
    """
    SUBMITTED = "submitted"
    GRADED = "graded"


class Submission(BaseModel):
    __tablename__ = "submissions"

    assessment_id = Column(
        String(36),
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    learner_id = Column(
        String(64),
        nullable=False,
        index=True,
        comment="Identity provider subject of the learner"
    )
    status = Column(SQLEnum(SubmissionStatus), nullable=False, default=SubmissionStatus.SUBMITTED)
    submitted_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    score = Column(Integer, nullable=False, default=0)
    max_score = Column(Integer, nullable=False, default=0)

    answers = relationship(
        "GradedAnswer",
        back_populates="submission",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    __table_args__ = (
        Index("ix_submission_learner_assessment", "learner_id", "assessment_id"),
    )

    def has_pending_answers(self) -> bool:
        return any(answer.is_correct is None for answer in self.answers)

    def recalculate_score(self):
        """Score is the sum of points earned across all answers."""
        self.score = sum(answer.points_earned or 0 for answer in self.answers)
        if not self.has_pending_answers():
            self.status = SubmissionStatus.GRADED

    def __repr__(self):
        return (
            f"<Submission(id={self.id}, assessment_id={self.assessment_id}, "
            f"learner_id={self.learner_id}, score={self.score}/{self.max_score})>"
        )


class GradedAnswer(BaseModel):
    """
    A submitted answer matched to its question.

    is_correct is NULL exactly when the question is free-text and no
    manual grade has been applied yet.
    """
    __tablename__ = "graded_answers"

    submission_id = Column(
        String(36),
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    question_id = Column(
        String(36),
        ForeignKey("assessment_questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    answer_text = Column(Text, nullable=True)
    auto_graded = Column(Boolean, nullable=False, default=False)
    is_correct = Column(Boolean, nullable=True)
    points_earned = Column(Integer, nullable=False, default=0)

    submission = relationship("Submission", back_populates="answers")

"""
tms/schemas/assessment.py
Pydantic schemas for assessments, submissions and grading

Questions cross the service boundary as a tagged variant:
    ObjectiveQuestion{options, correct_label} | FreeTextQuestion
so the grader never re-interprets raw rows.
"""
from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from tms.utils.percentages import percentage

OPTION_LABELS = ("A", "B", "C", "D")


def normalize_label(value: Optional[str]) -> str:
    """Answer labels compare case-insensitively, ignoring surrounding whitespace."""
    return (value or "").strip().upper()


# ================= TYPED QUESTIONS =================

class ObjectiveQuestion(BaseModel):
    type: Literal["objective"] = "objective"
    id: str
    points: int = Field(..., ge=0)
    order_index: int = 0
    options: Dict[str, str] = Field(default_factory=dict)
    correct_label: Optional[str] = None

    def is_correct(self, answer_text: Optional[str]) -> bool:
        """A question without an answer key matches nothing."""
        key = normalize_label(self.correct_label)
        if not key:
            return False
        return normalize_label(answer_text) == key


class FreeTextQuestion(BaseModel):
    type: Literal["free-text"] = "free-text"
    id: str
    points: int = Field(..., ge=0)
    order_index: int = 0


Question = Annotated[Union[ObjectiveQuestion, FreeTextQuestion], Field(discriminator="type")]


# ================= REQUEST SCHEMAS =================

class QuestionCreate(BaseModel):
    """
    One question inside POST /api/assessments.

    Objective questions need between one and four options labeled A-D and a
    correct_label naming one of them. Free-text questions carry neither.
    """
    question_type: Literal["objective", "free-text"] = "objective"
    question_text: str = Field(..., min_length=1)
    options: Dict[str, str] = Field(default_factory=dict)
    correct_label: Optional[str] = None
    points: int = Field(1, ge=0)

    @field_validator("options")
    @classmethod
    def validate_option_labels(cls, v: Dict[str, str]) -> Dict[str, str]:
        normalized = {normalize_label(label): text for label, text in v.items()}
        unknown = [label for label in normalized if label not in OPTION_LABELS]
        if unknown:
            raise ValueError(f"option labels must be among {', '.join(OPTION_LABELS)}")
        return normalized

    @model_validator(mode="after")
    def validate_answer_key(self) -> "QuestionCreate":
        if self.question_type == "objective":
            if not self.options:
                raise ValueError("objective questions need at least one option")
            label = normalize_label(self.correct_label)
            if label not in self.options:
                raise ValueError("correct_label must name one of the provided options")
            self.correct_label = label
        else:
            if self.options or self.correct_label:
                raise ValueError("free-text questions take no options or correct_label")
        return self


class AssessmentCreate(BaseModel):
    """Used by: POST /api/assessments"""
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    duration: int = Field(..., ge=1, description="Minutes allowed")
    passing_score: int = Field(70, ge=0, le=100)
    questions: List[QuestionCreate] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip()


class SubmittedAnswer(BaseModel):
    question_id: str = Field(..., min_length=1)
    answer_text: str = ""


class SubmitAssessmentRequest(BaseModel):
    """
    Used by: POST /api/assessments/{assessment_id}/submit

    The learner is taken from the caller's token, never from the body.
    An empty answers list is a valid (zero score) submission.
    """
    answers: List[SubmittedAnswer] = Field(default_factory=list)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "answers": [
                {"question_id": "q-1", "answer_text": "A"},
                {"question_id": "q-3", "answer_text": "An essay answer"}
            ]
        }
    })


class ManualGradeRequest(BaseModel):
    """Used by: POST /api/submissions/{submission_id}/answers/{question_id}/grade"""
    points_earned: int = Field(..., ge=0)
    is_correct: Optional[bool] = Field(None, description="Defaults to points_earned > 0")


# ================= RESPONSE SCHEMAS =================

class AnswerDetail(BaseModel):
    question_id: str
    is_correct: Optional[bool] = None
    answer_text: str
    correct_label: Optional[str] = None
    points_earned: int = 0
    auto_graded: bool = False


class GradingTally(BaseModel):
    """Outcome of grading a set of answers, before anything is persisted."""
    auto_graded_score: int = 0
    max_auto_graded_score: int = 0
    pending_manual_grading: int = 0
    max_score: int = 0
    correct_count: int = 0
    total_questions: int = 0
    answer_details: List[AnswerDetail] = Field(default_factory=list)


class GradingResult(GradingTally):
    submission_id: str
    assessment_id: str
    learner_id: str
    submitted_at: datetime
    status: str

    @computed_field
    @property
    def percent_correct(self) -> int:
        """Correct-count ratio, presentation only."""
        return percentage(self.correct_count, self.total_questions)


class AssessmentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    course_id: str
    title: str
    description: Optional[str] = None
    duration: int
    passing_score: int
    questions: Optional[List[dict]] = None
    total_questions: Optional[int] = None
    total_points: Optional[int] = None


class SubmissionAnswerView(BaseModel):
    question_id: str
    question_text: Optional[str] = None
    answer_text: Optional[str] = None
    is_correct: Optional[bool] = None
    points_earned: int = 0
    max_points: int = 0


class SubmissionView(BaseModel):
    submission_id: str
    assessment_id: str
    learner_id: str
    submitted_at: datetime
    score: int
    max_score: int
    percentage: int
    status: str
    passed: bool
    answers: List[SubmissionAnswerView] = Field(default_factory=list)

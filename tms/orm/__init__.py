from .base import Base

# Authoring
from .course import Course, CourseSection
from .assessment import Assessment, AssessmentQuestion, QuestionType

# Learner activity
from .submission import Submission, GradedAnswer, SubmissionStatus
from .completion import CompletionRecord
from .assignment import CourseAssignment

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

OPTIONS_PER_QUESTION = 4


class QuestionCreate(BaseModel):
    # Send the id of an existing question on update to keep its identity,
    # so results graded against it still line up in the solution view.
    id: Optional[UUID] = None
    text: str = Field(..., min_length=1, description="The question text shown to the student.")
    options: List[str] = Field(..., min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION)
    correct_option: int = Field(..., description="0-based index into options.")
    marks: int = Field(1, gt=0, description="Points awarded for a correct answer.")

    @model_validator(mode="after")
    def correct_option_in_range(self):
        if not 0 <= self.correct_option < len(self.options):
            raise ValueError(f"correct_option must be between 0 and {len(self.options) - 1}")
        return self


def _check_pass_marks(pass_marks: Optional[int], questions: Optional[List[QuestionCreate]]):
    if pass_marks is None or questions is None:
        return
    total = sum(q.marks for q in questions)
    if pass_marks > total:
        raise ValueError(f"pass_marks ({pass_marks}) cannot exceed total marks ({total})")


class ExamCreate(BaseModel):
    title: str = Field(..., min_length=1)
    course_id: Optional[str] = None
    duration: int
    pass_marks: int = Field(0, ge=0)
    is_published: bool = False
    max_attempts: Optional[int] = Field(None, ge=0)
    # the order in the list defines the exam order
    questions: List[QuestionCreate] = Field(default_factory=list)

    @field_validator("duration")
    @classmethod
    def duration_must_be_positive(cls, v):
        if v is None or v <= 0:
            raise ValueError("duration must be a positive integer (minutes)")
        return v

    @model_validator(mode="after")
    def pass_marks_within_total(self):
        _check_pass_marks(self.pass_marks, self.questions)
        if self.is_published and not self.questions:
            raise ValueError("Cannot publish exam with no questions")
        return self


class ExamUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    course_id: Optional[str] = None
    duration: Optional[int] = None
    pass_marks: Optional[int] = Field(None, ge=0)
    is_published: Optional[bool] = None
    max_attempts: Optional[int] = Field(None, ge=0)
    # Replace or reorder questions when provided
    questions: Optional[List[QuestionCreate]] = None

    @field_validator("duration")
    @classmethod
    def duration_must_be_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError("duration must be a positive integer (minutes)")
        return v

    @model_validator(mode="after")
    def pass_marks_within_total(self):
        _check_pass_marks(self.pass_marks, self.questions)
        return self


class ExamSummary(BaseModel):
    id: UUID
    title: str
    course_id: Optional[str] = None
    duration: int
    total_marks: int
    pass_marks: int
    question_count: int
    is_published: bool


class QuestionRedacted(BaseModel):
    """What a student sees while the attempt is running. No correct_option, ever."""
    id: UUID
    text: str
    options: List[str]
    marks: int


class QuestionFull(QuestionRedacted):
    correct_option: int


class ExamRedacted(BaseModel):
    id: UUID
    title: str
    course_id: Optional[str] = None
    duration: int
    total_marks: int
    pass_marks: int
    questions: List[QuestionRedacted] = []


class ExamFull(ExamRedacted):
    is_published: bool
    max_attempts: Optional[int] = None
    created_at: Optional[datetime] = None
    questions: List[QuestionFull] = []

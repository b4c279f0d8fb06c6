from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from .exam_schema import ExamFull


class AnswerIn(BaseModel):
    # kept as a plain string: a stale or foreign id is ignored by grading, not rejected
    question_id: str
    selected_option: int = Field(..., ge=0, le=3)


class SubmitPayload(BaseModel):
    answers: List[AnswerIn] = Field(default_factory=list)
    # client generated id of the attempt; resubmitting with the same id returns the first result
    attempt_id: Optional[UUID] = None


class SubmitResponse(BaseModel):
    result_id: UUID
    exam_id: UUID
    score: int
    total_marks: int
    correct_count: int
    wrong_count: int
    pass_marks: int
    passed: bool
    percentage: float
    created_at: datetime


class GradedAnswer(BaseModel):
    question_id: str
    selected_option: int
    is_correct: bool


class ResultRead(BaseModel):
    id: UUID
    student_id: UUID
    exam_id: UUID
    attempt_id: Optional[UUID] = None
    answers: List[GradedAnswer] = []
    score: int
    correct_count: int
    wrong_count: int
    total_marks: int
    pass_marks: int
    passed: bool
    percentage: float
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SolutionQuestion(BaseModel):
    question_id: UUID
    text: str
    options: List[str]
    marks: int
    correct_option: int
    selected_option: Optional[int] = None
    is_correct: bool


class SolutionView(BaseModel):
    result_id: UUID
    exam_id: UUID
    score: int
    total_marks: int
    pass_marks: int
    passed: bool
    percentage: float
    correct_count: int
    wrong_count: int
    questions: List[SolutionQuestion] = []


class ResultDetail(BaseModel):
    result: ResultRead
    exam: ExamFull
    solution: SolutionView

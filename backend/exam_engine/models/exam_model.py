from ..db import Base
from sqlalchemy import String


"""
Exams Model
| Column | Type | Notes |
| :--- | :--- | :--- |
| `id` | UUID | Primary Key |
| `title` | VARCHAR | |
| `course_id` | VARCHAR | Opaque id from the course catalog, nullable |
| `duration` | INTEGER | In minutes |
| `pass_marks` | INTEGER | Score needed to pass |
| `is_published` | BOOLEAN | Default `false` |
| `max_attempts` | INTEGER | Null -> EXAM_MAX_ATTEMPTS setting |
| `created_at` | TIMESTAMP | naive UTC |

Total marks are not stored; they are always the sum of the question marks.
"""

from sqlalchemy import Column, Boolean, Integer, DateTime, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from .question_model import ExamQuestion


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Exam(Base):
    __tablename__ = "exams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    course_id = Column(String, nullable=True)
    duration = Column(Integer, nullable=False)  # in minutes
    pass_marks = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, default=False, nullable=False)
    max_attempts = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    questions = relationship(
        ExamQuestion,
        order_by=ExamQuestion.position,
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def total_marks(self) -> int:
        return sum(q.marks or 0 for q in self.questions)
"""
The Example,

sample_exam = Exam(title="Algebra Basics", duration=30, pass_marks=1)
sample_exam.questions = [
    ExamQuestion(text="2 + 2 = ?", options=["3", "4", "5", "22"], correct_option=1, marks=1),
    ExamQuestion(text="3 * 3 = ?", options=["6", "33", "9", "0"], correct_option=2, marks=2),
]

sample_exam.duration  # 30
sample_exam.total_marks  # 3
sample_exam.is_published  # False
"""

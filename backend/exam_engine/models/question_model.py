from ..db import Base
import uuid
from sqlalchemy import Column, Integer, String, ForeignKey, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB


class ExamQuestion(Base):
    """
    A multiple-choice question owned by exactly one exam.

    | Column | Type | Notes |
    | :--- | :--- | :--- |
    | `id` | UUID | Primary Key |
    | `exam_id` | UUID | FK -> Exams |
    | `position` | INTEGER | To maintain sequence in exam |
    | `text` | VARCHAR | |
    | `options` | JSON | Exactly 4 strings |
    | `correct_option` | INTEGER | 0-based index into options |
    | `marks` | INTEGER | Default `1` |
    """
    __tablename__ = "exam_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    text = Column(String, nullable=False)
    options = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    correct_option = Column(Integer, nullable=False)
    marks = Column(Integer, nullable=False, default=1)

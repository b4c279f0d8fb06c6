from ..db import Base
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship, backref
import uuid

from ..services.grading_service import score_percentage
from .exam_model import _utcnow


class Result(Base):
    """
    Graded outcome of one submitted attempt. Written once by the grading
    service and never updated; a retake creates a new row.

    `answers` holds a list of {"question_id", "selected_option", "is_correct"}
    for every submitted answer that matched a question of the exam.
    """
    __tablename__ = "results"
    __table_args__ = (UniqueConstraint("student_id", "attempt_id", name="uq_result_student_attempt"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    # ensure exam_id is a proper foreign key so DB-level ON DELETE CASCADE can remove results
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    # client generated idempotency key, null for callers that do not send one
    attempt_id = Column(Uuid, nullable=True)

    answers = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    score = Column(Integer, nullable=False)
    correct_count = Column(Integer, nullable=False)
    wrong_count = Column(Integer, nullable=False)
    total_marks = Column(Integer, nullable=False)
    pass_marks = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Use a backref with passive_deletes so SQLAlchemy will not try to nullify the FK when deleting the parent
    exam = relationship("Exam", backref=backref("results", passive_deletes=True), lazy="raise")

    @property
    def passed(self) -> bool:
        return (self.score or 0) >= (self.pass_marks or 0)

    @property
    def percentage(self) -> float:
        return score_percentage(self.score or 0, self.total_marks or 0)

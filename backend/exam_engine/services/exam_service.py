import logging
from typing import List
from uuid import UUID
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, ValidationError
from ..models.exam_model import Exam
from ..models.question_model import ExamQuestion
from ..models.result_model import Result
from ..schemas.exam_schema import ExamCreate, ExamUpdate, QuestionCreate

logger = logging.getLogger(__name__)


def _as_uuid(value, what: str = "Exam") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(f"{what} not found")


async def get_exam(session: AsyncSession, exam_id, published_only: bool = False) -> Exam:
    """Load an exam with its ordered questions. Raises NotFoundError."""
    stmt = select(Exam).where(Exam.id == _as_uuid(exam_id)).execution_options(populate_existing=True)
    if published_only:
        stmt = stmt.where(Exam.is_published == True)  # noqa: E712
    res = await session.execute(stmt)
    exam = res.scalar_one_or_none()
    if exam is None:
        raise NotFoundError("Exam not found")
    return exam


def exam_summary(exam: Exam) -> dict:
    return {
        "id": exam.id,
        "title": exam.title,
        "course_id": exam.course_id,
        "duration": exam.duration,
        "total_marks": exam.total_marks,
        "pass_marks": exam.pass_marks,
        "question_count": len(exam.questions),
        "is_published": exam.is_published,
    }


async def list_exams(session: AsyncSession, published_only: bool = False) -> List[dict]:
    stmt = select(Exam).order_by(Exam.created_at)
    if published_only:
        stmt = stmt.where(Exam.is_published == True)  # noqa: E712
    res = await session.execute(stmt)
    return [exam_summary(ex) for ex in res.scalars().all()]


def redacted_view(exam: Exam) -> dict:
    # remove correct_option from every question to prevent leaking answers mid-attempt
    return {
        "id": exam.id,
        "title": exam.title,
        "course_id": exam.course_id,
        "duration": exam.duration,
        "total_marks": exam.total_marks,
        "pass_marks": exam.pass_marks,
        "questions": [
            {"id": q.id, "text": q.text, "options": list(q.options), "marks": q.marks}
            for q in exam.questions
        ],
    }


def full_view(exam: Exam) -> dict:
    out = redacted_view(exam)
    out.update({
        "is_published": exam.is_published,
        "max_attempts": exam.max_attempts,
        "created_at": exam.created_at,
    })
    correct = {q.id: q.correct_option for q in exam.questions}
    for q in out["questions"]:
        q["correct_option"] = correct[q["id"]]
    return out


def _build_questions(payload: List[QuestionCreate], existing: List[ExamQuestion]) -> List[ExamQuestion]:
    by_id = {q.id: q for q in existing}
    out = []
    for idx, item in enumerate(payload):
        q = by_id.pop(item.id, None) if item.id is not None else None
        if q is None:
            q = ExamQuestion()
        q.position = idx
        q.text = item.text
        q.options = list(item.options)
        q.correct_option = item.correct_option
        q.marks = item.marks
        out.append(q)
    return out


def _check_consistency(exam: Exam):
    if exam.pass_marks > exam.total_marks:
        raise ValidationError(f"pass_marks ({exam.pass_marks}) cannot exceed total marks ({exam.total_marks})")
    if exam.is_published and not exam.questions:
        raise ValidationError("Cannot publish exam with no questions")


async def create_exam(session: AsyncSession, payload: ExamCreate) -> Exam:
    exam = Exam(
        title=payload.title,
        course_id=payload.course_id,
        duration=payload.duration,
        pass_marks=payload.pass_marks,
        is_published=payload.is_published,
        max_attempts=payload.max_attempts,
    )
    exam.questions = _build_questions(payload.questions, [])
    _check_consistency(exam)
    session.add(exam)
    await session.commit()
    logger.info("Created exam %s with %d questions", exam.id, len(exam.questions))
    return await get_exam(session, exam.id)


async def update_exam(session: AsyncSession, exam_id, payload: ExamUpdate) -> Exam:
    # update only fields sent and replace question list if provided
    exam = await get_exam(session, exam_id)

    if payload.title is not None:
        exam.title = payload.title
    if payload.course_id is not None:
        exam.course_id = payload.course_id
    if payload.duration is not None:
        exam.duration = payload.duration
    if payload.pass_marks is not None:
        exam.pass_marks = payload.pass_marks
    if payload.is_published is not None:
        exam.is_published = payload.is_published
    if "max_attempts" in payload.model_fields_set:
        exam.max_attempts = payload.max_attempts
    if payload.questions is not None:
        exam.questions = _build_questions(payload.questions, list(exam.questions))

    try:
        _check_consistency(exam)
    except ValidationError:
        await session.rollback()
        raise

    session.add(exam)
    await session.commit()
    logger.info("Updated exam %s", exam.id)
    return await get_exam(session, exam.id)


async def set_published(session: AsyncSession, exam_id, published: bool) -> Exam:
    exam = await get_exam(session, exam_id)
    if published and not exam.questions:
        raise ValidationError("Cannot publish exam with no questions")
    exam.is_published = published
    session.add(exam)
    await session.commit()
    return await get_exam(session, exam.id)


async def delete_exam(session: AsyncSession, exam_id) -> None:
    exam = await get_exam(session, exam_id)

    # delete associated results first to avoid FK constraint issues
    await session.execute(delete(Result).where(Result.exam_id == exam.id))
    await session.delete(exam)
    await session.commit()
    logger.info("Deleted exam %s and its results", exam.id)

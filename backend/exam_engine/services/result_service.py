import asyncio
import logging
import weakref
from typing import Any, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import EXAM_MAX_ATTEMPTS
from ..exceptions import AttemptLimitError, NotFoundError, ValidationError
from ..models.exam_model import Exam
from ..models.result_model import Result
from ..models.user_model import User
from .exam_service import get_exam, _as_uuid
from .grading_service import collapse_answers, grade_submission

logger = logging.getLogger(__name__)


def effective_attempt_limit(exam: Exam, default: Optional[int] = None) -> Optional[int]:
    """Per-exam max_attempts wins over the configured default. None or 0 means unlimited."""
    limit = exam.max_attempts if exam.max_attempts is not None else (
        EXAM_MAX_ATTEMPTS if default is None else default
    )
    return limit or None


async def _find_by_attempt(session: AsyncSession, student_id, attempt_id) -> Optional[Result]:
    res = await session.execute(
        select(Result).where(Result.student_id == student_id, Result.attempt_id == attempt_id)
    )
    return res.scalar_one_or_none()


async def count_attempts(session: AsyncSession, student_id, exam_id) -> int:
    res = await session.execute(
        select(func.count()).select_from(Result).where(Result.student_id == student_id, Result.exam_id == exam_id)
    )
    return res.scalar_one()


# one lock per (student, exam) while a submit is in progress; entries vanish once unused
_submit_locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = weakref.WeakValueDictionary()


def _submit_lock(student_id, exam_id) -> asyncio.Lock:
    key = (str(student_id), str(exam_id))
    lock = _submit_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _submit_locks[key] = lock
    return lock


async def submit_attempt(
    session: AsyncSession,
    student_id: UUID,
    exam_id,
    answers: Iterable[Any],
    attempt_id: Optional[UUID] = None,
    published_only: bool = True,
    max_attempts: Optional[int] = None,
) -> Tuple[Result, bool]:
    """
    Grade one attempt against the stored exam and persist exactly one Result.

    Returns (result, created). When attempt_id already produced a Result for
    this student, that Result is returned with created=False and nothing is
    written, so a client retrying after a lost response is not graded twice.
    Raises NotFoundError when the exam does not exist (or is unpublished and
    published_only is set) and AttemptLimitError when the student has used
    every allowed attempt.

    Counting earlier attempts and inserting the new Result happen under one
    lock per (student, exam) in this process, and under a row lock on the
    student for databases that support SELECT ... FOR UPDATE, so two
    concurrent submits cannot both slip under the limit.
    """
    exam = await get_exam(session, exam_id, published_only=published_only)

    async with _submit_lock(student_id, exam.id):
        return await _grade_and_store(session, exam, student_id, answers, attempt_id, max_attempts)


async def _grade_and_store(
    session: AsyncSession,
    exam: Exam,
    student_id: UUID,
    answers: Iterable[Any],
    attempt_id: Optional[UUID],
    max_attempts: Optional[int],
) -> Tuple[Result, bool]:
    # held until commit or rollback; a no-op on SQLite
    await session.execute(select(User.id).where(User.id == student_id).with_for_update())

    if attempt_id is not None:
        existing = await _find_by_attempt(session, student_id, attempt_id)
        if existing is not None:
            if existing.exam_id != exam.id:
                logger.warning("attempt_id=%s reused for another exam by student_id=%s", attempt_id, student_id)
                raise ValidationError("attempt_id was already used for a different exam")
            return existing, False

    limit = effective_attempt_limit(exam, max_attempts)
    if limit is not None:
        used = await count_attempts(session, student_id, exam.id)
        if used >= limit:
            raise AttemptLimitError(f"Attempt limit reached ({used}/{limit}) for this exam")

    outcome = grade_submission(collapse_answers(answers), exam.questions)

    result = Result(
        student_id=student_id,
        exam_id=exam.id,
        attempt_id=attempt_id,
        answers=outcome.answers,
        score=outcome.score,
        correct_count=outcome.correct_count,
        wrong_count=outcome.wrong_count,
        total_marks=outcome.total_marks,
        pass_marks=exam.pass_marks,
    )
    session.add(result)
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent request with the same attempt_id won the race
        await session.rollback()
        if attempt_id is None:
            raise
        existing = await _find_by_attempt(session, student_id, attempt_id)
        if existing is None:
            raise
        logger.warning("Duplicate submit for attempt_id=%s student_id=%s, returning first result", attempt_id, student_id)
        return existing, False

    await session.refresh(result)
    logger.info(
        "Graded exam_id=%s student_id=%s score=%s/%s", exam.id, student_id, result.score, result.total_marks
    )
    return result, True


async def get_result(session: AsyncSession, result_id) -> Result:
    res = await session.execute(select(Result).where(Result.id == _as_uuid(result_id, "Result")))
    result = res.scalar_one_or_none()
    if result is None:
        raise NotFoundError("Result not found")
    return result


async def query_results(session: AsyncSession, student_id=None, exam_id=None) -> List[Result]:
    q = select(Result).order_by(Result.created_at.desc())
    if student_id is not None:
        q = q.where(Result.student_id == student_id)
    if exam_id is not None:
        q = q.where(Result.exam_id == exam_id)
    res = await session.execute(q)
    return list(res.scalars().all())


def submit_response(result: Result) -> dict:
    return {
        "result_id": result.id,
        "exam_id": result.exam_id,
        "score": result.score,
        "total_marks": result.total_marks,
        "correct_count": result.correct_count,
        "wrong_count": result.wrong_count,
        "pass_marks": result.pass_marks,
        "passed": result.passed,
        "percentage": result.percentage,
        "created_at": result.created_at,
    }


def result_to_dict(result: Result) -> dict:
    return {
        "id": result.id,
        "student_id": result.student_id,
        "exam_id": result.exam_id,
        "attempt_id": result.attempt_id,
        "answers": list(result.answers or []),
        "score": result.score,
        "correct_count": result.correct_count,
        "wrong_count": result.wrong_count,
        "total_marks": result.total_marks,
        "pass_marks": result.pass_marks,
        "passed": result.passed,
        "percentage": result.percentage,
        "created_at": result.created_at,
    }


def build_solution_view(result: Result, exam: Exam) -> dict:
    """
    Per-question breakdown of a graded attempt against the full exam.

    Questions are matched to the stored answers by id. An answer whose
    question was removed from the exam after grading is skipped instead of
    failing the view. Correctness, score and counts come from the stored
    result, so editing an exam never regrades an old attempt.
    """
    selected = {str(a["question_id"]): a for a in (result.answers or [])}

    rows = []
    for q in exam.questions:
        ans = selected.get(str(q.id))
        rows.append({
            "question_id": q.id,
            "text": q.text,
            "options": list(q.options),
            "marks": q.marks,
            "correct_option": q.correct_option,
            "selected_option": ans["selected_option"] if ans else None,
            "is_correct": bool(ans and ans.get("is_correct")),
        })

    return {
        "result_id": result.id,
        "exam_id": result.exam_id,
        "score": result.score,
        "total_marks": result.total_marks,
        "pass_marks": result.pass_marks,
        "passed": result.passed,
        "percentage": result.percentage,
        "correct_count": result.correct_count,
        "wrong_count": result.wrong_count,
        "questions": rows,
    }

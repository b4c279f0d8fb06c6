from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..dependencies import SessionContext, get_session_context, results_viewer
from ..exceptions import NotFoundError
from ..permissions import Capability
from ..schemas.result_schema import ResultDetail, ResultRead
from ..services.exam_service import full_view, get_exam
from ..services.result_service import build_solution_view, get_result, query_results, result_to_dict

router = APIRouter(prefix="/results", tags=["Results"])


@router.get("/", response_model=List[ResultRead], dependencies=[Depends(results_viewer)])
async def list_results(exam_id: Optional[UUID] = None, student_id: Optional[UUID] = None, session: AsyncSession = Depends(get_async_session)):
    """
    Query graded results, newest first.
    - no filters -> every result
    - exam_id / student_id -> narrow down to one exam and/or one student
    """
    rows = await query_results(session, student_id=student_id, exam_id=exam_id)
    return [result_to_dict(r) for r in rows]


@router.get("/{result_id}", response_model=ResultDetail)
async def get_result_detail(result_id: UUID, session: AsyncSession = Depends(get_async_session), ctx: SessionContext = Depends(get_session_context)):
    """
    A single result with its exam (full projection, correct options included)
    and the per-question solution view. Owner or staff only.
    """
    try:
        result = await get_result(session, result_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found")

    if result.student_id != ctx.user.id and not ctx.can(Capability.VIEW_ALL_RESULTS):
        # do not reveal that someone else's result exists
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Result not found")

    try:
        exam = await get_exam(session, result.exam_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")

    return {
        "result": result_to_dict(result),
        "exam": full_view(exam),
        "solution": build_solution_view(result, exam),
    }

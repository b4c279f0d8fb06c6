from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db import get_async_session
from ..dependencies import SessionContext, exam_taker, get_session_context
from ..exceptions import AttemptLimitError, NotFoundError, ValidationError
from ..permissions import Capability
from ..schemas.result_schema import ResultRead, SubmitPayload, SubmitResponse
from ..services.result_service import query_results, result_to_dict, submit_attempt, submit_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/exams/{exam_id}/submit", response_model=SubmitResponse)
async def submit_exam(exam_id: UUID, payload: SubmitPayload, ctx: SessionContext = Depends(exam_taker), session: AsyncSession = Depends(get_async_session)):
    user = ctx.user
    try:
        result, created = await submit_attempt(
            session,
            student_id=user.id,
            exam_id=exam_id,
            answers=payload.answers,
            attempt_id=payload.attempt_id,
            # staff may dry-run unpublished exams
            published_only=not ctx.can(Capability.MANAGE_EXAMS),
        )
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
    except AttemptLimitError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except Exception as e:
        logger.exception("Error while submitting exam_id=%s student_id=%s: %s", str(exam_id), str(getattr(user, 'id', None)), e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error while grading submission")

    if not created:
        logger.info("Replayed result %s for attempt_id=%s", result.id, payload.attempt_id)
    return submit_response(result)


@router.get("/results/me", response_model=List[ResultRead])
async def get_my_results(ctx: SessionContext = Depends(get_session_context), session: AsyncSession = Depends(get_async_session)):
    rows = await query_results(session, student_id=ctx.user.id)
    return [result_to_dict(r) for r in rows]

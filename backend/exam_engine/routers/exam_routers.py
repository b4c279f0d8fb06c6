from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Literal, Union
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db import get_async_session
from ..dependencies import SessionContext, exam_manager, get_session_context
from ..exceptions import NotFoundError, ValidationError
from ..permissions import Capability
from ..schemas.exam_schema import ExamCreate, ExamFull, ExamRedacted, ExamSummary, ExamUpdate
from ..services import exam_service
from starlette.responses import Response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exams", tags=["Exams"])


@router.get("/", response_model=List[ExamSummary])
async def list_exams(session: AsyncSession = Depends(get_async_session), ctx: SessionContext = Depends(get_session_context)):
    # catalog: students only see published exams, staff see everything
    return await exam_service.list_exams(session, published_only=not ctx.can(Capability.MANAGE_EXAMS))


@router.post("/", response_model=ExamFull, status_code=status.HTTP_201_CREATED, dependencies=[Depends(exam_manager)])
async def create_exam(payload: ExamCreate, session: AsyncSession = Depends(get_async_session)):
    try:
        exam = await exam_service.create_exam(session, payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return exam_service.full_view(exam)


@router.get("/{exam_id}", response_model=None)
async def get_exam(
    exam_id: UUID,
    view: Literal["redacted", "full"] = Query("redacted"),
    session: AsyncSession = Depends(get_async_session),
    ctx: SessionContext = Depends(get_session_context),
) -> Union[ExamFull, ExamRedacted]:
    # The redacted view is what an attempt runs on. Students review answers
    # through their result, never through this endpoint.
    is_staff = ctx.can(Capability.MANAGE_EXAMS)
    if view == "full" and not is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")

    try:
        exam = await exam_service.get_exam(session, exam_id, published_only=not is_staff)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")

    if view == "full":
        return ExamFull(**exam_service.full_view(exam))
    return ExamRedacted(**exam_service.redacted_view(exam))


@router.put("/{exam_id}", response_model=ExamFull, dependencies=[Depends(exam_manager)])
async def update_exam(exam_id: UUID, payload: ExamUpdate, session: AsyncSession = Depends(get_async_session)):
    try:
        exam = await exam_service.update_exam(session, exam_id, payload)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return exam_service.full_view(exam)


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(exam_manager)])
async def delete_exam(exam_id: UUID, session: AsyncSession = Depends(get_async_session)):
    # delete exam, its questions and its results
    try:
        await exam_service.delete_exam(session, exam_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{exam_id}/publish", response_model=ExamFull, dependencies=[Depends(exam_manager)])
async def publish_exam(exam_id: UUID, session: AsyncSession = Depends(get_async_session)):
    try:
        exam = await exam_service.set_published(session, exam_id, True)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
    except ValidationError as e:
        logger.warning("Refused to publish exam %s: %s", exam_id, e.message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return exam_service.full_view(exam)


@router.post("/{exam_id}/unpublish", response_model=ExamFull, dependencies=[Depends(exam_manager)])
async def unpublish_exam(exam_id: UUID, session: AsyncSession = Depends(get_async_session)):
    try:
        exam = await exam_service.set_published(session, exam_id, False)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
    return exam_service.full_view(exam)

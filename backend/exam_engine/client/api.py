import logging
from typing import Any, List, Mapping, Optional, Union
from uuid import UUID

import httpx

from ..exceptions import (
    AuthorizationError,
    ExamEngineError,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from ..schemas.exam_schema import ExamFull, ExamRedacted, ExamSummary
from ..schemas.result_schema import ResultDetail, ResultRead, SubmitResponse
from ..schemas.user_schema import LoginResponse, SessionRead

logger = logging.getLogger(__name__)


def _detail(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(detail, list):
        # pydantic 422 payload
        return "; ".join(str(d.get("msg", d)) for d in detail)
    return str(detail) if detail else resp.reason_phrase


def error_for_response(resp: httpx.Response) -> ExamEngineError:
    """Map a failed HTTP response onto the exam engine error taxonomy."""
    code = resp.status_code
    message = _detail(resp)
    if code == 404:
        return NotFoundError(message, status_code=code)
    if code in (400, 409, 422):
        return ValidationError(message, status_code=code)
    if code in (401, 403):
        return AuthorizationError(message, status_code=code)
    return NetworkError(message, status_code=code)


class ExamApiClient:
    """
    Thin async wrapper over the exam engine HTTP API.

    Every method either returns a parsed pydantic model or raises one of
    NotFoundError, ValidationError, AuthorizationError or NetworkError.
    Nothing here retries on its own.
    """

    def __init__(
        self,
        base_url: str = "",
        token: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self.token = token

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    def set_token(self, token: Optional[str]):
        self.token = token

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            resp = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise NetworkError(f"Network error: {e}") from e
        if resp.status_code >= 400:
            raise error_for_response(resp)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # identity

    async def login(self, email: str, password: str) -> LoginResponse:
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        return LoginResponse.model_validate(data)

    async def get_session(self) -> SessionRead:
        return SessionRead.model_validate(await self._request("GET", "/auth/session"))

    # exams

    async def list_exams(self) -> List[ExamSummary]:
        data = await self._request("GET", "/api/exams/")
        return [ExamSummary.model_validate(e) for e in data]

    async def get_exam(self, exam_id: Union[str, UUID], full: bool = False) -> Union[ExamRedacted, ExamFull]:
        if full:
            data = await self._request("GET", f"/api/exams/{exam_id}", params={"view": "full"})
            return ExamFull.model_validate(data)
        return ExamRedacted.model_validate(await self._request("GET", f"/api/exams/{exam_id}"))

    async def submit_attempt(
        self,
        exam_id: Union[str, UUID],
        answers: Mapping[str, int],
        attempt_id: Optional[UUID] = None,
    ) -> SubmitResponse:
        payload = {
            "answers": [{"question_id": str(qid), "selected_option": idx} for qid, idx in answers.items()],
            "attempt_id": str(attempt_id) if attempt_id else None,
        }
        data = await self._request("POST", f"/api/exams/{exam_id}/submit", json=payload)
        return SubmitResponse.model_validate(data)

    # results

    async def results_for_student(self) -> List[ResultRead]:
        data = await self._request("GET", "/api/results/me")
        return [ResultRead.model_validate(r) for r in data]

    async def get_result(self, result_id: Union[str, UUID]) -> ResultDetail:
        return ResultDetail.model_validate(await self._request("GET", f"/api/results/{result_id}"))

import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from exam_engine.client.api import ExamApiClient
from exam_engine.client.attempt import AttemptSession, AttemptState
from exam_engine.models.result_model import Result
from exam_engine.permissions import UserRole
from exam_engine.services import result_service

from conftest import exam_payload


def qids(exam):
    return [q["id"] for q in exam["questions"]]


async def submit(api, exam_id, answers, attempt_id=None):
    body = {"answers": [{"question_id": q, "selected_option": o} for q, o in answers]}
    if attempt_id is not None:
        body["attempt_id"] = str(attempt_id)
    return await api.client.post(f"/api/exams/{exam_id}/submit", json=body)


async def count_results(session_maker):
    async with session_maker() as session:
        return (await session.execute(select(func.count()).select_from(Result))).scalar_one()


async def test_student_gets_redacted_exam(api, published_exam):
    api.login_as(UserRole.STUDENT)
    resp = await api.client.get(f"/api/exams/{published_exam['id']}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_marks"] == 2
    assert len(body["questions"]) == 2
    assert all("correct_option" not in q for q in body["questions"])
    assert "correct_option" not in resp.text


async def test_student_cannot_request_full_view(api, published_exam):
    api.login_as(UserRole.STUDENT)
    resp = await api.client.get(f"/api/exams/{published_exam['id']}", params={"view": "full"})
    assert resp.status_code == 403


async def test_staff_full_view_has_correct_options(api, published_exam):
    api.login_as(UserRole.TEACHER)
    resp = await api.client.get(f"/api/exams/{published_exam['id']}", params={"view": "full"})
    assert resp.status_code == 200
    assert [q["correct_option"] for q in resp.json()["questions"]] == [0, 2]


async def test_catalog_lists_summaries(api, published_exam):
    api.login_as(UserRole.TEACHER)
    await api.client.post("/api/exams/", json=exam_payload(title="Draft", is_published=False))

    api.login_as(UserRole.STUDENT)
    resp = await api.client.get("/api/exams/")
    assert resp.status_code == 200
    assert [e["title"] for e in resp.json()] == ["Sample Exam"]
    assert resp.json()[0]["total_marks"] == 2
    assert "questions" not in resp.json()[0]

    api.login_as(UserRole.TEACHER)
    resp = await api.client.get("/api/exams/")
    assert {e["title"] for e in resp.json()} == {"Sample Exam", "Draft"}


async def test_students_cannot_manage_exams(api):
    api.login_as(UserRole.STUDENT)
    resp = await api.client.post("/api/exams/", json=exam_payload())
    assert resp.status_code == 403


async def test_unauthenticated_requests_are_rejected(api, published_exam):
    resp = await api.client.get(f"/api/exams/{published_exam['id']}")
    assert resp.status_code == 401


async def test_unknown_exam_is_404(api):
    api.login_as(UserRole.STUDENT)
    assert (await api.client.get(f"/api/exams/{uuid.uuid4()}")).status_code == 404
    assert (await submit(api, uuid.uuid4(), [])).status_code == 404


async def test_all_correct_submission(api, published_exam):
    q1, q2 = qids(published_exam)
    api.login_as(UserRole.STUDENT)
    resp = await submit(api, published_exam["id"], [(q1, 0), (q2, 2)])
    assert resp.status_code == 200
    body = resp.json()
    assert body["score"] == 2
    assert body["correct_count"] == 2
    assert body["wrong_count"] == 0
    assert body["total_marks"] == 2
    assert body["passed"] is True
    assert body["percentage"] == 100.0


async def test_omitted_question_counts_as_wrong(api, published_exam):
    q1, _ = qids(published_exam)
    api.login_as(UserRole.STUDENT)
    body = (await submit(api, published_exam["id"], [(q1, 1)])).json()
    assert body["score"] == 0
    assert body["correct_count"] == 0
    assert body["wrong_count"] == 2
    assert body["passed"] is False
    assert body["percentage"] == 0.0


async def test_stale_question_ids_do_not_block_grading(api, published_exam):
    q1, _ = qids(published_exam)
    api.login_as(UserRole.STUDENT)
    resp = await submit(api, published_exam["id"], [(q1, 0), (str(uuid.uuid4()), 1), ("garbage", 2)])
    assert resp.status_code == 200
    assert resp.json()["score"] == 1


async def test_malformed_submission_is_422(api, published_exam):
    api.login_as(UserRole.STUDENT)
    resp = await api.client.post(
        f"/api/exams/{published_exam['id']}/submit",
        json={"answers": [{"question_id": qids(published_exam)[0]}]},
    )
    assert resp.status_code == 422


async def test_each_submit_creates_a_new_result(api, published_exam, session_maker):
    q1, q2 = qids(published_exam)
    api.login_as(UserRole.STUDENT)
    await submit(api, published_exam["id"], [(q1, 0)])
    await submit(api, published_exam["id"], [(q1, 0), (q2, 2)])
    assert await count_results(session_maker) == 2

    history = (await api.client.get("/api/results/me")).json()
    assert [r["score"] for r in history] == [2, 1]


async def test_same_attempt_id_is_graded_once(api, published_exam, session_maker):
    q1, q2 = qids(published_exam)
    attempt_id = uuid.uuid4()
    api.login_as(UserRole.STUDENT)
    first = await submit(api, published_exam["id"], [(q1, 0)], attempt_id)
    # client retries after losing the response, answers cannot change the stored grade
    second = await submit(api, published_exam["id"], [(q1, 0), (q2, 2)], attempt_id)

    assert first.json()["result_id"] == second.json()["result_id"]
    assert second.json()["score"] == 1
    assert await count_results(session_maker) == 1


async def test_attempt_limit_from_exam(api, session_maker):
    api.login_as(UserRole.TEACHER)
    exam = (await api.client.post("/api/exams/", json=exam_payload(max_attempts=1))).json()

    api.login_as(UserRole.STUDENT)
    assert (await submit(api, exam["id"], [])).status_code == 200
    resp = await submit(api, exam["id"], [])
    assert resp.status_code == 409
    assert await count_results(session_maker) == 1

    # the limit is per student
    api.login_as("other")
    assert (await submit(api, exam["id"], [])).status_code == 200


async def test_configured_attempt_limit_applies_when_exam_has_none(db_session, users, published_exam):
    from exam_engine.exceptions import AttemptLimitError

    student = users[UserRole.STUDENT]
    await result_service.submit_attempt(db_session, student.id, published_exam["id"], [], max_attempts=1)
    with pytest.raises(AttemptLimitError):
        await result_service.submit_attempt(db_session, student.id, published_exam["id"], [], max_attempts=1)


async def test_result_detail_for_owner(api, published_exam):
    q1, q2 = qids(published_exam)
    api.login_as(UserRole.STUDENT)
    result_id = (await submit(api, published_exam["id"], [(q1, 0), (q2, 1)])).json()["result_id"]

    resp = await api.client.get(f"/api/results/{result_id}")
    assert resp.status_code == 200
    detail = resp.json()
    assert detail["result"]["score"] == 1
    assert detail["result"]["percentage"] == 50.0
    assert detail["solution"]["percentage"] == 50.0
    assert [q["correct_option"] for q in detail["exam"]["questions"]] == [0, 2]
    rows = detail["solution"]["questions"]
    assert [(r["selected_option"], r["is_correct"]) for r in rows] == [(0, True), (1, False)]


async def test_result_detail_hidden_from_other_students(api, published_exam):
    api.login_as(UserRole.STUDENT)
    result_id = (await submit(api, published_exam["id"], [])).json()["result_id"]

    api.login_as("other")
    assert (await api.client.get(f"/api/results/{result_id}")).status_code == 404

    api.login_as(UserRole.MODERATOR)
    assert (await api.client.get(f"/api/results/{result_id}")).status_code == 200


async def test_solution_view_survives_question_removal(api, published_exam):
    q1, q2 = qids(published_exam)
    api.login_as(UserRole.STUDENT)
    result_id = (await submit(api, published_exam["id"], [(q1, 0), (q2, 2)])).json()["result_id"]

    api.login_as(UserRole.TEACHER)
    resp = await api.client.put(
        f"/api/exams/{published_exam['id']}",
        json={
            "pass_marks": 1,
            "questions": [{"id": q1, "text": "q1", "options": ["a", "b", "c", "d"], "correct_option": 0}],
        },
    )
    assert resp.status_code == 200, resp.text

    api.login_as(UserRole.STUDENT)
    detail = (await api.client.get(f"/api/results/{result_id}")).json()
    assert [r["question_id"] for r in detail["solution"]["questions"]] == [q1]
    assert detail["solution"]["score"] == 2


async def test_staff_result_query(api, published_exam):
    api.login_as(UserRole.STUDENT)
    await submit(api, published_exam["id"], [])
    api.login_as("other")
    await submit(api, published_exam["id"], [])

    assert (await api.client.get("/api/results/")).status_code == 403

    api.login_as(UserRole.TEACHER)
    student_id = str(api.users[UserRole.STUDENT].id)
    resp = await api.client.get("/api/results/", params={"student_id": student_id})
    assert [r["student_id"] for r in resp.json()] == [student_id]
    resp = await api.client.get("/api/results/", params={"exam_id": published_exam["id"]})
    assert len(resp.json()) == 2


async def test_publish_and_delete(api):
    api.login_as(UserRole.TEACHER)
    exam = (await api.client.post("/api/exams/", json=exam_payload(is_published=False))).json()

    api.login_as(UserRole.STUDENT)
    assert (await api.client.get(f"/api/exams/{exam['id']}")).status_code == 404

    api.login_as(UserRole.TEACHER)
    assert (await api.client.post(f"/api/exams/{exam['id']}/publish")).json()["is_published"] is True

    api.login_as(UserRole.STUDENT)
    assert (await submit(api, exam["id"], [])).status_code == 200

    api.login_as(UserRole.TEACHER)
    assert (await api.client.delete(f"/api/exams/{exam['id']}")).status_code == 204
    assert (await api.client.get(f"/api/exams/{exam['id']}")).status_code == 404
    assert (await api.client.get("/api/results/")).json() == []


async def test_create_exam_validation(api):
    api.login_as(UserRole.TEACHER)
    bad = exam_payload()
    bad["questions"][0]["options"] = ["only", "three", "options"]
    assert (await api.client.post("/api/exams/", json=bad)).status_code == 422


async def test_attempt_session_end_to_end(api, published_exam):
    q1, q2 = qids(published_exam)
    api.login_as(UserRole.STUDENT)
    client = ExamApiClient(client=api.client)

    session = await AttemptSession.load(client, published_exam["id"])
    assert session.display == "30:00"
    session.start(run_timer=False)
    session.select_answer(q1, 0)
    session.select_answer(q2, 2)

    result = await session.submit()
    assert session.state is AttemptState.GRADED
    assert (result.score, result.correct_count, result.wrong_count) == (2, 2, 0)

    detail = await client.get_result(result.result_id)
    assert detail.solution.passed is True
    assert [r.id for r in await client.results_for_student()] == [result.result_id]


async def test_auto_submit_racing_manual_submit_creates_one_result(api, published_exam, session_maker):
    q1, _ = qids(published_exam)
    api.login_as(UserRole.STUDENT)
    client = ExamApiClient(client=api.client)

    session = await AttemptSession.load(client, published_exam["id"])
    session.start(run_timer=False)
    session.select_answer(q1, 0)
    session.remaining_seconds = 1

    manual = asyncio.ensure_future(session.submit())
    session.tick()
    result = await manual

    assert session.auto_submitted
    assert result.score == 1
    assert await count_results(session_maker) == 1


async def test_concurrent_submits_respect_attempt_limit(api, session_maker):
    api.login_as(UserRole.TEACHER)
    exam = (await api.client.post("/api/exams/", json=exam_payload(max_attempts=1))).json()

    api.login_as(UserRole.STUDENT)
    first, second = await asyncio.gather(
        submit(api, exam["id"], [], uuid.uuid4()),
        submit(api, exam["id"], [], uuid.uuid4()),
    )

    assert sorted([first.status_code, second.status_code]) == [200, 409]
    assert await count_results(session_maker) == 1


async def test_concurrent_attempt_limit_in_service(session_maker, users, published_exam):
    from exam_engine.exceptions import AttemptLimitError

    student = users[UserRole.STUDENT]

    async def one_submit():
        async with session_maker() as session:
            return await result_service.submit_attempt(
                session, student.id, published_exam["id"], [], attempt_id=uuid.uuid4(), max_attempts=1
            )

    outcomes = await asyncio.gather(*(one_submit() for _ in range(3)), return_exceptions=True)

    assert sum(isinstance(o, AttemptLimitError) for o in outcomes) == 2
    assert await count_results(session_maker) == 1

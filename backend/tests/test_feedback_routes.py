"""End-to-end tests for the feedback HTTP surface."""

from __future__ import annotations

from typing import AsyncIterator, Callable, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from app.completion_client import CompletionClient
from app.feedback_routes import get_completion_client
from app.main import app
from conftest import sample_feedback_payload


@pytest.fixture
def use_proxy(make_completion_client) -> Iterator[Callable]:
    def install(handler) -> None:
        async def override() -> AsyncIterator[CompletionClient]:
            client = make_completion_client(handler)
            try:
                yield client
            finally:
                await client.aclose()

        app.dependency_overrides[get_completion_client] = override

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def client(feedback_db) -> TestClient:
    return TestClient(app)


def _submit(client: TestClient, name: str = "민준", essay: str = "식물은 햇빛으로 양분을 만든다.") -> dict:
    response = client.post("/api/feedback", json={"studentName": name, "essay": essay})
    assert response.status_code == 201
    return response.json()


def test_submit_returns_generated_feedback(client, use_proxy, replying_with, valid_completion_text) -> None:
    use_proxy(replying_with(valid_completion_text))
    body = _submit(client)

    assert body["studentName"] == "민준"
    assert body["outcome"] == "success"
    assert body["feedback"]["feedback"] == sample_feedback_payload()["feedback"]
    assert body["feedback"]["studentName"] == "민준"
    assert set(body["feedback"]["ratings"]) == {
        "content",
        "logicalFlow",
        "sentenceExpression",
        "scientificKnowledge",
        "readerAwareness",
    }


def test_submit_with_unreachable_proxy_still_stores_fallback(client, use_proxy) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    use_proxy(handler)
    body = _submit(client)

    assert body["outcome"] == "remote_fallback"
    stored = client.get(f"/api/feedback/{body['id']}")
    assert stored.status_code == 200
    assert stored.json()["feedback"]["ratings"]["content"]["stars"] == 4


@pytest.mark.parametrize(
    "payload",
    [
        {"studentName": "   ", "essay": "글"},
        {"studentName": "민준", "essay": ""},
        {"essay": "이름 없음"},
    ],
)
def test_submit_rejects_blank_fields(client, use_proxy, replying_with, valid_completion_text, payload) -> None:
    use_proxy(replying_with(valid_completion_text))
    response = client.post("/api/feedback", json=payload)
    assert response.status_code == 422


def test_teacher_override_flow(client, use_proxy, replying_with, valid_completion_text) -> None:
    use_proxy(replying_with(valid_completion_text))
    feedback_id = _submit(client)["id"]

    edited = sample_feedback_payload(name="다른 이름")
    edited["feedback"] = "선생님이 고친 피드백이에요."
    response = client.put(f"/api/feedback/{feedback_id}/override", json=edited)
    assert response.status_code == 200
    review = response.json()
    assert review["teacherModified"] is True
    assert review["effective"]["feedback"] == "선생님이 고친 피드백이에요."
    assert review["effective"]["studentName"] == "민준"
    assert review["original"]["feedback"] == sample_feedback_payload()["feedback"]
    assert review["essay"] == "식물은 햇빛으로 양분을 만든다."

    student_view = client.get(f"/api/feedback/{feedback_id}").json()
    assert student_view["teacherModified"] is True
    assert student_view["feedback"]["feedback"] == "선생님이 고친 피드백이에요."

    cleared = client.delete(f"/api/feedback/{feedback_id}/override").json()
    assert cleared["teacherModified"] is False
    assert cleared["override"] is None
    assert cleared["effective"] == cleared["original"]


def test_invalid_override_is_rejected(client, use_proxy, replying_with, valid_completion_text) -> None:
    use_proxy(replying_with(valid_completion_text))
    feedback_id = _submit(client)["id"]

    edited = sample_feedback_payload()
    edited["strengths"] = []
    response = client.put(f"/api/feedback/{feedback_id}/override", json=edited)
    assert response.status_code == 422


def test_unknown_feedback_returns_404(client) -> None:
    assert client.get("/api/feedback/unknown").status_code == 404
    assert client.get("/api/feedback/unknown/review").status_code == 404
    assert client.delete("/api/feedback/unknown/override").status_code == 404
    assert client.put("/api/feedback/unknown/override", json=sample_feedback_payload()).status_code == 404
    assert client.get("/api/students/unknown/feedback").status_code == 404


def test_student_links_and_dashboard(client, use_proxy, replying_with, valid_completion_text) -> None:
    use_proxy(replying_with(valid_completion_text))
    _submit(client, "민준", "첫 번째 글")
    _submit(client, "민준", "두 번째 글")
    _submit(client, "서연", "서연의 글")

    links = {item["studentName"]: item for item in client.get("/api/students").json()}
    assert set(links) == {"민준", "서연"}
    assert links["민준"]["submissionCount"] == 2
    assert links["민준"]["averageStars"] == 4.0
    assert links["민준"]["latestSummary"]

    dashboard = client.get(f"/api/students/{links['민준']['dashboardId']}/feedback").json()
    assert dashboard["studentName"] == "민준"
    assert len(dashboard["feedback"]) == 2
    assert all(item["feedback"]["studentName"] == "민준" for item in dashboard["feedback"])


def test_batch_processes_valid_rows(client, use_proxy, replying_with, valid_completion_text) -> None:
    use_proxy(replying_with(valid_completion_text))
    response = client.post(
        "/api/feedback/batch",
        json={
            "rows": [
                {"학생이름": "민준", "글내용": "물의 순환"},
                {"학생이름": "", "글내용": "이름 없음"},
                {"name": "서연", "essay": "자석의 성질"},
            ]
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["succeeded"] == 2
    assert [item["studentName"] for item in body["results"]] == ["민준", "서연"]
    assert all(item["outcome"] == "success" for item in body["results"])


def test_batch_without_usable_rows_is_rejected(client, use_proxy, replying_with, valid_completion_text) -> None:
    use_proxy(replying_with(valid_completion_text))
    response = client.post("/api/feedback/batch", json={"rows": [{"제목": "빈 행"}]})
    assert response.status_code == 422

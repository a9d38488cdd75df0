from __future__ import annotations

import asyncio
import json
from typing import List

import httpx
import pytest

from app.feedback_models import FeedbackRequest, RATING_CATEGORIES
from app.feedback_pipeline import FeedbackOutcome, generate_feedback, run_feedback_pipeline
from app.telemetry import TelemetryEvent, register_listener
from conftest import FakeCompletion, FakeOpenAI, completion_body, sample_feedback_payload


REQUEST = FeedbackRequest(submitter_name="민준", essay_text="식물은 햇빛을 받아 양분을 만든다.")


def _run(client, request: FeedbackRequest = REQUEST):
    async def scenario():
        try:
            return await run_feedback_pipeline(request, client=client)
        finally:
            await client.aclose()

    return asyncio.run(scenario())


def test_valid_completion_is_returned_verbatim(make_completion_client, replying_with, valid_completion_text) -> None:
    events: List[TelemetryEvent] = []
    register_listener(events.append)

    result = _run(make_completion_client(replying_with(valid_completion_text)))

    expected = sample_feedback_payload()
    assert result.outcome is FeedbackOutcome.SUCCESS
    assert result.error is None
    assert result.record.submitter_name == "민준"
    assert result.record.summary_message == expected["feedback"]
    assert result.record.strengths == expected["strengths"]
    assert result.record.tips == expected["tips"]
    assert [event.name for event in events] == ["feedback_generated"]
    assert events[0].payload["outcome"] == "success"
    assert events[0].payload["submitter_name"] == "민준"


def test_model_echoed_name_is_replaced(make_completion_client, replying_with) -> None:
    text = json.dumps(sample_feedback_payload(name="엉뚱한 이름"), ensure_ascii=False)
    result = _run(make_completion_client(replying_with(text)))

    assert result.outcome is FeedbackOutcome.SUCCESS
    assert result.record.submitter_name == "민준"


def test_network_failure_yields_remote_fallback(make_completion_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    result = _run(make_completion_client(handler))

    assert result.outcome is FeedbackOutcome.REMOTE_FALLBACK
    assert result.error
    assert result.record.submitter_name == "민준"
    assert "민준님" in result.record.summary_message
    assert {result.record.ratings.get(category).stars for category in RATING_CATEGORIES} == {4}


def test_proxy_error_status_yields_remote_fallback(make_completion_client) -> None:
    client = make_completion_client(
        lambda request: httpx.Response(500, json={"error": "OpenAI API key not configured"})
    )
    result = _run(client)

    assert result.outcome is FeedbackOutcome.REMOTE_FALLBACK
    assert "500" in (result.error or "")


def test_non_json_completion_yields_parse_fallback(make_completion_client, replying_with) -> None:
    events: List[TelemetryEvent] = []
    register_listener(events.append)

    result = _run(make_completion_client(replying_with("좋은 글이네요! 계속 노력하세요.")))

    assert result.outcome is FeedbackOutcome.PARSE_FALLBACK
    assert {result.record.ratings.get(category).stars for category in RATING_CATEGORIES} == {3}
    assert result.record.summary_message.startswith("민준님")
    assert events[0].payload["outcome"] == "parse_fallback"


def test_partial_json_is_repaired_not_replaced(make_completion_client, replying_with) -> None:
    text = '다음은 결과입니다: {"feedback": "멋진 관찰이에요!", "strengths": "실험 순서가 분명해요."}'
    result = _run(make_completion_client(replying_with(text)))

    assert result.outcome is FeedbackOutcome.SUCCESS
    assert result.record.summary_message == "멋진 관찰이에요!"
    assert result.record.strengths == ["실험 순서가 분명해요."]
    assert result.record.tips


def test_generate_feedback_returns_record_only(make_completion_client, replying_with, valid_completion_text) -> None:
    client = make_completion_client(replying_with(valid_completion_text))

    async def scenario():
        try:
            return await generate_feedback(REQUEST, client=client)
        finally:
            await client.aclose()

    record = asyncio.run(scenario())
    assert record.summary_message == sample_feedback_payload()["feedback"]


def test_generate_feedback_without_client_uses_in_process_proxy(monkeypatch, valid_completion_text) -> None:
    from app.completion_proxy_routes import get_openai_client
    from app.config import get_settings
    from app.main import app

    monkeypatch.delenv("SCIWRITE_COMPLETION_PROXY_BASE_URL", raising=False)
    get_settings.cache_clear()
    fake = FakeOpenAI(FakeCompletion(completion_body(valid_completion_text)))
    app.dependency_overrides[get_openai_client] = lambda: fake
    try:
        result = asyncio.run(run_feedback_pipeline(REQUEST))
    finally:
        app.dependency_overrides.clear()
        get_settings.cache_clear()

    assert result.outcome is FeedbackOutcome.SUCCESS
    assert result.record.summary_message == sample_feedback_payload()["feedback"]
    assert len(fake.calls) == 1
    assert "민준" in fake.calls[0]["messages"][1]["content"]


def test_client_configuration_error_is_raised(monkeypatch) -> None:
    from app import feedback_pipeline

    def broken_factory(settings, *, app=None):
        raise RuntimeError("proxy misconfigured")

    monkeypatch.setattr(feedback_pipeline, "create_completion_client", broken_factory)
    with pytest.raises(RuntimeError, match="proxy misconfigured"):
        asyncio.run(generate_feedback(REQUEST, app=object()))


def test_oversized_star_value_keeps_completion(make_completion_client, replying_with) -> None:
    payload = sample_feedback_payload()
    payload["ratings"]["content"]["stars"] = 10**400
    payload["logicalFlow"]["rating"] = -(10**400)
    result = _run(make_completion_client(replying_with(json.dumps(payload, ensure_ascii=False))))

    assert result.outcome is FeedbackOutcome.SUCCESS
    assert result.record.ratings.content.stars == 5
    assert result.record.logical_flow_highlight is not None
    assert result.record.logical_flow_highlight.rating == 1
    assert result.record.summary_message == payload["feedback"]

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, Iterator

import httpx
import pytest

from app.completion_client import CompletionClient
from app.config import get_settings
from app.db.session import create_schema, dispose_engine
from app.feedback_models import RATING_CATEGORIES
from app.telemetry import clear_listeners


def sample_feedback_payload(name: str = "민준") -> Dict[str, Any]:
    return {
        "studentName": name,
        "feedback": f"{name}님, 광합성 과정을 차근차근 설명한 점이 멋져요!",
        "strengths": [
            "**광합성**에 필요한 재료를 정확하게 적었어요.",
            "관찰한 내용을 순서대로 정리했어요.",
        ],
        "improvements": ["**빛**이 하는 역할을 조금 더 설명해보세요."],
        "tips": ["그림을 곁들이면 읽는 사람이 더 쉽게 이해해요."],
        "ratings": {
            category: {"stars": 4, "comment": f"{category} 평가"} for category in RATING_CATEGORIES
        },
        "improvedSentences": [
            {"original": "식물은 밥을 만든다.", "improved": "식물은 광합성으로 양분을 만든다."}
        ],
        "scientificKnowledge": {
            "present": ["광합성"],
            "missing": ["엽록체"],
            "suggestions": "엽록체가 어떤 일을 하는지 찾아보세요.",
        },
        "logicalFlow": {"rating": 5, "comment": "글의 순서가 자연스러워요."},
    }


def completion_body(content: str) -> Dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_completion_client() -> Callable[[Handler], CompletionClient]:
    def factory(handler: Handler) -> CompletionClient:
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url="http://proxy.test",
        )
        return CompletionClient(http_client)

    return factory


@pytest.fixture
def replying_with() -> Callable[[str], Handler]:
    """Handler factory returning a proxy response whose message content is ``text``."""

    def factory(text: str) -> Handler:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=completion_body(text))

        return handler

    return factory


@pytest.fixture
def valid_completion_text() -> str:
    return "```json\n" + json.dumps(sample_feedback_payload(), ensure_ascii=False) + "\n```"


@pytest.fixture
def feedback_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    db_path = tmp_path / "sciwrite.db"
    monkeypatch.setenv("SCIWRITE_DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("SCIWRITE_BATCH_DELAY_SECONDS", "0")
    get_settings.cache_clear()
    dispose_engine()
    create_schema()
    yield db_path
    dispose_engine()
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Iterator[None]:
    yield
    clear_listeners()


class FakeCompletion:
    def __init__(self, body: Dict[str, Any]) -> None:
        self._body = body

    def model_dump(self, **_: Any) -> Dict[str, Any]:
        return self._body


class FakeOpenAI:
    """Stands in for ``AsyncOpenAI`` behind the proxy route."""

    def __init__(self, result: Any) -> None:
        self.calls: list[Dict[str, Any]] = []
        self._result = result
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if isinstance(self._result, Exception):
            raise self._result
        return self._result

from __future__ import annotations

from app.feedback_models import FeedbackRequest
from app.prompt_builder import SCIENCE_WRITING_PROMPT, SYSTEM_MESSAGE, build_messages, build_prompt


def test_prompt_contains_name_and_essay() -> None:
    request = FeedbackRequest(submitter_name="민준", essay_text="식물은 햇빛으로 양분을 만든다.")
    prompt = build_prompt(request)

    assert "민준" in prompt
    assert "식물은 햇빛으로 양분을 만든다." in prompt
    assert "{studentName}" not in prompt
    assert "{essay}" not in prompt
    assert "학년 수준" not in prompt


def test_prompt_is_deterministic() -> None:
    request = FeedbackRequest(submitter_name="서연", essay_text="물은 100도에서 끓는다.")
    assert build_prompt(request) == build_prompt(request)


def test_level_hint_adds_grade_line() -> None:
    request = FeedbackRequest(submitter_name="서연", essay_text="얼음이 녹는다.", level_hint="초등 5학년")
    assert "\n학년 수준: 초등 5학년" in build_prompt(request)


def test_placeholder_text_inside_essay_is_not_expanded() -> None:
    request = FeedbackRequest(submitter_name="{essay}", essay_text="내 이름은 {studentName}")
    prompt = build_prompt(request)

    assert "학생 이름: {essay}\n" in prompt
    assert "내 이름은 {studentName}" in prompt
    assert prompt.count("내 이름은 {studentName}") == 1


def test_template_keeps_json_contract() -> None:
    for key in ("strengths", "improvements", "tips", "ratings", "improvedSentences", "logicalFlow"):
        assert key in SCIENCE_WRITING_PROMPT


def test_messages_pair_system_and_user_roles() -> None:
    request = FeedbackRequest(submitter_name="민준", essay_text="달은 스스로 빛나지 않는다.")
    messages = build_messages(request)

    assert [message["role"] for message in messages] == ["system", "user"]
    assert messages[0]["content"] == SYSTEM_MESSAGE
    assert messages[1]["content"] == build_prompt(request)


def test_template_keeps_worked_examples() -> None:
    assert "수정한 문장은 [예시]로 따로 표시해줘" in SCIENCE_WRITING_PROMPT
    assert "논리적 전개 ★★★★☆" in SCIENCE_WRITING_PROMPT
    assert "과학 용어 옆에 쉬운 말을 덧붙이면" in SCIENCE_WRITING_PROMPT
    assert "대상 맞춤성 (읽는 사람을 잘 배려했는지)" in SCIENCE_WRITING_PROMPT

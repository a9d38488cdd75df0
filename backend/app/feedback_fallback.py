"""Fixed feedback profiles substituted when a completion cannot be used."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from .feedback_errors import ParseError
from .feedback_models import FeedbackRecord, FeedbackRequest, LogicalFlowHighlight, RatingSet


@dataclass(frozen=True)
class FallbackProfile:
    name: str
    summary_template: str
    strengths: Tuple[str, ...]
    improvements: Tuple[str, ...]
    tips: Tuple[str, ...]
    stars: int
    rating_comments: Dict[str, str]


REMOTE_FAILURE_FALLBACK = FallbackProfile(
    name="remote_failure",
    summary_template="{name}님, 현재 AI 피드백 시스템에 일시적인 문제가 있습니다. 잠시 후 다시 시도해주세요! 💫",
    strengths=(
        "과학 글쓰기에 도전하는 용기가 훌륭해요!",
        "학습에 대한 열정이 느껴져요.",
        "꾸준히 노력하는 모습이 인상적입니다!",
    ),
    improvements=(
        "AI 시스템이 복구되면 더 자세한 피드백을 제공하겠습니다.",
        "계속 과학 글쓰기를 연습해보세요.",
        "궁금한 점이 있으면 언제든 질문해주세요.",
    ),
    tips=(
        "과학적 개념을 일상생활과 연결해보세요.",
        "글을 쓰기 전에 간단한 개요를 만들어보세요.",
    ),
    stars=4,
    rating_comments={
        "content": "더 정확한 평가를 위해 다시 시도해주세요.",
        "logicalFlow": "시스템 복구 후 자세히 분석해드리겠습니다.",
        "sentenceExpression": "문장 구조를 더 자세히 검토해드리겠습니다.",
        "scientificKnowledge": "과학 지식을 더 정확히 평가해드리겠습니다.",
        "readerAwareness": "독자 고려 능력을 더 자세히 분석해드리겠습니다.",
    },
)

# Stars differ from the remote profile on purpose; both values are kept as observed.
PARSE_FAILURE_FALLBACK = FallbackProfile(
    name="parse_failure",
    summary_template="{name}님, 과학 글쓰기에 참여해주셔서 감사해요! 더 나은 피드백을 위해 다시 시도해보겠습니다.",
    strengths=("글쓰기에 참여한 적극적인 자세가 훌륭해요!",),
    improvements=("조금 더 자세한 설명을 추가해보세요.",),
    tips=("과학적 개념을 일상 예시와 연결해보세요.",),
    stars=3,
    rating_comments={
        "content": "내용을 더 자세히 분석해드리겠습니다.",
        "logicalFlow": "글의 구조를 더 자세히 살펴보겠습니다.",
        "sentenceExpression": "문장 표현을 더 자세히 검토해드리겠습니다.",
        "scientificKnowledge": "과학 지식을 더 자세히 평가해드리겠습니다.",
        "readerAwareness": "독자 고려를 더 자세히 분석해드리겠습니다.",
    },
)


def build_fallback(profile: FallbackProfile, submitter_name: str) -> FeedbackRecord:
    ratings = RatingSet.uniform(profile.stars, profile.rating_comments)
    return FeedbackRecord(
        submitter_name=submitter_name,
        summary_message=profile.summary_template.format(name=submitter_name),
        strengths=list(profile.strengths),
        improvements=list(profile.improvements),
        tips=list(profile.tips),
        ratings=ratings,
        sentence_revisions=[],
        knowledge_assessment=None,
        logical_flow_highlight=LogicalFlowHighlight(
            rating=ratings.logical_flow.stars,
            comment=ratings.logical_flow.comment,
        ),
    )


def profile_for(cause: BaseException) -> FallbackProfile:
    if isinstance(cause, ParseError):
        return PARSE_FAILURE_FALLBACK
    return REMOTE_FAILURE_FALLBACK


def fallback_for(request: FeedbackRequest, cause: BaseException) -> FeedbackRecord:
    return build_fallback(profile_for(cause), request.submitter_name)


__all__ = [
    "FallbackProfile",
    "PARSE_FAILURE_FALLBACK",
    "REMOTE_FAILURE_FALLBACK",
    "build_fallback",
    "fallback_for",
    "profile_for",
]

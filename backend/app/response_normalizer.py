"""Extract, parse and shape-repair the JSON feedback embedded in a completion."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from .feedback_errors import ParseError
from .feedback_models import (
    MAX_STARS,
    MIN_STARS,
    RATING_CATEGORIES,
    FeedbackRecord,
    KnowledgeAssessment,
    LogicalFlowHighlight,
    RatingEntry,
    RatingSet,
    SentenceRevision,
)

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[ \t]*[A-Za-z0-9_+.-]*[ \t]*\r?\n?([\s\S]*?)\s*```")
_STAR_GLYPHS = re.compile(r"^[★☆\s]+$")


@dataclass(frozen=True)
class NormalizerDefaults:
    summary_template: str = "{name}님의 과학 글쓰기 분석이 완료되었습니다! ✨"
    anonymous_summary: str = "과학 글쓰기 분석이 완료되었습니다! ✨"
    strengths: Tuple[str, ...] = ("과학적 사고력이 돋보이는 글이에요!",)
    improvements: Tuple[str, ...] = ("더 구체적인 설명을 추가해보세요.",)
    tips: Tuple[str, ...] = ("과학적 개념을 일상생활과 연결해보세요!",)
    stars: int = 4
    rating_comments: Dict[str, str] = field(
        default_factory=lambda: {
            "content": "내용이 흥미롭고 이해하기 쉬워요!",
            "logicalFlow": "논리적 구조가 잘 갖춰져 있어요!",
            "sentenceExpression": "문장이 명확하고 읽기 편해요!",
            "scientificKnowledge": "과학 지식이 잘 드러나요!",
            "readerAwareness": "독자를 고려한 설명이 좋아요!",
        }
    )
    sentence_revisions: Tuple[Tuple[str, str], ...] = (
        (
            "더 구체적인 표현이 필요한 문장이 있다면",
            "과학적 용어를 사용해서 더 정확하게 표현해보세요.",
        ),
    )
    knowledge_present: Tuple[str, ...] = ("기본 과학 개념", "논리적 사고")
    knowledge_missing: Tuple[str, ...] = ("심화 개념", "응용 사례")
    knowledge_suggestions: str = "과학적 개념을 일상생활 예시와 함께 설명하면 더 좋겠어요!"

    def summary(self, name: str) -> str:
        return self.summary_template.format(name=name) if name else self.anonymous_summary


NORMALIZER_DEFAULTS = NormalizerDefaults()


def extract_json_text(raw_text: str) -> str:
    """Pick the JSON candidate out of free text: json fence, any fence, outer braces."""
    match = _JSON_FENCE.search(raw_text)
    if match:
        return match.group(1).strip()
    match = _ANY_FENCE.search(raw_text)
    if match:
        return match.group(1).strip()
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start != -1 and end > start:
        return raw_text[start : end + 1]
    return raw_text.strip()


def normalize_response(
    raw_text: str,
    *,
    submitter_name: str = "",
    defaults: NormalizerDefaults = NORMALIZER_DEFAULTS,
) -> FeedbackRecord:
    candidate = extract_json_text(raw_text)
    logger.debug("Parsing completion candidate (%d chars)", len(candidate))
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Completion did not contain valid JSON: {exc}", raw_text=raw_text) from exc
    if not isinstance(data, Mapping):
        raise ParseError(
            f"Completion JSON must be an object, got {type(data).__name__}",
            raw_text=raw_text,
        )
    try:
        return repair_feedback(data, submitter_name=submitter_name, defaults=defaults)
    except ValidationError as exc:
        raise ParseError(f"Feedback payload could not be repaired: {exc}", raw_text=raw_text) from exc


def repair_feedback(
    data: Mapping[str, Any],
    *,
    submitter_name: str = "",
    defaults: NormalizerDefaults = NORMALIZER_DEFAULTS,
) -> FeedbackRecord:
    """Fill every missing or malformed field of a parsed payload with its default."""
    name = submitter_name or _text(data.get("studentName"), "")
    ratings = _ratings(data.get("ratings"), defaults)
    return FeedbackRecord(
        submitter_name=name,
        summary_message=_text(data.get("feedback"), defaults.summary(name)),
        strengths=_string_list(data.get("strengths"), defaults.strengths, allow_empty=False),
        improvements=_string_list(data.get("improvements"), defaults.improvements),
        tips=_string_list(data.get("tips"), defaults.tips),
        ratings=ratings,
        sentence_revisions=_sentence_revisions(data.get("improvedSentences"), defaults),
        knowledge_assessment=_knowledge(data.get("scientificKnowledge"), defaults),
        logical_flow_highlight=_logical_flow(data.get("logicalFlow"), ratings),
    )


def _text(value: Any, default: str) -> str:
    if isinstance(value, str):
        return value if value.strip() else default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _string_list(value: Any, default: Tuple[str, ...], *, allow_empty: bool = True) -> List[str]:
    if value is None:
        return list(default)
    if isinstance(value, list):
        items = [item for item in (_text(entry, "") for entry in value) if item.strip()]
        if items or (allow_empty and not value):
            return items
        return list(default)
    single = _text(value, "")
    return [single] if single else list(default)


def _stars(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped and _STAR_GLYPHS.match(stripped):
            number: float = float(stripped.count("★"))
        else:
            try:
                number = float(stripped)
            except ValueError:
                return None
    elif isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            number = math.inf if value > 0 else -math.inf
    else:
        return None
    if math.isnan(number):
        return None
    if number >= MAX_STARS:
        return MAX_STARS
    if number <= MIN_STARS:
        return MIN_STARS
    return int(round(number))


def _rating_entry(value: Any, category: str, defaults: NormalizerDefaults) -> RatingEntry:
    default_comment = defaults.rating_comments[category]
    if isinstance(value, Mapping):
        stars = _stars(value.get("stars"))
        comment = _text(value.get("comment"), default_comment)
    else:
        stars = _stars(value)
        comment = default_comment
    return RatingEntry(stars=stars if stars is not None else defaults.stars, comment=comment)


def _ratings(value: Any, defaults: NormalizerDefaults) -> RatingSet:
    source: Mapping[str, Any] = value if isinstance(value, Mapping) else {}
    return RatingSet.model_validate(
        {
            category: _rating_entry(source.get(category), category, defaults)
            for category in RATING_CATEGORIES
        }
    )


def _sentence_revisions(value: Any, defaults: NormalizerDefaults) -> List[SentenceRevision]:
    if value is None:
        return [
            SentenceRevision(original=original, improved=improved)
            for original, improved in defaults.sentence_revisions
        ]
    entries = value if isinstance(value, list) else [value]
    revisions: List[SentenceRevision] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        original = _text(entry.get("original"), "")
        improved = _text(entry.get("improved"), "")
        if original and improved:
            revisions.append(SentenceRevision(original=original, improved=improved))
    return revisions


def _knowledge(value: Any, defaults: NormalizerDefaults) -> KnowledgeAssessment:
    if not isinstance(value, Mapping):
        return KnowledgeAssessment(
            present=list(defaults.knowledge_present),
            missing=list(defaults.knowledge_missing),
            suggestions=defaults.knowledge_suggestions,
        )
    return KnowledgeAssessment(
        present=_string_list(value.get("present"), ()),
        missing=_string_list(value.get("missing"), ()),
        suggestions=_text(value.get("suggestions"), defaults.knowledge_suggestions),
    )


def _logical_flow(value: Any, ratings: RatingSet) -> LogicalFlowHighlight:
    base = ratings.logical_flow
    if isinstance(value, Mapping):
        rating = _stars(value.get("rating"))
        return LogicalFlowHighlight(
            rating=rating if rating is not None else base.stars,
            comment=_text(value.get("comment"), base.comment),
        )
    return LogicalFlowHighlight(rating=base.stars, comment=base.comment)


__all__ = [
    "NORMALIZER_DEFAULTS",
    "NormalizerDefaults",
    "extract_json_text",
    "normalize_response",
    "repair_feedback",
]

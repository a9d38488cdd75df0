"""Data models for science-writing feedback records and their stored form."""

from __future__ import annotations

from datetime import datetime, timezone
from statistics import mean
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


RATING_CATEGORIES: Tuple[str, ...] = (
    "content",
    "logicalFlow",
    "sentenceExpression",
    "scientificKnowledge",
    "readerAwareness",
)

MIN_STARS = 1
MAX_STARS = 5


class _WireModel(BaseModel):
    """Base for models whose JSON keys are the camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FeedbackRequest(_WireModel):
    """One submission handed to the pipeline. Non-empty checks happen upstream."""

    submitter_name: str = Field(alias="studentName")
    essay_text: str = Field(alias="essay")
    level_hint: Optional[str] = Field(default=None, alias="gradeLevel")


class RatingEntry(_WireModel):
    stars: int = Field(ge=MIN_STARS, le=MAX_STARS)
    comment: str


class RatingSet(_WireModel):
    """Star ratings for the five fixed evaluation categories."""

    content: RatingEntry
    logical_flow: RatingEntry = Field(alias="logicalFlow")
    sentence_expression: RatingEntry = Field(alias="sentenceExpression")
    scientific_knowledge: RatingEntry = Field(alias="scientificKnowledge")
    reader_awareness: RatingEntry = Field(alias="readerAwareness")

    def entries(self) -> Iterator[Tuple[str, RatingEntry]]:
        for key in RATING_CATEGORIES:
            yield key, self.get(key)

    def get(self, category: str) -> RatingEntry:
        field_name = _RATING_FIELDS.get(category)
        if field_name is None:
            raise KeyError(category)
        return getattr(self, field_name)

    @classmethod
    def uniform(cls, stars: int, comments: Dict[str, str]) -> "RatingSet":
        return cls.model_validate(
            {key: {"stars": stars, "comment": comments[key]} for key in RATING_CATEGORIES}
        )


_RATING_FIELDS: Dict[str, str] = {
    field.alias or name: name for name, field in RatingSet.model_fields.items()
}


class SentenceRevision(_WireModel):
    original: str
    improved: str


class KnowledgeAssessment(_WireModel):
    present: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    suggestions: str = ""


EMPTY_KNOWLEDGE_ASSESSMENT = KnowledgeAssessment()


class LogicalFlowHighlight(_WireModel):
    rating: int = Field(ge=MIN_STARS, le=MAX_STARS)
    comment: str


class FeedbackRecord(_WireModel):
    """Canonical feedback value persisted and rendered. Edits produce a new value."""

    submitter_name: str = Field(default="", alias="studentName")
    summary_message: str = Field(alias="feedback")
    strengths: List[str] = Field(min_length=1)
    improvements: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    ratings: RatingSet
    sentence_revisions: List[SentenceRevision] = Field(default_factory=list, alias="improvedSentences")
    knowledge_assessment: Optional[KnowledgeAssessment] = Field(default=None, alias="scientificKnowledge")
    logical_flow_highlight: Optional[LogicalFlowHighlight] = Field(default=None, alias="logicalFlow")

    def knowledge_or_default(self) -> KnowledgeAssessment:
        return self.knowledge_assessment or EMPTY_KNOWLEDGE_ASSESSMENT


class StoredFeedback(BaseModel):
    """A persisted submission: the generated record plus an optional teacher override."""

    feedback_id: str
    submitter_name: str
    essay_text: str
    original: FeedbackRecord
    override: Optional[FeedbackRecord] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def effective(self) -> FeedbackRecord:
        return effective_feedback(self)

    @property
    def is_teacher_modified(self) -> bool:
        return self.override is not None


class StudentProfile(BaseModel):
    submitter_name: str
    dashboard_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def effective_feedback(stored: StoredFeedback) -> FeedbackRecord:
    """Teacher override wins over the generated record whenever one is present."""
    if stored.override is not None:
        return stored.override
    return stored.original


def average_stars(record: FeedbackRecord) -> float:
    return round(mean(entry.stars for _, entry in record.ratings.entries()), 1)


__all__ = [
    "EMPTY_KNOWLEDGE_ASSESSMENT",
    "FeedbackRecord",
    "FeedbackRequest",
    "KnowledgeAssessment",
    "LogicalFlowHighlight",
    "MAX_STARS",
    "MIN_STARS",
    "RATING_CATEGORIES",
    "RatingEntry",
    "RatingSet",
    "SentenceRevision",
    "StoredFeedback",
    "StudentProfile",
    "average_stars",
    "effective_feedback",
]

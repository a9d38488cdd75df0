"""Sequential batch processing of roster submissions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
)

from .completion_client import CompletionClient
from .feedback_models import FeedbackRequest
from .feedback_pipeline import run_feedback_pipeline
from .feedback_store import FeedbackStore
from .telemetry import emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int, int], None]

NAME_COLUMNS = ("학생이름", "이름", "student_name", "studentName", "name")
ESSAY_COLUMNS = ("글내용", "내용", "essay", "content")
LEVEL_COLUMNS = ("학년", "gradeLevel", "grade_level")
DEFAULT_LEVEL_HINT = "초등~중등"


@dataclass(frozen=True)
class BatchItemResult:
    submitter_name: str
    feedback_id: str = ""
    success: bool = False
    error: Optional[str] = None
    outcome: Optional[str] = None


class SequentialTaskRunner:
    """Run async tasks one at a time with a fixed pause between items.

    A failing item is converted by ``on_error`` and the loop moves on.
    """

    def __init__(
        self,
        delay_seconds: float = 0.1,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    async def run(
        self,
        items: Sequence[T],
        task: Callable[[T], Awaitable[R]],
        *,
        on_error: Callable[[T, Exception], R],
        progress: Optional[ProgressCallback] = None,
    ) -> List[R]:
        results: List[R] = []
        total = len(items)
        for index, item in enumerate(items):
            try:
                result = await task(item)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Batch item %d/%d failed", index + 1, total)
                result = on_error(item, exc)
            results.append(result)
            if progress is not None:
                progress(index + 1, total)
            if index < total - 1 and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)
        return results


def _first_value(row: Mapping[str, Any], columns: Sequence[str]) -> str:
    for column in columns:
        value = row.get(column)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def normalize_roster_rows(rows: Iterable[Mapping[str, Any]]) -> List[FeedbackRequest]:
    """Map spreadsheet-style rows onto requests, skipping rows without a name or essay."""
    requests: List[FeedbackRequest] = []
    for row in rows:
        name = _first_value(row, NAME_COLUMNS)
        essay = _first_value(row, ESSAY_COLUMNS)
        if not name or not essay:
            continue
        level = _first_value(row, LEVEL_COLUMNS) or DEFAULT_LEVEL_HINT
        requests.append(FeedbackRequest(submitter_name=name, essay_text=essay, level_hint=level))
    return requests


async def run_feedback_batch(
    requests: Sequence[FeedbackRequest],
    *,
    client: CompletionClient,
    store: FeedbackStore,
    runner: Optional[SequentialTaskRunner] = None,
    progress: Optional[ProgressCallback] = None,
) -> List[BatchItemResult]:
    runner = runner or SequentialTaskRunner()

    async def process(request: FeedbackRequest) -> BatchItemResult:
        store.ensure_profile(request.submitter_name)
        result = await run_feedback_pipeline(request, client=client)
        stored = store.record(request.submitter_name, request.essay_text, result.record)
        return BatchItemResult(
            submitter_name=request.submitter_name,
            feedback_id=stored.feedback_id,
            success=True,
            outcome=result.outcome.value,
        )

    def failed(request: FeedbackRequest, exc: Exception) -> BatchItemResult:
        return BatchItemResult(submitter_name=request.submitter_name, success=False, error=str(exc))

    results = await runner.run(requests, process, on_error=failed, progress=progress)
    succeeded = sum(1 for item in results if item.success)
    emit_event("feedback_batch_completed", total=len(results), succeeded=succeeded)
    return results


__all__ = [
    "BatchItemResult",
    "SequentialTaskRunner",
    "normalize_roster_rows",
    "run_feedback_batch",
]

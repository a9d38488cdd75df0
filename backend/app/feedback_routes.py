"""Submission, review and dashboard endpoints for science-writing feedback."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .batch_runner import SequentialTaskRunner, normalize_roster_rows, run_feedback_batch
from .completion_client import CompletionClient, create_completion_client
from .config import Settings, get_settings
from .feedback_assembler import assemble
from .feedback_models import FeedbackRecord, FeedbackRequest, StoredFeedback, average_stars
from .feedback_pipeline import run_feedback_pipeline
from .feedback_store import feedback_store

router = APIRouter(prefix="/api", tags=["feedback"])
logger = logging.getLogger(__name__)


class FeedbackSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_name: str = Field(..., alias="studentName")
    essay: str
    grade_level: Optional[str] = Field(default=None, alias="gradeLevel")

    @field_validator("student_name", "essay")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    def to_request(self) -> FeedbackRequest:
        return FeedbackRequest(
            submitter_name=self.student_name,
            essay_text=self.essay,
            level_hint=self.grade_level,
        )


class BatchSubmission(BaseModel):
    rows: List[Dict[str, Any]] = Field(..., min_length=1)


async def get_completion_client(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[CompletionClient]:
    client = create_completion_client(settings, app=request.app)
    try:
        yield client
    finally:
        await client.aclose()


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _student_view(stored: StoredFeedback) -> Dict[str, Any]:
    effective = stored.effective
    return {
        "id": stored.feedback_id,
        "studentName": stored.submitter_name,
        "createdAt": stored.created_at.isoformat(),
        "teacherModified": stored.is_teacher_modified,
        "averageStars": average_stars(effective),
        "feedback": effective.to_payload(),
    }


def _review_view(stored: StoredFeedback) -> Dict[str, Any]:
    return {
        "id": stored.feedback_id,
        "studentName": stored.submitter_name,
        "essay": stored.essay_text,
        "createdAt": stored.created_at.isoformat(),
        "updatedAt": stored.updated_at.isoformat(),
        "teacherModified": stored.is_teacher_modified,
        "original": stored.original.to_payload(),
        "override": stored.override.to_payload() if stored.override else None,
        "effective": stored.effective.to_payload(),
    }


@router.post("/feedback", status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    payload: FeedbackSubmission,
    client: CompletionClient = Depends(get_completion_client),
) -> Dict[str, Any]:
    request = payload.to_request()
    feedback_store.ensure_profile(request.submitter_name)
    result = await run_feedback_pipeline(request, client=client)
    stored = feedback_store.record(request.submitter_name, request.essay_text, result.record)
    return {
        "id": stored.feedback_id,
        "studentName": stored.submitter_name,
        "outcome": result.outcome.value,
        "feedback": stored.effective.to_payload(),
    }


@router.post("/feedback/batch")
async def submit_feedback_batch(
    payload: BatchSubmission,
    client: CompletionClient = Depends(get_completion_client),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    requests = normalize_roster_rows(payload.rows)
    if not requests:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Rows need a student name column ('학생이름') and an essay column ('글내용').",
        )

    def log_progress(completed: int, total: int) -> None:
        logger.info("Batch feedback progress %d/%d", completed, total)

    results = await run_feedback_batch(
        requests,
        client=client,
        store=feedback_store,
        runner=SequentialTaskRunner(settings.batch_delay_seconds),
        progress=log_progress,
    )
    return {
        "total": len(results),
        "succeeded": sum(1 for item in results if item.success),
        "results": [
            {
                "studentName": item.submitter_name,
                "feedbackId": item.feedback_id,
                "success": item.success,
                "outcome": item.outcome,
                "error": item.error,
            }
            for item in results
        ],
    }


@router.get("/feedback/{feedback_id}")
def read_feedback(feedback_id: str) -> Dict[str, Any]:
    try:
        stored = feedback_store.get(feedback_id)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return _student_view(stored)


@router.get("/feedback/{feedback_id}/review")
def review_feedback(feedback_id: str) -> Dict[str, Any]:
    try:
        stored = feedback_store.get(feedback_id)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return _review_view(stored)


@router.put("/feedback/{feedback_id}/override")
def save_teacher_override(feedback_id: str, edited: FeedbackRecord) -> Dict[str, Any]:
    try:
        stored = feedback_store.get(feedback_id)
        stamped = assemble(
            FeedbackRequest(submitter_name=stored.submitter_name, essay_text=stored.essay_text),
            edited,
        )
        updated = feedback_store.apply_override(feedback_id, stamped)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return _review_view(updated)


@router.delete("/feedback/{feedback_id}/override")
def clear_teacher_override(feedback_id: str) -> Dict[str, Any]:
    try:
        updated = feedback_store.clear_override(feedback_id)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return _review_view(updated)


@router.get("/students")
def list_student_links() -> List[Dict[str, Any]]:
    links: List[Dict[str, Any]] = []
    for profile in feedback_store.list_profiles():
        history = feedback_store.list_for_student(profile.submitter_name)
        latest = history[0] if history else None
        links.append(
            {
                "studentName": profile.submitter_name,
                "dashboardId": profile.dashboard_id,
                "submissionCount": len(history),
                "latestFeedbackAt": latest.created_at.isoformat() if latest else None,
                "latestSummary": latest.effective.summary_message if latest else None,
                "averageStars": average_stars(latest.effective) if latest else None,
            }
        )
    return links


@router.get("/students/{dashboard_id}/feedback")
def student_dashboard(dashboard_id: str) -> Dict[str, Any]:
    try:
        profile, history = feedback_store.list_for_dashboard(dashboard_id)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return {
        "studentName": profile.submitter_name,
        "dashboardId": profile.dashboard_id,
        "feedback": [_student_view(item) for item in history],
    }


__all__ = ["get_completion_client", "router"]

"""Database-backed persistence for generated feedback and teacher overrides."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .db.models import StudentFeedbackModel, StudentProfileModel
from .db.session import session_scope
from .feedback_models import FeedbackRecord, StoredFeedback, StudentProfile
from .response_normalizer import repair_feedback

logger = logging.getLogger(__name__)


def _normalize_name(name: str) -> str:
    normalized = " ".join(name.split())
    if not normalized:
        raise ValueError("Student name cannot be empty.")
    return normalized


def _load_record(payload: Dict[str, Any], fallback_name: str) -> FeedbackRecord:
    try:
        return FeedbackRecord.model_validate(payload)
    except ValidationError:
        logger.warning("Stored feedback for %s failed validation; repairing on read", fallback_name)
        return repair_feedback(payload, submitter_name=fallback_name)


def _load_optional_record(payload: Optional[Dict[str, Any]], fallback_name: str) -> Optional[FeedbackRecord]:
    if payload is None:
        return None
    return _load_record(payload, fallback_name)


class FeedbackStore:
    """Insert, override and look up stored feedback. Unknown ids raise LookupError."""

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def ensure_profile(self, submitter_name: str) -> StudentProfile:
        normalized = _normalize_name(submitter_name)
        with session_scope() as session:
            model = self._profile_for_name(session, normalized, create=True)
            return self._profile_to_domain(model)

    def get_profile_by_dashboard(self, dashboard_id: str) -> StudentProfile:
        with session_scope(commit=False) as session:
            return self._profile_to_domain(self._profile_for_dashboard(session, dashboard_id))

    def list_profiles(self) -> List[StudentProfile]:
        with session_scope(commit=False) as session:
            stmt = select(StudentProfileModel).order_by(StudentProfileModel.student_name)
            return [self._profile_to_domain(row) for row in session.execute(stmt).scalars().all()]

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def record(self, submitter_name: str, essay_text: str, record: FeedbackRecord) -> StoredFeedback:
        normalized = _normalize_name(submitter_name)
        with session_scope() as session:
            profile = self._profile_for_name(session, normalized, create=True)
            model = StudentFeedbackModel(
                profile_id=profile.id,
                student_name=normalized,
                essay=essay_text,
                feedback_data=record.to_payload(),
                teacher_modified_feedback=None,
            )
            session.add(model)
            session.flush()
            logger.info("Stored feedback %s for %s", model.id, normalized)
            return self._feedback_to_domain(model)

    def get(self, feedback_id: str) -> StoredFeedback:
        with session_scope(commit=False) as session:
            return self._feedback_to_domain(self._require_feedback(session, feedback_id))

    def apply_override(self, feedback_id: str, override: FeedbackRecord) -> StoredFeedback:
        with session_scope() as session:
            model = self._require_feedback(session, feedback_id)
            model.teacher_modified_feedback = override.to_payload()
            session.flush()
            logger.info("Teacher override saved for feedback %s", feedback_id)
            return self._feedback_to_domain(model)

    def clear_override(self, feedback_id: str) -> StoredFeedback:
        with session_scope() as session:
            model = self._require_feedback(session, feedback_id)
            model.teacher_modified_feedback = None
            session.flush()
            return self._feedback_to_domain(model)

    def list_for_student(self, submitter_name: str) -> List[StoredFeedback]:
        normalized = _normalize_name(submitter_name)
        with session_scope(commit=False) as session:
            stmt = (
                select(StudentFeedbackModel)
                .where(StudentFeedbackModel.student_name == normalized)
                .order_by(StudentFeedbackModel.created_at.desc())
            )
            return [self._feedback_to_domain(row) for row in session.execute(stmt).scalars().all()]

    def list_for_dashboard(self, dashboard_id: str) -> Tuple[StudentProfile, List[StoredFeedback]]:
        profile = self.get_profile_by_dashboard(dashboard_id)
        return profile, self.list_for_student(profile.submitter_name)

    def count_for_student(self, submitter_name: str) -> int:
        normalized = _normalize_name(submitter_name)
        with session_scope(commit=False) as session:
            stmt = select(func.count()).select_from(StudentFeedbackModel).where(
                StudentFeedbackModel.student_name == normalized
            )
            return int(session.execute(stmt).scalar_one())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _profile_for_name(self, session: Session, name: str, *, create: bool) -> StudentProfileModel:
        stmt = select(StudentProfileModel).where(StudentProfileModel.student_name == name)
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            if not create:
                raise LookupError(f"Student profile '{name}' does not exist.")
            model = StudentProfileModel(student_name=name)
            session.add(model)
            session.flush()
            logger.info("Created student profile for %s", name)
        return model

    def _profile_for_dashboard(self, session: Session, dashboard_id: str) -> StudentProfileModel:
        stmt = select(StudentProfileModel).where(StudentProfileModel.dashboard_uuid == dashboard_id)
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise LookupError(f"Dashboard '{dashboard_id}' was not found.")
        return model

    def _require_feedback(self, session: Session, feedback_id: str) -> StudentFeedbackModel:
        model = session.get(StudentFeedbackModel, feedback_id)
        if model is None:
            raise LookupError(f"Feedback '{feedback_id}' was not found.")
        return model

    def _profile_to_domain(self, model: StudentProfileModel) -> StudentProfile:
        return StudentProfile(
            submitter_name=model.student_name,
            dashboard_id=model.dashboard_uuid,
            created_at=model.created_at,
        )

    def _feedback_to_domain(self, model: StudentFeedbackModel) -> StoredFeedback:
        return StoredFeedback(
            feedback_id=model.id,
            submitter_name=model.student_name,
            essay_text=model.essay,
            original=_load_record(model.feedback_data, model.student_name),
            override=_load_optional_record(model.teacher_modified_feedback, model.student_name),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


feedback_store = FeedbackStore()

__all__ = ["FeedbackStore", "feedback_store"]

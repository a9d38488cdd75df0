"""ORM models for student profiles and stored feedback."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin


def _uuid() -> str:
    return str(uuid.uuid4())


class StudentProfileModel(TimestampMixin, Base):
    __tablename__ = "student_profiles"
    __table_args__ = (
        Index("ix_student_profiles_student_name", "student_name", unique=True),
        Index("ix_student_profiles_dashboard_uuid", "dashboard_uuid", unique=True),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    student_name: Mapped[str] = mapped_column(String(128), nullable=False)
    dashboard_uuid: Mapped[str] = mapped_column(String(36), nullable=False, default=_uuid)

    feedback: Mapped[list["StudentFeedbackModel"]] = relationship(
        back_populates="profile", cascade="all, delete-orphan"
    )


class StudentFeedbackModel(TimestampMixin, Base):
    __tablename__ = "student_feedback"
    __table_args__ = (Index("ix_student_feedback_student_name", "student_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    profile_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("student_profiles.id", ondelete="SET NULL"), nullable=True
    )
    student_name: Mapped[str] = mapped_column(String(128), nullable=False)
    essay: Mapped[str] = mapped_column(Text, nullable=False)
    feedback_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    teacher_modified_feedback: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    profile: Mapped[Optional[StudentProfileModel]] = relationship(back_populates="feedback")


__all__ = ["StudentFeedbackModel", "StudentProfileModel"]

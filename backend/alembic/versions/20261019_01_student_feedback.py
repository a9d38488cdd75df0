"""Student profiles and stored feedback with teacher overrides."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_01_student_feedback"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "student_profiles",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("student_name", sa.String(length=128), nullable=False),
        sa.Column("dashboard_uuid", sa.String(length=36), nullable=False),
    )
    op.create_index("ix_student_profiles_student_name", "student_profiles", ["student_name"], unique=True)
    op.create_index("ix_student_profiles_dashboard_uuid", "student_profiles", ["dashboard_uuid"], unique=True)

    op.create_table(
        "student_feedback",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column(
            "profile_id",
            sa.String(length=36),
            sa.ForeignKey("student_profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("student_name", sa.String(length=128), nullable=False),
        sa.Column("essay", sa.Text(), nullable=False),
        sa.Column("feedback_data", sa.JSON(), nullable=False),
        sa.Column("teacher_modified_feedback", sa.JSON(), nullable=True),
    )
    op.create_index("ix_student_feedback_student_name", "student_feedback", ["student_name"])


def downgrade() -> None:
    op.drop_index("ix_student_feedback_student_name", table_name="student_feedback")
    op.drop_table("student_feedback")
    op.drop_index("ix_student_profiles_dashboard_uuid", table_name="student_profiles")
    op.drop_index("ix_student_profiles_student_name", table_name="student_profiles")
    op.drop_table("student_profiles")

"""Create students and push subscriptions tables.

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-18 09:12:44.118302
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "3f1c9a2b7d10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "students",
    sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
    sa.Column("student_id", sa.Text(), nullable=False),
    sa.Column("password_hash", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_students_student_id"), "students", ["student_id"], unique=True)
  op.create_table(
    "push_subscriptions",
    sa.Column("identity", sa.Text(), nullable=False),
    sa.Column("endpoint", sa.Text(), nullable=False),
    sa.Column("descriptor", sa.JSON(), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("identity"),
  )


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_table("push_subscriptions")
  op.drop_index(op.f("ix_students_student_id"), table_name="students")
  op.drop_table("students")

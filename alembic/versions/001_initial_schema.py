"""Initial schema for pr-reviewer.

Creates the review tables: pr_status (one row per pull request under
review) and pr_files (one row per file, cascade-deleted with its review).

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "pr_status",
        sa.Column("pr_number", sa.Text(), primary_key=True),
        sa.Column(
            "status",
            sa.Enum("in_progress", "completed", name="review_status"),
            nullable=False,
            server_default="in_progress",
        ),
        sa.Column("current_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_files", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "pr_files",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "pr_number",
            sa.Text(),
            sa.ForeignKey("pr_status.pr_number", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("reviewed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("review_order", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "pr_number", "file_path", name="uq_pr_files_pr_number_file_path"
        ),
    )
    op.create_index("ix_pr_files_pr_number", "pr_files", ["pr_number"])


def downgrade() -> None:
    op.drop_index("ix_pr_files_pr_number", table_name="pr_files")
    op.drop_table("pr_files")
    op.drop_table("pr_status")

    sa.Enum(name="review_status").drop(op.get_bind(), checkfirst=True)

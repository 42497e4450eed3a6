"""SQLAlchemy ORM models for the durable review store.

Defines the two review tables:
    pr_status: one row per pull request under review.
    pr_files: one row per (pull request, file path), deleted with its parent.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from pr_reviewer.store.base import ReviewStatus


class Base(DeclarativeBase):
    """SQLAlchemy 2.0 declarative base for all pr-reviewer models."""

    pass


class PRStatus(Base):
    """Review session for a single pull request.

    Attributes:
        pr_number: Pull request identifier (primary key).
        status: in_progress or completed.
        current_index: Number of files already served; also the
            review_order of the next file.
        total_files: File count snapshot taken at start.
        created_at: Row creation timestamp.
        updated_at: Last modification timestamp.
        files: Files belonging to this review, in review order.
    """

    __tablename__ = "pr_status"

    pr_number: Mapped[str] = mapped_column(Text, primary_key=True)
    status: Mapped[ReviewStatus] = mapped_column(
        Enum(ReviewStatus, name="review_status"),
        default=ReviewStatus.in_progress,
        nullable=False,
    )
    current_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_files: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    files: Mapped[list["PRFile"]] = relationship(
        "PRFile",
        back_populates="review",
        cascade="all",
        passive_deletes=True,
        order_by="PRFile.review_order",
    )


class PRFile(Base):
    """A changed file scheduled for review.

    Attributes:
        id: Surrogate primary key.
        pr_number: Owning pull request (cascade-deleted with it).
        file_path: Repository path of the file.
        reviewed: Whether the file has been served.
        review_order: 0-based position in the review sequence.
    """

    __tablename__ = "pr_files"
    __table_args__ = (
        UniqueConstraint("pr_number", "file_path", name="uq_pr_files_pr_number_file_path"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pr_number: Mapped[str] = mapped_column(
        ForeignKey("pr_status.pr_number", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    reviewed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    review_order: Mapped[int] = mapped_column(Integer, nullable=False)

    review: Mapped[PRStatus] = relationship("PRStatus", back_populates="files")

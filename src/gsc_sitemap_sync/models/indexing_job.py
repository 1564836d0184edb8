"""Indexing job ORM models recording each pipeline run and its submissions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gsc_sitemap_sync.models.base import Base

if TYPE_CHECKING:
    from gsc_sitemap_sync.models.website import Website


def _enum_values(enum_type: type[Enum]) -> list[str]:
    return [str(member.value) for member in enum_type]


class IndexingJobStatus(str, Enum):
    """Lifecycle of one synchronization run."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {IndexingJobStatus.COMPLETED, IndexingJobStatus.FAILED}


class SubmissionStatus(str, Enum):
    """Outcome recorded for a single URL submission attempt."""

    SUBMITTED = "submitted"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"


class IndexingJob(Base):
    """Audit record of a single website synchronization run."""

    __tablename__ = "indexing_jobs"
    __table_args__ = (
        Index("ix_indexing_jobs_website_id_started_at", "website_id", "started_at"),
        Index("ix_indexing_jobs_status", "status"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    website_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("websites.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[IndexingJobStatus] = mapped_column(
        SqlEnum(
            IndexingJobStatus,
            name="indexing_job_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=IndexingJobStatus.PENDING,
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    total_pages: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    processed_pages: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    error_message: Mapped[str | None] = mapped_column(String(2048))

    website: Mapped[Website] = relationship(back_populates="indexing_jobs")
    details: Mapped[list[IndexingJobDetail]] = relationship(
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="IndexingJobDetail.submitted_at",
    )


class IndexingJobDetail(Base):
    """Append-only record of one URL submission made during a job."""

    __tablename__ = "indexing_job_details"
    __table_args__ = (Index("ix_indexing_job_details_job_id", "job_id"),)

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    job_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("indexing_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    page_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pages.id", ondelete="SET NULL"),
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    status: Mapped[SubmissionStatus] = mapped_column(
        SqlEnum(
            SubmissionStatus,
            name="submission_status",
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    response: Mapped[str | None] = mapped_column(Text)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    job: Mapped[IndexingJob] = relationship(back_populates="details")


__all__ = [
    "IndexingJob",
    "IndexingJobDetail",
    "IndexingJobStatus",
    "SubmissionStatus",
]

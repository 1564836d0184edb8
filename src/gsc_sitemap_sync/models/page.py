"""Page ORM model and the indexing status enum."""

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
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gsc_sitemap_sync.models.base import Base

if TYPE_CHECKING:
    from gsc_sitemap_sync.models.website import Website


class IndexingStatus(str, Enum):
    """Closed set of indexing states a page can be in."""

    INDEXED = "Indexed"
    SUBMITTED = "Submitted"
    SUBMITTED_AND_INDEXED = "Submitted and indexed"
    SUBMITTED_NOT_INDEXED = "Submitted not indexed"
    DISCOVERED_NOT_INDEXED = "Discovered not indexed"
    CRAWLED_NOT_INDEXED = "Crawled not indexed"
    EXCLUDED_NOINDEX = "Excluded noindex"
    BLOCKED_ROBOTS = "Blocked robots"
    DUPLICATE_WITHOUT_CANONICAL = "Duplicate without canonical"
    UNKNOWN = "unknown"
    ERROR = "error"


class Page(Base):
    """Sitemap URL tracked for a website."""

    __tablename__ = "pages"
    __table_args__ = (
        UniqueConstraint("website_id", "url", name="uq_pages_website_id_url"),
        Index("ix_pages_website_id_indexing_status", "website_id", "indexing_status"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    website_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("websites.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    indexing_status: Mapped[IndexingStatus] = mapped_column(
        SqlEnum(
            IndexingStatus,
            name="indexing_status",
            values_callable=lambda enum_type: [member.value for member in enum_type],
        ),
        nullable=False,
        default=IndexingStatus.UNKNOWN,
        server_default=IndexingStatus.UNKNOWN.value,
    )
    last_crawled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    last_modified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    website: Mapped[Website] = relationship(back_populates="pages")


__all__ = ["IndexingStatus", "Page"]

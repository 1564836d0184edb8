"""Website ORM model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gsc_sitemap_sync.models.base import Base

if TYPE_CHECKING:
    from gsc_sitemap_sync.models.indexing_job import IndexingJob
    from gsc_sitemap_sync.models.page import Page
    from gsc_sitemap_sync.models.user import User


class Website(Base):
    """Search Console property tracked for sitemap synchronization."""

    __tablename__ = "websites"
    __table_args__ = (
        UniqueConstraint("user_id", "domain", name="uq_websites_user_id_domain"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    site_url: Mapped[str | None] = mapped_column(String(500))
    enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("1"),
    )
    auto_indexing_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_auto_index_at: Mapped[datetime | None] = mapped_column(
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

    user: Mapped[User] = relationship(back_populates="websites")
    pages: Mapped[list[Page]] = relationship(
        back_populates="website",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    indexing_jobs: Mapped[list[IndexingJob]] = relationship(
        back_populates="website",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def search_console_property(self) -> str:
        """Return the GSC property identifier used for URL inspection."""

        if self.site_url:
            return self.site_url
        return f"sc-domain:{self.domain}"


__all__ = ["Website"]

"""User ORM model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gsc_sitemap_sync.models.base import Base

if TYPE_CHECKING:
    from gsc_sitemap_sync.models.website import Website


class User(Base):
    """Owner of connected Search Console properties."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    email: Mapped[str] = mapped_column(
        String(320), unique=True, index=True, nullable=False
    )
    name: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    websites: Mapped[list[Website]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )


__all__ = ["User"]

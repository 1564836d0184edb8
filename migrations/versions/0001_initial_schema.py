"""Initial schema for users, websites, pages, indexing jobs and notifications.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00

"""

from __future__ import annotations

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

INDEXING_STATUS_VALUES = (
    "Indexed",
    "Submitted",
    "Submitted and indexed",
    "Submitted not indexed",
    "Discovered not indexed",
    "Crawled not indexed",
    "Excluded noindex",
    "Blocked robots",
    "Duplicate without canonical",
    "unknown",
    "error",
)
INDEXING_JOB_STATUS_VALUES = ("pending", "in_progress", "completed", "failed")
SUBMISSION_STATUS_VALUES = ("submitted", "failed", "rate_limited")
NOTIFICATION_TYPE_VALUES = ("job_complete", "job_failed")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "websites",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("site_url", sa.String(length=500), nullable=True),
        sa.Column("enabled", sa.Boolean(), server_default=sa.text("1"), nullable=False),
        sa.Column(
            "auto_indexing_enabled",
            sa.Boolean(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_auto_index_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("user_id", "domain", name="uq_websites_user_id_domain"),
    )
    op.create_index("ix_websites_user_id", "websites", ["user_id"])

    op.create_table(
        "pages",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "website_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("websites.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column(
            "indexing_status",
            sa.Enum(*INDEXING_STATUS_VALUES, name="indexing_status"),
            server_default="unknown",
            nullable=False,
        ),
        sa.Column("last_crawled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("website_id", "url", name="uq_pages_website_id_url"),
    )
    op.create_index("ix_pages_website_id", "pages", ["website_id"])
    op.create_index(
        "ix_pages_website_id_indexing_status",
        "pages",
        ["website_id", "indexing_status"],
    )

    op.create_table(
        "indexing_jobs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "website_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("websites.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*INDEXING_JOB_STATUS_VALUES, name="indexing_job_status"),
            nullable=False,
        ),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_pages", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "processed_pages", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("error_message", sa.String(length=2048), nullable=True),
    )
    op.create_index(
        "ix_indexing_jobs_website_id_started_at",
        "indexing_jobs",
        ["website_id", "started_at"],
    )
    op.create_index("ix_indexing_jobs_status", "indexing_jobs", ["status"])

    op.create_table(
        "indexing_job_details",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "job_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("indexing_jobs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "page_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("pages.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*SUBMISSION_STATUS_VALUES, name="submission_status"),
            nullable=False,
        ),
        sa.Column("response", sa.Text(), nullable=True),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_indexing_job_details_job_id", "indexing_job_details", ["job_id"]
    )

    op.create_table(
        "email_notifications",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "website_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("websites.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "type",
            sa.Enum(*NOTIFICATION_TYPE_VALUES, name="notification_type"),
            nullable=False,
        ),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_email_notifications_user_id", "email_notifications", ["user_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_email_notifications_user_id", table_name="email_notifications")
    op.drop_table("email_notifications")
    op.drop_index("ix_indexing_job_details_job_id", table_name="indexing_job_details")
    op.drop_table("indexing_job_details")
    op.drop_index("ix_indexing_jobs_status", table_name="indexing_jobs")
    op.drop_index("ix_indexing_jobs_website_id_started_at", table_name="indexing_jobs")
    op.drop_table("indexing_jobs")
    op.drop_index("ix_pages_website_id_indexing_status", table_name="pages")
    op.drop_index("ix_pages_website_id", table_name="pages")
    op.drop_table("pages")
    op.drop_index("ix_websites_user_id", table_name="websites")
    op.drop_table("websites")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    sa.Enum(name="notification_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="submission_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="indexing_job_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="indexing_status").drop(op.get_bind(), checkfirst=True)

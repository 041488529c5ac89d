"""seo metadata

Revision ID: 0001_seo_metadata
Revises: 
Create Date: 2026-10-18 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_seo_metadata"
down_revision = None
branch_labels = None
depends_on = None


def _json() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "admin_users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "seo_pages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("site_id", sa.String(), nullable=False),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("meta_title", sa.String(), nullable=False),
        sa.Column("meta_description", sa.String(), nullable=False),
        sa.Column("robots", sa.String(), nullable=False, server_default="index,follow"),
        sa.Column("open_graph", _json(), nullable=True),
        sa.Column("page_category", sa.String(), nullable=False, server_default="other"),
        sa.Column("is_custom", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("updated_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("site_id", "path", name="uq_seo_pages_site_path"),
        sa.UniqueConstraint("site_id", "slug", name="uq_seo_pages_site_slug"),
    )
    op.create_index("ix_seo_pages_site_id", "seo_pages", ["site_id"])
    op.create_index("ix_seo_pages_site_updated_at", "seo_pages", ["site_id", "updated_at"])
    op.create_index("ix_seo_pages_category_custom", "seo_pages", ["page_category", "is_custom"])

    op.create_table(
        "seo_audit_logs",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("site_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("path", sa.String(), nullable=True),
        sa.Column("old_slug", sa.String(), nullable=True),
        sa.Column("new_slug", sa.String(), nullable=True),
        sa.Column("changes", _json(), nullable=False),
        sa.Column("metadata_json", _json(), nullable=True),
        sa.Column("performed_by", sa.String(), nullable=False),
        # Retention purge scans this column; keep it indexed.
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_seo_audit_logs_site_id", "seo_audit_logs", ["site_id"])
    op.create_index("ix_seo_audit_logs_action", "seo_audit_logs", ["action"])
    op.create_index("ix_seo_audit_logs_entity_type", "seo_audit_logs", ["entity_type"])
    op.create_index("ix_seo_audit_logs_performed_by", "seo_audit_logs", ["performed_by"])
    op.create_index("ix_seo_audit_logs_performed_at", "seo_audit_logs", ["performed_at"])
    op.create_index("ix_seo_audit_logs_site_performed_at", "seo_audit_logs", ["site_id", "performed_at"])
    op.create_index(
        "ix_seo_audit_logs_site_path_performed_at",
        "seo_audit_logs",
        ["site_id", "path", "performed_at"],
    )
    op.create_index(
        "ix_seo_audit_logs_site_actor_performed_at",
        "seo_audit_logs",
        ["site_id", "performed_by", "performed_at"],
    )
    op.create_index(
        "ix_seo_audit_logs_site_action_performed_at",
        "seo_audit_logs",
        ["site_id", "action", "performed_at"],
    )

    op.create_table(
        "seo_redirects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("site_id", sa.String(), nullable=False),
        sa.Column("from_path", sa.String(), nullable=False),
        sa.Column("to_path", sa.String(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False, server_default="301"),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("site_id", "from_path", name="uq_seo_redirects_site_from"),
    )
    op.create_index("ix_seo_redirects_site_id", "seo_redirects", ["site_id"])
    op.create_index("ix_seo_redirects_site_status", "seo_redirects", ["site_id", "status_code"])


def downgrade() -> None:
    op.drop_index("ix_seo_redirects_site_status", table_name="seo_redirects")
    op.drop_index("ix_seo_redirects_site_id", table_name="seo_redirects")
    op.drop_table("seo_redirects")
    for index_name in (
        "ix_seo_audit_logs_site_action_performed_at",
        "ix_seo_audit_logs_site_actor_performed_at",
        "ix_seo_audit_logs_site_path_performed_at",
        "ix_seo_audit_logs_site_performed_at",
        "ix_seo_audit_logs_performed_at",
        "ix_seo_audit_logs_performed_by",
        "ix_seo_audit_logs_entity_type",
        "ix_seo_audit_logs_action",
        "ix_seo_audit_logs_site_id",
    ):
        op.drop_index(index_name, table_name="seo_audit_logs")
    op.drop_table("seo_audit_logs")
    op.drop_index("ix_seo_pages_category_custom", table_name="seo_pages")
    op.drop_index("ix_seo_pages_site_updated_at", table_name="seo_pages")
    op.drop_index("ix_seo_pages_site_id", table_name="seo_pages")
    op.drop_table("seo_pages")
    op.drop_table("admin_users")

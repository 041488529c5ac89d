from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# JSONB on Postgres, plain JSON elsewhere (SQLite in local dev and tests).
JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class AdminUser(Base):
    __tablename__ = "admin_users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # Store optional identity hints so audit views can show who acted.
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SeoPage(Base):
    __tablename__ = "seo_pages"
    __table_args__ = (
        UniqueConstraint("site_id", "path", name="uq_seo_pages_site_path"),
        UniqueConstraint("site_id", "slug", name="uq_seo_pages_site_slug"),
        Index("ix_seo_pages_site_updated_at", "site_id", "updated_at"),
        Index("ix_seo_pages_category_custom", "page_category", "is_custom"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    site_id: Mapped[str] = mapped_column(String, index=True)
    path: Mapped[str] = mapped_column(String)
    slug: Mapped[str] = mapped_column(String)
    meta_title: Mapped[str] = mapped_column(String)
    meta_description: Mapped[str] = mapped_column(String)
    robots: Mapped[str] = mapped_column(String, default="index,follow")
    # Keep OpenGraph as a small JSON object; absent fields are omitted rather than null.
    open_graph: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    page_category: Mapped[str] = mapped_column(String, default="other")
    # Distinguish explicitly authored overrides from defaulted rows for bulk reset.
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[str] = mapped_column(String)
    updated_by: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    # Used as the sitemap lastmod for this page.
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class SeoAuditLog(Base):
    __tablename__ = "seo_audit_logs"
    __table_args__ = (
        Index("ix_seo_audit_logs_site_performed_at", "site_id", "performed_at"),
        Index("ix_seo_audit_logs_site_path_performed_at", "site_id", "path", "performed_at"),
        Index("ix_seo_audit_logs_site_actor_performed_at", "site_id", "performed_by", "performed_at"),
        Index("ix_seo_audit_logs_site_action_performed_at", "site_id", "action", "performed_at"),
    )

    # Use a monotonic numeric id for stable newest-first ordering.
    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    site_id: Mapped[str] = mapped_column(String, index=True)
    action: Mapped[str] = mapped_column(String, index=True)
    entity_type: Mapped[str] = mapped_column(String, index=True)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    path: Mapped[str | None] = mapped_column(String, nullable=True)
    old_slug: Mapped[str | None] = mapped_column(String, nullable=True)
    new_slug: Mapped[str | None] = mapped_column(String, nullable=True)
    # Ordered [{field, old_value, new_value}] list of fields that actually changed.
    changes: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, default=list)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, default=dict)
    performed_by: Mapped[str] = mapped_column(String, index=True)
    # Retention purge keys off this column, so it is always set explicitly in UTC.
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class Redirect(Base):
    __tablename__ = "seo_redirects"
    __table_args__ = (
        UniqueConstraint("site_id", "from_path", name="uq_seo_redirects_site_from"),
        Index("ix_seo_redirects_site_status", "site_id", "status_code"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    site_id: Mapped[str] = mapped_column(String, index=True)
    from_path: Mapped[str] = mapped_column(String)
    to_path: Mapped[str] = mapped_column(String)
    status_code: Mapped[int] = mapped_column(Integer, default=301)
    created_by: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

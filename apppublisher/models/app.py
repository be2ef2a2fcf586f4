"""
App Record

One row per published app within an environment's datastore. Records are
created on first publish and mutated in place afterwards; no history is kept.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from apppublisher.core.database import Base

# JSONB on PostgreSQL so tags can be indexed and queried into.
# Python None is SQL NULL, not the JSON literal null.
TagsType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class AppRecord(Base):
    """Current metadata for a deployable app."""

    __tablename__ = "app"

    app_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    app_name: Mapped[str] = mapped_column(String(255), nullable=False)
    app_version: Mapped[str] = mapped_column(String(100), nullable=False)
    app_code: Mapped[str] = mapped_column(Text, nullable=False)
    has_triggers: Mapped[bool] = mapped_column(Boolean, nullable=False)
    has_actions: Mapped[bool] = mapped_column(Boolean, nullable=False)
    git_sha: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    tags: Mapped[Any] = mapped_column(TagsType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<AppRecord {self.app_id} v{self.app_version}>"


# Core table used for the hand-built publish statements
app_table = AppRecord.__table__

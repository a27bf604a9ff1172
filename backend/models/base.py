"""
Base Model Classes and Mixins

Provides foundational patterns for all Mshahara database models.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """
    Declarative base for all Mshahara models.

    Provides common type annotations and metadata configuration.
    """

    type_annotation_map: dict[type, Any] = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """
    Mixin for automatic created_at and updated_at timestamps.

    Automatically sets created_at on insert and updated_at on every update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp when record was created",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="Timestamp when record was last updated",
    )


class AuditMixin:
    """
    Mixin for the acting user on payroll mutations.

    Tracks who created and last modified records that feed statutory returns.
    """

    created_by: Mapped[UUID | None] = mapped_column(
        nullable=True,
        comment="User ID who created this record",
    )
    modified_by: Mapped[UUID | None] = mapped_column(
        nullable=True,
        comment="User ID who last modified this record",
    )

"""
Idempotency Request Model

One row per (company, endpoint, idempotency key). The unique constraint is
what makes first-writer-wins acquisition safe across processes.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, JSONType


class IdempotencyStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class IdempotencyRequest(Base):
    """Recorded outcome of an idempotent POST request."""

    __tablename__ = "idempotency_requests"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    endpoint: Mapped[str] = mapped_column(String(200), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(200), nullable=False)
    request_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of the canonical JSON request body",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=IdempotencyStatus.IN_PROGRESS.value,
        nullable=False,
        comment="Lifecycle: in_progress|completed|failed",
    )
    response_code: Mapped[int | None] = mapped_column(nullable=True)
    response_body: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Response JSON exactly as first sent",
    )
    error_body: Mapped[Any | None] = mapped_column(JSONType, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Set explicitly on every write; drives stale-lock reclaim",
    )

    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "endpoint",
            "idempotency_key",
            name="uq_idempotency_requests_scope_key",
        ),
        CheckConstraint(
            "status IN ('in_progress', 'completed', 'failed')",
            name="valid_idempotency_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<IdempotencyRequest {self.endpoint} {self.idempotency_key} ({self.status})>"

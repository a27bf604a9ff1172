"""
Statutory Filing Model

SDL and PAYE returns generated from a payroll run.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import AuditMixin, Base, JSONType, TimestampMixin


class FilingType(str, Enum):
    SDL = "SDL"
    PAYE = "PAYE"


class FilingStatus(str, Enum):
    READY = "ready"
    SUBMITTED = "submitted"
    PAID = "paid"
    AMENDED = "amended"  # Superseded by a later amendment


class StatutoryFiling(TimestampMixin, AuditMixin, Base):
    """
    One statutory return for one payroll period.

    Base filings are unique per period and type; corrections go through an
    amendment, which points back at the filing it supersedes.
    """

    __tablename__ = "statutory_filings"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_periods.id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    filing_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="Return type: SDL|PAYE",
    )
    due_date: Mapped[date] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=FilingStatus.READY.value,
        nullable=False,
    )
    amount_due: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    penalty_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    interest_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    rule_version: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONType,
        default=dict,
        nullable=False,
    )
    original_filing_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("statutory_filings.id", ondelete="SET NULL"),
        nullable=True,
        comment="Filing this one amends; NULL for base filings",
    )
    amended_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Submission and payment tracking
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_by: Mapped[UUID | None] = mapped_column(nullable=True)
    submission_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint("filing_type IN ('SDL', 'PAYE')", name="valid_filing_type"),
        CheckConstraint(
            "status IN ('ready', 'submitted', 'paid', 'amended')",
            name="valid_filing_status",
        ),
        CheckConstraint("amount_due >= 0", name="non_negative_amount_due"),
        Index(
            "uq_statutory_filings_base_period_type",
            "company_id",
            "payroll_period_id",
            "filing_type",
            unique=True,
            postgresql_where=text("original_filing_id IS NULL"),
            sqlite_where=text("original_filing_id IS NULL"),
        ),
        Index("ix_statutory_filings_company_due", "company_id", "due_date"),
    )

    def __repr__(self) -> str:
        return f"<StatutoryFiling {self.filing_type} due {self.due_date} ({self.status})>"

"""
Payroll Run Models

Payroll periods, payroll runs and their per-employee items.
Run status changes go through backend.services.payroll_workflow.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import AuditMixin, Base, JSONType, TimestampMixin


class PayrollRunStatus(str, Enum):
    """
    Payroll run status (state machine).

    State transitions:
    draft -> validated -> approved -> locked -> paid
             validated -> draft
                          approved -> validated
    paid is terminal.
    """

    DRAFT = "draft"
    VALIDATED = "validated"
    APPROVED = "approved"
    LOCKED = "locked"
    PAID = "paid"


class PayrollPeriod(TimestampMixin, Base):
    """Calendar month payroll period for a company."""

    __tablename__ = "payroll_periods"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    period_year: Mapped[int] = mapped_column(nullable=False)
    period_month: Mapped[int] = mapped_column(nullable=False)
    starts_on: Mapped[date] = mapped_column(nullable=False)
    ends_on: Mapped[date] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "period_year",
            "period_month",
            name="uq_payroll_periods_company_month",
        ),
        CheckConstraint("period_month BETWEEN 1 AND 12", name="valid_period_month"),
    )

    def __repr__(self) -> str:
        return f"<PayrollPeriod {self.period_year}-{self.period_month:02d} ({self.company_id})>"


class PayrollRun(TimestampMixin, AuditMixin, Base):
    """
    Computed payroll for one period.

    Created in ``draft`` by the draft endpoint with totals and the rule set
    version used; status then only moves along the workflow transitions.
    """

    __tablename__ = "payroll_runs"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_periods.id", ondelete="CASCADE"),
        nullable=False,
    )
    run_label: Mapped[str] = mapped_column(
        String(50),
        default="main",
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=PayrollRunStatus.DRAFT.value,
        nullable=False,
        comment="Run status: draft|validated|approved|locked|paid",
    )

    # Totals
    gross_total: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    deduction_total: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    net_total: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    sdl_total: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    paye_total: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    nssf_total: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    employee_count: Mapped[int] = mapped_column(default=0, nullable=False)

    # Rules used (for reproducibility)
    rule_set_id: Mapped[UUID | None] = mapped_column(
        nullable=True,
        comment="Statutory rule set applied, null when the built-in default was used",
    )
    rule_version: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Rule set version label or 'fallback-default'",
    )
    warnings: Mapped[list[str]] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
        comment="Computation warnings to review before approval",
    )

    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    locked_by: Mapped[UUID | None] = mapped_column(nullable=True)

    # Relationships
    period: Mapped["PayrollPeriod"] = relationship(lazy="selectin")
    items: Mapped[list["PayrollRunItem"]] = relationship(
        back_populates="payroll_run",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'validated', 'approved', 'locked', 'paid')",
            name="valid_payroll_run_status",
        ),
        Index("ix_payroll_runs_company_created", "company_id", "created_at"),
        Index("ix_payroll_runs_period", "payroll_period_id"),
    )

    def __repr__(self) -> str:
        return f"<PayrollRun {self.id} ({self.run_label}, {self.status})>"


class PayrollRunItem(TimestampMixin, Base):
    """Persisted payroll line for one employee in a run."""

    __tablename__ = "payroll_run_items"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    taxable_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    calc_snapshot: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
        comment="Full computation breakdown with the rule set used",
    )

    payroll_run: Mapped["PayrollRun"] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="uq_payroll_run_items_employee"),
        CheckConstraint("net_pay >= 0", name="non_negative_net_pay"),
    )

"""
Pay Input Models

Recurring earnings and deductions, timesheets and leave requests that
feed the monthly payroll draft.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, TimestampMixin


class EarningCode(str, Enum):
    """Earning codes with special handling; any other code is an allowance."""

    BONUS = "BONUS"
    ARREARS = "ARREARS"


class DeductionCode(str, Enum):
    """Deduction codes with special handling; any other code is a manual deduction."""

    LOAN_ADVANCE = "LOAN_ADVANCE"
    PAYE = "PAYE"  # Computed by the engine, ignored as an input
    NSSF_EMPLOYEE = "NSSF_EMPLOYEE"  # Computed by the engine, ignored as an input


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


UNPAID_LEAVE_CODE = "UNPAID"


class RecurringEarning(TimestampMixin, Base):
    """Recurring monthly earning (allowance, bonus, arrears) for an employee."""

    __tablename__ = "employee_recurring_earnings"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Earning code: BONUS|ARREARS|<allowance code>",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    effective_from: Mapped[date] = mapped_column(nullable=False)
    effective_to: Mapped[date | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_recurring_earnings_employee", "company_id", "employee_id"),
    )

    def __repr__(self) -> str:
        return f"<RecurringEarning {self.code} {self.amount} ({self.employee_id})>"


class RecurringDeduction(TimestampMixin, Base):
    """Recurring monthly deduction (loan repayment or other) for an employee."""

    __tablename__ = "employee_recurring_deductions"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Deduction code: LOAN_ADVANCE|<manual code>",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    effective_from: Mapped[date] = mapped_column(nullable=False)
    effective_to: Mapped[date | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_recurring_deductions_employee", "company_id", "employee_id"),
    )

    def __repr__(self) -> str:
        return f"<RecurringDeduction {self.code} {self.amount} ({self.employee_id})>"


class Timesheet(TimestampMixin, Base):
    """Hours recorded for one employee on one work date."""

    __tablename__ = "timesheets"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(nullable=False)
    regular_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"), nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"), nullable=False)

    __table_args__ = (
        CheckConstraint("overtime_hours >= 0", name="non_negative_overtime_hours"),
        Index("ix_timesheets_employee_date", "company_id", "employee_id", "work_date"),
    )


class LeaveRequest(TimestampMixin, Base):
    """Leave request; approved UNPAID leave reduces the proration factor."""

    __tablename__ = "leave_requests"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_code: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="Leave policy code, e.g. ANNUAL|SICK|UNPAID",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=LeaveStatus.PENDING.value,
        nullable=False,
    )
    starts_on: Mapped[date] = mapped_column(nullable=False)
    ends_on: Mapped[date] = mapped_column(nullable=False)
    days_requested: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)

    __table_args__ = (
        CheckConstraint("ends_on >= starts_on", name="valid_leave_range"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="valid_leave_status",
        ),
        Index("ix_leave_requests_employee", "company_id", "employee_id", "status"),
    )

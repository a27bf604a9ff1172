"""
Employee Model

Employee records and their salary contracts.
Carries the tax profile used to pick the PAYE rule for each employee.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import AuditMixin, Base, TimestampMixin

if TYPE_CHECKING:
    from backend.models.company import Company


class TaxResidency(str, Enum):
    """Residency status for PAYE purposes."""

    RESIDENT = "resident"
    NON_RESIDENT = "non_resident"


class Employee(TimestampMixin, AuditMixin, Base):
    """
    Employee on a company's payroll.

    The three tax profile flags decide which PAYE rule applies:
    non-full-time director, non-resident, secondary employment or the
    resident progressive schedule.
    """

    __tablename__ = "employees"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
    )
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )

    employee_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Company-assigned payroll number",
    )
    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    hire_date: Mapped[date | None] = mapped_column(
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        default=True,
        nullable=False,
        comment="Only active employees are included in payroll drafts",
    )

    # Tax profile
    tax_residency: Mapped[str] = mapped_column(
        String(20),
        default=TaxResidency.RESIDENT.value,
        nullable=False,
        comment="PAYE residency: resident|non_resident",
    )
    is_primary_employment: Mapped[bool] = mapped_column(
        default=True,
        nullable=False,
        comment="False for secondary employment (flat PAYE rate)",
    )
    is_non_full_time_director: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
        comment="Non-full-time directors are taxed at a flat rate",
    )

    # Relationships
    company: Mapped["Company"] = relationship(
        back_populates="employees",
    )
    contracts: Mapped[list["EmployeeContract"]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "tax_residency IN ('resident', 'non_resident')",
            name="valid_tax_residency",
        ),
        Index("ix_employees_company_id", "company_id"),
        Index("ix_employees_company_active", "company_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Employee {self.first_name} {self.last_name} ({self.id})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class EmployeeContract(TimestampMixin, Base):
    """Basic salary in force for an employee over a date range."""

    __tablename__ = "employee_contracts"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
    )
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    basic_salary: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        comment="Monthly basic salary (TZS)",
    )
    effective_from: Mapped[date] = mapped_column(
        nullable=False,
    )
    effective_to: Mapped[date | None] = mapped_column(
        nullable=True,
        comment="Open-ended when null",
    )

    employee: Mapped["Employee"] = relationship(
        back_populates="contracts",
    )

    __table_args__ = (
        CheckConstraint("basic_salary >= 0", name="non_negative_basic_salary"),
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="valid_contract_range",
        ),
        Index("ix_employee_contracts_employee", "employee_id", "effective_from"),
    )

    def __repr__(self) -> str:
        return f"<EmployeeContract {self.employee_id} {self.basic_salary} from {self.effective_from}>"

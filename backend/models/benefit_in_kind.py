"""
Benefit In Kind Model

Non-cash benefits (housing, motor vehicle, concessional loan, other)
that add taxable value to an employee's monthly pay.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import AuditMixin, Base, JSONType, TimestampMixin


class BenefitType(str, Enum):
    HOUSING = "housing"
    VEHICLE = "vehicle"
    LOAN = "loan"
    OTHER = "other"


class BenefitInKind(TimestampMixin, AuditMixin, Base):
    """
    Benefit record effective over a date range.

    Valuation inputs live in ``details`` (stored in the ``metadata`` column):
    housing uses market_rent, employer_deductible_expense and
    employee_contribution; vehicle uses engine_cc, vehicle_age_years and
    employer_claims_deduction; loan uses principal_outstanding and
    employee_interest_rate. ``amount`` is the taxable value for ``other``
    and the fallback for housing/loan figures.
    """

    __tablename__ = "employee_benefits_in_kind"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    benefit_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Benefit type: housing|vehicle|loan|other",
    )
    amount: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2),
        nullable=True,
    )
    details: Mapped[dict] = mapped_column(
        "metadata",
        JSONType,
        default=dict,
        nullable=False,
        comment="Valuation inputs for the benefit type",
    )
    effective_from: Mapped[date] = mapped_column(nullable=False)
    effective_to: Mapped[date | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "benefit_type IN ('housing', 'vehicle', 'loan', 'other')",
            name="valid_benefit_type",
        ),
        CheckConstraint("amount IS NULL OR amount >= 0", name="non_negative_benefit_amount"),
        Index("ix_benefits_in_kind_employee", "company_id", "employee_id"),
    )

    def __repr__(self) -> str:
        return f"<BenefitInKind {self.benefit_type} ({self.employee_id})>"

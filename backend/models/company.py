"""
Company Model

Multi-tenant root entity for Mshahara.
All payroll data is scoped to a company.
"""

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from backend.models.employee import Employee


class Company(TimestampMixin, Base):
    """
    Employer running payroll.

    Statutory rule sets, payroll runs, filings and idempotency records are
    all keyed by company.
    """

    __tablename__ = "companies"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Registered business name",
    )
    tin: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="TRA Taxpayer Identification Number",
    )
    country_code: Mapped[str] = mapped_column(
        String(2),
        default="TZ",
        nullable=False,
    )
    jurisdiction: Mapped[str] = mapped_column(
        String(30),
        default="mainland",
        nullable=False,
        comment="Tax jurisdiction used to select statutory rules (mainland|zanzibar)",
    )

    employees: Mapped[list["Employee"]] = relationship(
        back_populates="company",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_companies_tin", "tin"),
    )

    def __repr__(self) -> str:
        return f"<Company {self.name} ({self.jurisdiction})>"

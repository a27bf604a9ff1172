"""
Statutory Rule Models

Versioned, time-scoped statutory rule sets with key/value overrides
layered onto the built-in Tanzanian defaults.
"""

from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, JSONType, TimestampMixin


class StatutoryRuleSet(TimestampMixin, Base):
    """
    Named rule configuration version.

    ``company_id`` null means a global default; a company-scoped set wins
    over the global one for the same date.
    """

    __tablename__ = "statutory_rule_sets"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=True,
        comment="Owning company, null for the global default",
    )
    country_code: Mapped[str] = mapped_column(String(2), default="TZ", nullable=False)
    jurisdiction: Mapped[str] = mapped_column(String(30), default="mainland", nullable=False)
    rule_code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Rule family, e.g. TZ_PAYROLL_BASELINE",
    )
    version: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Published version label, e.g. 2025.1",
    )
    effective_from: Mapped[date] = mapped_column(nullable=False)
    effective_to: Mapped[date | None] = mapped_column(nullable=True)

    entries: Mapped[list["StatutoryRuleEntry"]] = relationship(
        back_populates="rule_set",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="valid_rule_set_range",
        ),
        Index(
            "ix_statutory_rule_sets_lookup",
            "company_id",
            "country_code",
            "jurisdiction",
            "rule_code",
            "effective_from",
        ),
    )

    def __repr__(self) -> str:
        scope = self.company_id or "global"
        return f"<StatutoryRuleSet {self.rule_code} v{self.version} ({scope})>"


class StatutoryRuleEntry(Base):
    """Single override: ``key`` names the rule, ``value`` holds its JSON parameters."""

    __tablename__ = "statutory_rule_entries"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    rule_set_id: Mapped[UUID] = mapped_column(
        ForeignKey("statutory_rule_sets.id", ondelete="CASCADE"),
        nullable=False,
    )
    key: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Override key, e.g. SDL_RATE or PAYE_BANDS_RESIDENT_PRIMARY",
    )
    value: Mapped[Any] = mapped_column(
        JSONType,
        nullable=False,
    )

    rule_set: Mapped["StatutoryRuleSet"] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint("rule_set_id", "key", name="uq_statutory_rule_entries_key"),
    )

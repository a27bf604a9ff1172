"""
Payment Batch Models

Salary payment batches built from a payroll run's net pay, one item per
employee line. Batches are handed to a payment provider (bank file or mobile
money) outside this service.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import AuditMixin, Base, TimestampMixin


class PaymentBatchStatus(str, Enum):
    DRAFT = "draft"
    EXPORTED = "exported"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentBatch(TimestampMixin, AuditMixin, Base):
    """Net pay for one payroll run, grouped for a single provider."""

    __tablename__ = "payment_batches"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Payment channel, e.g. bank_transfer or mpesa",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentBatchStatus.DRAFT.value,
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"), nullable=False)
    item_count: Mapped[int] = mapped_column(default=0, nullable=False)
    file_uri: Mapped[str | None] = mapped_column(String(500), nullable=True)

    items: Mapped[list["PaymentBatchItem"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'exported', 'processing', 'completed', 'failed')",
            name="valid_payment_batch_status",
        ),
        Index("ix_payment_batches_company_created", "company_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PaymentBatch {self.provider} {self.total_amount} ({self.status})>"


class PaymentBatchItem(TimestampMixin, Base):
    """One employee's net pay within a batch."""

    __tablename__ = "payment_batch_items"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payment_batch_id: Mapped[UUID] = mapped_column(
        ForeignKey("payment_batches.id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_run_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    destination_account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    provider_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    batch: Mapped[PaymentBatch] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint("payment_batch_id", "payroll_run_item_id", name="uq_payment_batch_items_run_item"),
    )

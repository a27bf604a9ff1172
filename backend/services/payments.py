"""
Salary Payment Batches

Turns an approved payroll run into a payment batch: one item per run item,
paying its net pay. The run must have passed approval so that unreviewed
figures never reach a bank file.
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.payment import PaymentBatch, PaymentBatchItem, PaymentBatchStatus
from backend.models.payroll_run import PayrollRun, PayrollRunItem, PayrollRunStatus
from backend.services.filings import PayrollRunNotFound
from engines.services.statutory import round2

logger = logging.getLogger(__name__)

PAYABLE_RUN_STATUSES = frozenset({PayrollRunStatus.APPROVED.value, PayrollRunStatus.LOCKED.value})


class PayrollRunNotPayable(ValueError):
    pass


class PaymentBatchExists(Exception):
    def __init__(self, batch_id: UUID):
        self.batch_id = batch_id
        super().__init__(f"Payroll run already has payment batch {batch_id}")


async def create_payment_batch(
    db: AsyncSession,
    company_id: UUID,
    payroll_run_id: UUID,
    provider: str,
    actor_id: UUID | None = None,
) -> PaymentBatch:
    """
    Build a draft batch over the run's items.

    Raises PayrollRunNotFound for an unknown run, PayrollRunNotPayable when
    the run is not approved or locked or has no items, and PaymentBatchExists
    when a batch that has not failed already covers the run. Flushes but does
    not commit.
    """
    run = (
        await db.execute(
            select(PayrollRun).where(
                PayrollRun.company_id == company_id,
                PayrollRun.id == payroll_run_id,
            )
        )
    ).scalar_one_or_none()
    if run is None:
        raise PayrollRunNotFound(f"Payroll run {payroll_run_id} not found")

    if run.status not in PAYABLE_RUN_STATUSES:
        raise PayrollRunNotPayable(
            f"Payroll run must be approved or locked before payment (status: {run.status})"
        )

    existing = (
        await db.execute(
            select(PaymentBatch.id).where(
                PaymentBatch.company_id == company_id,
                PaymentBatch.payroll_run_id == run.id,
                PaymentBatch.status != PaymentBatchStatus.FAILED.value,
            )
        )
    ).scalars().first()
    if existing is not None:
        raise PaymentBatchExists(existing)

    run_items = (
        await db.execute(
            select(PayrollRunItem)
            .where(PayrollRunItem.payroll_run_id == run.id)
            .order_by(PayrollRunItem.employee_id)
        )
    ).scalars().all()
    if not run_items:
        raise PayrollRunNotPayable("No payroll run items found")

    total = round2(sum((Decimal(item.net_pay) for item in run_items), Decimal("0")))
    batch = PaymentBatch(
        company_id=company_id,
        payroll_run_id=run.id,
        provider=provider,
        status=PaymentBatchStatus.DRAFT.value,
        total_amount=total,
        item_count=len(run_items),
        created_by=actor_id,
        items=[
            PaymentBatchItem(
                payroll_run_item_id=item.id,
                employee_id=item.employee_id,
                amount=round2(Decimal(item.net_pay)),
            )
            for item in run_items
        ],
    )
    db.add(batch)
    await db.flush()

    logger.info(
        "Created %s payment batch %s for run %s (%d items, total %s)",
        provider,
        batch.id,
        run.id,
        len(run_items),
        total,
    )
    return batch

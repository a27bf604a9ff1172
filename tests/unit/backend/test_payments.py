"""
Payment Batch Service Unit Tests
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from backend.models.payment import PaymentBatchStatus
from backend.services.filings import PayrollRunNotFound
from backend.services.payments import PaymentBatchExists, PayrollRunNotPayable, create_payment_batch
from tests.factories import make_employee, make_payroll_run, make_period, make_run_item


async def _seed_run(db, company_id, status: str = "approved", net_pays=(Decimal("750000.00"), Decimal("1200000.55"))):
    period = make_period(company_id)
    db.add(period)
    await db.flush()
    run = make_payroll_run(company_id, period.id, status=status)
    db.add(run)
    await db.flush()
    for net_pay in net_pays:
        emp = make_employee(company_id)
        db.add(emp)
        await db.flush()
        db.add(make_run_item(run.id, emp.id, net_pay=net_pay))
    await db.flush()
    return run


class TestCreatePaymentBatch:

    @pytest.mark.asyncio
    async def test_batch_pays_net_of_each_item(self, db_session, test_company):
        run = await _seed_run(db_session, test_company.id)
        actor = uuid4()

        batch = await create_payment_batch(db_session, test_company.id, run.id, "bank_transfer", actor_id=actor)

        assert batch.status == PaymentBatchStatus.DRAFT.value
        assert batch.provider == "bank_transfer"
        assert batch.total_amount == Decimal("1950000.55")
        assert batch.item_count == 2
        assert sorted(item.amount for item in batch.items) == [Decimal("750000.00"), Decimal("1200000.55")]
        assert batch.created_by == actor

    @pytest.mark.asyncio
    async def test_locked_run_is_payable(self, db_session, test_company):
        run = await _seed_run(db_session, test_company.id, status="locked")

        batch = await create_payment_batch(db_session, test_company.id, run.id, "mpesa")
        assert batch.payroll_run_id == run.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["draft", "validated", "paid"])
    async def test_unapproved_run_rejected(self, db_session, test_company, status):
        run = await _seed_run(db_session, test_company.id, status=status)

        with pytest.raises(PayrollRunNotPayable, match="approved or locked"):
            await create_payment_batch(db_session, test_company.id, run.id, "bank_transfer")

    @pytest.mark.asyncio
    async def test_run_without_items_rejected(self, db_session, test_company):
        run = await _seed_run(db_session, test_company.id, net_pays=())

        with pytest.raises(PayrollRunNotPayable, match="No payroll run items"):
            await create_payment_batch(db_session, test_company.id, run.id, "bank_transfer")

    @pytest.mark.asyncio
    async def test_second_batch_for_run_rejected(self, db_session, test_company):
        run = await _seed_run(db_session, test_company.id)
        first = await create_payment_batch(db_session, test_company.id, run.id, "bank_transfer")

        with pytest.raises(PaymentBatchExists) as exc_info:
            await create_payment_batch(db_session, test_company.id, run.id, "mpesa")
        assert exc_info.value.batch_id == first.id

    @pytest.mark.asyncio
    async def test_failed_batch_can_be_rebuilt(self, db_session, test_company):
        run = await _seed_run(db_session, test_company.id)
        first = await create_payment_batch(db_session, test_company.id, run.id, "bank_transfer")
        first.status = PaymentBatchStatus.FAILED.value
        await db_session.flush()

        second = await create_payment_batch(db_session, test_company.id, run.id, "bank_transfer")
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_unknown_run(self, db_session, test_company):
        with pytest.raises(PayrollRunNotFound):
            await create_payment_batch(db_session, test_company.id, uuid4(), "bank_transfer")

    @pytest.mark.asyncio
    async def test_other_company_run_not_found(self, db_session, test_company):
        run = await _seed_run(db_session, test_company.id)

        with pytest.raises(PayrollRunNotFound):
            await create_payment_batch(db_session, uuid4(), run.id, "bank_transfer")

"""
Statutory Filing Generation

Builds SDL and PAYE returns for a payroll run. Returns fall due on a fixed
day of the month after the payroll period; overdue returns accrue a simple
daily penalty at the rate in force on the due date.

A base return is never regenerated. Corrections are filed as amendments:
a new ``ready`` return that points at the one it supersedes, which is then
marked ``amended``.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.models.filing import FilingStatus, FilingType, StatutoryFiling
from backend.models.payroll_run import PayrollPeriod, PayrollRun
from backend.services.statutory_rules import LoadedPayrollRules, load_active_payroll_rules
from engines.services.statutory import calculate_filing_penalty, round2

logger = logging.getLogger(__name__)

FILINGS_EXIST_MESSAGE = (
    "Base filings already exist for this payroll period. "
    "Amend the existing filing with POST /filings/{filing_id}/amend instead."
)
FILING_TARGET_STATUSES = frozenset(
    {
        FilingStatus.READY.value,
        FilingStatus.SUBMITTED.value,
        FilingStatus.PAID.value,
    }
)


class PayrollRunNotFound(LookupError):
    pass


class FilingsAlreadyExist(Exception):
    def __init__(self, payroll_period_id: UUID):
        self.payroll_period_id = payroll_period_id
        super().__init__(FILINGS_EXIST_MESSAGE)


class FilingNotFound(LookupError):
    pass


class InvalidFilingChange(ValueError):
    """Amendment or status change not allowed for this filing."""


def filing_due_date(period_year: int, period_month: int, due_day: int | None = None) -> date:
    """Due date in the month following the payroll period."""
    if due_day is None:
        due_day = get_settings().filing_due_day
    if period_month == 12:
        return date(period_year + 1, 1, due_day)
    return date(period_year, period_month + 1, due_day)


def count_late_days(due_date: date, today: date) -> int:
    return max(0, (today - due_date).days)


def build_filings(
    run: PayrollRun,
    period: PayrollPeriod,
    rules: LoadedPayrollRules,
    today: date,
    actor_id: UUID | None = None,
) -> list[StatutoryFiling]:
    """Unsaved SDL and PAYE filings for ``run``."""
    due_date = filing_due_date(period.period_year, period.period_month)
    late_days = count_late_days(due_date, today)

    amounts = {
        FilingType.SDL: round2(Decimal(run.sdl_total)),
        FilingType.PAYE: round2(Decimal(run.paye_total)),
    }

    filings = []
    for filing_type, amount_due in amounts.items():
        filings.append(
            StatutoryFiling(
                company_id=run.company_id,
                payroll_period_id=period.id,
                payroll_run_id=run.id,
                filing_type=filing_type.value,
                due_date=due_date,
                status=FilingStatus.READY.value,
                amount_due=amount_due,
                penalty_amount=calculate_filing_penalty(amount_due, late_days, rules.config),
                interest_amount=Decimal("0.00"),
                rule_version=rules.version,
                created_by=actor_id,
                details={
                    "source": "auto_generated",
                    "payroll_run_id": str(run.id),
                    "rule_set_id": str(rules.rule_set_id) if rules.rule_set_id else None,
                    "rule_version": rules.version,
                    "nssf_employee_total": str(round2(Decimal(run.nssf_total))),
                    "paye_total": str(round2(Decimal(run.paye_total))),
                    "late_days": late_days,
                },
            )
        )
    return filings


async def _get_run(db: AsyncSession, company_id: UUID, run_id: UUID | None) -> PayrollRun:
    query = select(PayrollRun).where(PayrollRun.company_id == company_id)
    if run_id is not None:
        query = query.where(PayrollRun.id == run_id)
    else:
        query = query.order_by(PayrollRun.created_at.desc()).limit(1)

    run = (await db.execute(query)).scalars().first()
    if run is None:
        if run_id is None:
            raise PayrollRunNotFound("No payroll run found for filing generation")
        raise PayrollRunNotFound(f"Payroll run {run_id} not found")
    return run


async def generate_filings(
    db: AsyncSession,
    company_id: UUID,
    payroll_run_id: UUID | None = None,
    actor_id: UUID | None = None,
    today: date | None = None,
    jurisdiction: str | None = None,
) -> list[StatutoryFiling]:
    """
    Create the base SDL and PAYE filings for a run (the latest run when none given).

    Raises PayrollRunNotFound or FilingsAlreadyExist. Flushes but does not commit.
    """
    run = await _get_run(db, company_id, payroll_run_id)
    period = await db.get(PayrollPeriod, run.payroll_period_id)

    existing = await db.execute(
        select(StatutoryFiling.id).where(
            StatutoryFiling.company_id == company_id,
            StatutoryFiling.payroll_period_id == period.id,
        )
    )
    if existing.first() is not None:
        raise FilingsAlreadyExist(period.id)

    due_date = filing_due_date(period.period_year, period.period_month)
    rules = await load_active_payroll_rules(db, company_id, due_date, jurisdiction)

    filings = build_filings(run, period, rules, today or date.today(), actor_id)
    db.add_all(filings)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise FilingsAlreadyExist(period.id) from exc

    logger.info(
        "Generated %d filings for payroll run %s (due %s, rules %s)",
        len(filings),
        run.id,
        due_date,
        rules.version,
    )
    return filings


async def get_filing(db: AsyncSession, company_id: UUID, filing_id: UUID) -> StatutoryFiling:
    result = await db.execute(
        select(StatutoryFiling).where(
            StatutoryFiling.company_id == company_id,
            StatutoryFiling.id == filing_id,
        )
    )
    filing = result.scalar_one_or_none()
    if filing is None:
        raise FilingNotFound("Filing not found")
    return filing


async def amend_filing(
    db: AsyncSession,
    company_id: UUID,
    filing_id: UUID,
    amount_due: Decimal,
    reason: str,
    actor_id: UUID | None = None,
) -> StatutoryFiling:
    """
    File a corrected return in place of ``filing_id``.

    The amendment keeps the period, run, type and due date of the filing it
    replaces and starts as ``ready``; the replaced filing becomes ``amended``.
    Only the latest version of a return can be amended. Flushes but does not
    commit.
    """
    if amount_due < 0:
        raise InvalidFilingChange("amount_due must be non-negative")
    reason = reason.strip()
    if not reason:
        raise InvalidFilingChange("reason is required for amendment")

    original = await get_filing(db, company_id, filing_id)
    if original.status == FilingStatus.AMENDED.value:
        raise InvalidFilingChange("Filing has already been amended; amend the latest version instead")

    previous_status = original.status
    amended = StatutoryFiling(
        company_id=company_id,
        payroll_period_id=original.payroll_period_id,
        payroll_run_id=original.payroll_run_id,
        filing_type=original.filing_type,
        due_date=original.due_date,
        status=FilingStatus.READY.value,
        amount_due=round2(amount_due),
        penalty_amount=original.penalty_amount,
        interest_amount=original.interest_amount,
        rule_version=original.rule_version,
        original_filing_id=original.id,
        amended_reason=reason,
        created_by=actor_id,
        details={
            **(original.details or {}),
            "source": "amendment",
            "original_filing_id": str(original.id),
            "original_amount_due": str(round2(Decimal(original.amount_due))),
        },
    )
    original.status = FilingStatus.AMENDED.value
    original.modified_by = actor_id
    db.add(amended)
    await db.flush()

    logger.info(
        "Amended %s filing %s (%s -> amended) with %s by %s",
        original.filing_type,
        original.id,
        previous_status,
        amended.id,
        actor_id,
    )
    return amended


async def update_filing_status(
    db: AsyncSession,
    company_id: UUID,
    filing_id: UUID,
    target_status: str,
    actor_id: UUID | None = None,
    submission_reference: str | None = None,
    payment_reference: str | None = None,
    now: datetime | None = None,
) -> StatutoryFiling:
    """
    Move a filing to ready, submitted or paid.

    Submitting stamps ``submitted_at``/``submitted_by``; paying stamps
    ``paid_at`` and also the submission stamp when the return was never
    marked submitted. Amended filings are frozen. Flushes but does not commit.
    """
    if target_status not in FILING_TARGET_STATUSES:
        raise InvalidFilingChange("target_status must be ready, submitted, or paid")

    filing = await get_filing(db, company_id, filing_id)
    if filing.status == FilingStatus.AMENDED.value:
        raise InvalidFilingChange("Amended filings cannot change status")

    now = now or datetime.now(timezone.utc)
    previous = filing.status
    filing.status = target_status
    filing.modified_by = actor_id

    if target_status == FilingStatus.SUBMITTED.value:
        filing.submitted_at = now
        filing.submitted_by = actor_id
        filing.submission_reference = submission_reference

    if target_status == FilingStatus.PAID.value:
        filing.paid_at = now
        filing.payment_reference = payment_reference
        if filing.submitted_at is None:
            filing.submitted_at = now
            filing.submitted_by = actor_id

    await db.flush()
    logger.info("Filing %s moved %s -> %s by %s", filing.id, previous, target_status, actor_id)
    return filing

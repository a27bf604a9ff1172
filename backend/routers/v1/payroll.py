"""
Payroll API Routes

Endpoints for computing draft payroll runs and moving them through the
approval workflow.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.db.session import get_db
from backend.middleware.rbac import CurrentUser, Permission, require_permission
from backend.models.company import Company
from backend.models.payroll_run import PayrollPeriod, PayrollRun, PayrollRunItem, PayrollRunStatus
from backend.schemas.payroll import (
    PayrollDraftCreate,
    PayrollRunListResponse,
    PayrollRunResponse,
    PayrollRunStatusUpdate,
    PayrollRunSummary,
)
from backend.services.idempotency import (
    IdempotencyCoordinator,
    get_idempotency_coordinator,
    idempotent_request,
)
from backend.services.payroll_inputs import PayPeriod, load_active_employees, load_payroll_inputs
from backend.services.payroll_workflow import InvalidPayrollTransition, assert_payroll_run_transition
from backend.services.statutory_rules import LoadedPayrollRules, load_active_payroll_rules
from engines.schemas.payroll import PayrollComputationResult, PayrollItemResult
from engines.services.payroll_engine import compute_payroll_draft

logger = logging.getLogger(__name__)

router = APIRouter()

DRAFT_ENDPOINT = "/payroll/draft"

# Moving a run into these statuses also needs payroll:approve
APPROVAL_STATUSES = frozenset(
    {
        PayrollRunStatus.APPROVED.value,
        PayrollRunStatus.LOCKED.value,
        PayrollRunStatus.PAID.value,
    }
)


async def get_company_or_404(company_id: UUID, db: AsyncSession) -> Company:
    """Helper to get company or raise 404."""
    result = await db.execute(select(Company).where(Company.id == company_id))
    company = result.scalar_one_or_none()
    if not company:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Company {company_id} not found",
        )
    return company


async def get_or_create_period(db: AsyncSession, company_id: UUID, period: PayPeriod) -> PayrollPeriod:
    result = await db.execute(
        select(PayrollPeriod).where(
            PayrollPeriod.company_id == company_id,
            PayrollPeriod.period_year == period.year,
            PayrollPeriod.period_month == period.month,
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        record = PayrollPeriod(
            company_id=company_id,
            period_year=period.year,
            period_month=period.month,
            starts_on=period.starts_on,
            ends_on=period.ends_on,
        )
        db.add(record)
        await db.flush()
    return record


def build_calc_snapshot(
    item: PayrollItemResult,
    result: PayrollComputationResult,
    rules: LoadedPayrollRules,
) -> dict[str, Any]:
    """Breakdown stored with each run item so a run can be explained later."""
    return {
        "rule_set_id": str(rules.rule_set_id) if rules.rule_set_id else None,
        "rule_version": rules.version,
        "proration_factor": str(item.proration_factor),
        "prorated_basic_pay": str(item.prorated_basic_pay),
        "allowance_pay": str(item.allowance_pay),
        "overtime_pay": str(item.overtime_pay),
        "arrears_pay": str(item.arrears_pay),
        "bonus_pay": str(item.bonus_pay),
        "bik_housing_taxable": str(item.bik_housing_taxable),
        "bik_vehicle_taxable": str(item.bik_vehicle_taxable),
        "bik_loan_taxable": str(item.bik_loan_taxable),
        "bik_other_taxable": str(item.bik_other_taxable),
        "statutory": {
            "paye": str(item.paye_deduction),
            "nssf": str(item.nssf_deduction),
            "sdl": str(result.statutory.sdl),
        },
        "loan_deductions": str(item.loan_deductions),
        "manual_deductions": str(item.manual_deductions),
        "warnings": list(item.warnings),
    }


@router.post(
    "/draft",
    status_code=status.HTTP_201_CREATED,
    summary="Compute draft payroll",
    description=(
        "Compute payroll for all active employees (or the given subset) for a month "
        "and store it as a draft run. Send an Idempotency-Key header to make retries safe."
    ),
)
async def create_payroll_draft(
    company_id: UUID,
    body: PayrollDraftCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    user: CurrentUser = Depends(require_permission(Permission.PAYROLL_RUN)),
):
    """Compute and persist a draft payroll run."""
    company = await get_company_or_404(company_id, db)

    async with idempotent_request(
        coordinator,
        request,
        company_id=company_id,
        endpoint=DRAFT_ENDPOINT,
        payload=body.model_dump(mode="json"),
        actor_id=user.id,
    ) as guard:
        if guard.replay is not None:
            return guard.replay

        period = PayPeriod(body.period_year, body.period_month)
        employees = await load_active_employees(db, company_id, body.employee_ids)
        if not employees:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="No active employees found",
            )

        rules = await load_active_payroll_rules(db, company_id, period.ends_on, company.jurisdiction)
        period_record = await get_or_create_period(db, company_id, period)
        inputs = await load_payroll_inputs(db, company_id, period, employees)
        result = compute_payroll_draft(inputs, rules.config)

        run = PayrollRun(
            company_id=company_id,
            payroll_period_id=period_record.id,
            period=period_record,
            run_label=body.run_label,
            status=PayrollRunStatus.DRAFT.value,
            gross_total=result.gross_total,
            deduction_total=result.deduction_total,
            net_total=result.net_total,
            sdl_total=result.statutory.sdl,
            paye_total=result.statutory.paye_total,
            nssf_total=result.statutory.nssf_total,
            employee_count=len(result.items),
            rule_set_id=rules.rule_set_id,
            rule_version=rules.version,
            warnings=list(result.warnings),
            created_by=user.id,
            items=[
                PayrollRunItem(
                    employee_id=UUID(item.employee_id),
                    gross_pay=item.gross_pay,
                    taxable_pay=item.taxable_pay,
                    total_deductions=item.total_deductions,
                    net_pay=item.net_pay,
                    calc_snapshot=build_calc_snapshot(item, result, rules),
                )
                for item in result.items
            ],
        )
        db.add(run)
        await db.flush()
        await db.refresh(run)
        await db.commit()

        logger.info(
            "Created draft payroll run %s for company %s %d-%02d (%d employees, rules %s)",
            run.id,
            company_id,
            period.year,
            period.month,
            len(result.items),
            rules.version,
        )

        return await guard.complete(
            status.HTTP_201_CREATED,
            {
                "data": {
                    "payroll_run_id": str(run.id),
                    "rule_set_id": str(rules.rule_set_id) if rules.rule_set_id else None,
                    "rule_version": rules.version,
                    **result.model_dump(mode="json"),
                }
            },
        )


@router.get(
    "/runs",
    response_model=PayrollRunListResponse,
    summary="List payroll runs",
    description="Most recent payroll runs for the company, newest first.",
)
async def list_payroll_runs(
    company_id: UUID,
    limit: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.PAYROLL_READ)),
) -> PayrollRunListResponse:
    """List payroll runs."""
    settings = get_settings()
    page_size = min(limit or settings.payroll_runs_page_default, settings.payroll_runs_page_max)

    result = await db.execute(
        select(PayrollRun)
        .where(PayrollRun.company_id == company_id)
        .order_by(PayrollRun.created_at.desc())
        .limit(page_size)
    )
    runs = result.scalars().all()
    return PayrollRunListResponse(data=[PayrollRunSummary.model_validate(run) for run in runs])


async def get_run_or_404(db: AsyncSession, company_id: UUID, run_id: UUID) -> PayrollRun:
    result = await db.execute(
        select(PayrollRun).where(
            PayrollRun.company_id == company_id,
            PayrollRun.id == run_id,
        )
    )
    run = result.scalar_one_or_none()
    if not run:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payroll run not found",
        )
    return run


@router.get(
    "/runs/{run_id}",
    response_model=PayrollRunResponse,
    summary="Get payroll run",
)
async def get_payroll_run(
    company_id: UUID,
    run_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.PAYROLL_READ)),
) -> PayrollRunResponse:
    """Get a payroll run with its items."""
    run = await get_run_or_404(db, company_id, run_id)
    return PayrollRunResponse.model_validate(run)


@router.patch(
    "/runs/{run_id}/status",
    response_model=PayrollRunSummary,
    summary="Change payroll run status",
    description="Move a run along draft -> validated -> approved -> locked -> paid.",
)
async def update_payroll_run_status(
    company_id: UUID,
    run_id: UUID,
    body: PayrollRunStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.PAYROLL_RUN)),
) -> PayrollRunSummary:
    """Apply a workflow transition to a run."""
    run = await get_run_or_404(db, company_id, run_id)

    if body.target_status in APPROVAL_STATUSES and not user.has_permission(Permission.PAYROLL_APPROVE):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permission: {Permission.PAYROLL_APPROVE.value}",
        )

    try:
        assert_payroll_run_transition(run.status, body.target_status)
    except InvalidPayrollTransition as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    previous = run.status
    run.status = body.target_status
    run.modified_by = user.id
    if body.target_status == PayrollRunStatus.LOCKED.value:
        run.locked_at = datetime.now(timezone.utc)
        run.locked_by = user.id

    await db.flush()
    await db.refresh(run)

    logger.info("Payroll run %s moved %s -> %s by %s", run.id, previous, run.status, user.id)

    return PayrollRunSummary.model_validate(run)

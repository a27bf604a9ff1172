"""
Statutory Filing API Routes

Endpoints for listing, generating, amending and tracking SDL and PAYE returns.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.db.session import get_db
from backend.middleware.rbac import CurrentUser, Permission, require_permission
from backend.models.filing import StatutoryFiling
from backend.routers.v1.payroll import get_company_or_404
from backend.schemas.filing import (
    FilingAmendRequest,
    FilingEnvelope,
    FilingGenerateRequest,
    FilingListResponse,
    FilingResponse,
    FilingStatusUpdate,
)
from backend.services.filings import (
    FilingNotFound,
    FilingsAlreadyExist,
    InvalidFilingChange,
    PayrollRunNotFound,
    amend_filing,
    generate_filings,
    update_filing_status,
)
from backend.services.idempotency import (
    IdempotencyCoordinator,
    get_idempotency_coordinator,
    idempotent_request,
)

router = APIRouter()

GENERATE_ENDPOINT = "/filings/generate"


@router.get(
    "",
    response_model=FilingListResponse,
    summary="List statutory filings",
)
async def list_filings(
    company_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.REPORTS_READ)),
) -> FilingListResponse:
    """List filings by due date, latest first."""
    result = await db.execute(
        select(StatutoryFiling)
        .where(StatutoryFiling.company_id == company_id)
        .order_by(StatutoryFiling.due_date.desc(), StatutoryFiling.filing_type)
    )
    filings = result.scalars().all()
    return FilingListResponse(data=[FilingResponse.model_validate(f) for f in filings])


@router.post(
    "/generate",
    status_code=status.HTTP_201_CREATED,
    summary="Generate statutory filings",
    description=(
        "Create the SDL and PAYE returns for a payroll run (the latest run when none is given). "
        "Send an Idempotency-Key header to make retries safe."
    ),
)
async def generate_statutory_filings(
    company_id: UUID,
    request: Request,
    body: FilingGenerateRequest | None = None,
    db: AsyncSession = Depends(get_db),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    user: CurrentUser = Depends(require_permission(Permission.FILING_GENERATE)),
):
    """Generate the base filings for a payroll period."""
    company = await get_company_or_404(company_id, db)
    body = body or FilingGenerateRequest()

    async with idempotent_request(
        coordinator,
        request,
        company_id=company_id,
        endpoint=GENERATE_ENDPOINT,
        payload=body.model_dump(mode="json"),
        actor_id=user.id,
    ) as guard:
        if guard.replay is not None:
            return guard.replay

        try:
            filings = await generate_filings(
                db,
                company_id,
                payroll_run_id=body.payroll_run_id,
                actor_id=user.id,
                jurisdiction=company.jurisdiction,
            )
        except PayrollRunNotFound as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except FilingsAlreadyExist as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

        for filing in filings:
            await db.refresh(filing)
        await db.commit()

        return await guard.complete(
            status.HTTP_201_CREATED,
            {"data": [FilingResponse.model_validate(f).model_dump(mode="json") for f in filings]},
        )


@router.post(
    "/{filing_id}/amend",
    status_code=status.HTTP_201_CREATED,
    summary="Amend statutory filing",
    description=(
        "File a corrected return that supersedes the given one. "
        "Send an Idempotency-Key header to make retries safe."
    ),
)
async def amend_statutory_filing(
    company_id: UUID,
    filing_id: UUID,
    body: FilingAmendRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    user: CurrentUser = Depends(require_permission(Permission.FILING_GENERATE)),
):
    """Create an amended filing and mark the original amended."""
    await get_company_or_404(company_id, db)

    async with idempotent_request(
        coordinator,
        request,
        company_id=company_id,
        endpoint=f"/filings/{filing_id}/amend",
        payload=body.model_dump(mode="json"),
        actor_id=user.id,
    ) as guard:
        if guard.replay is not None:
            return guard.replay

        try:
            amended = await amend_filing(
                db,
                company_id,
                filing_id,
                amount_due=body.amount_due,
                reason=body.reason,
                actor_id=user.id,
            )
        except FilingNotFound as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except InvalidFilingChange as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

        await db.refresh(amended)
        await db.commit()

        return await guard.complete(
            status.HTTP_201_CREATED,
            {"data": FilingResponse.model_validate(amended).model_dump(mode="json")},
        )


@router.patch(
    "/{filing_id}/status",
    response_model=FilingEnvelope,
    summary="Change filing status",
    description="Mark a return ready, submitted or paid. Submission and payment are time-stamped.",
)
async def update_statutory_filing_status(
    company_id: UUID,
    filing_id: UUID,
    body: FilingStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.FILING_GENERATE)),
) -> FilingEnvelope:
    """Record submission or payment of a return."""
    try:
        filing = await update_filing_status(
            db,
            company_id,
            filing_id,
            body.target_status,
            actor_id=user.id,
            submission_reference=body.submission_reference,
            payment_reference=body.payment_reference,
        )
    except FilingNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidFilingChange as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    await db.refresh(filing)
    return FilingEnvelope(data=FilingResponse.model_validate(filing))

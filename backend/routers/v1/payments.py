"""
Payment Batch API Routes

Endpoints for building salary payment batches from approved payroll runs.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.db.session import get_db
from backend.middleware.rbac import CurrentUser, Permission, require_permission
from backend.models.payment import PaymentBatch
from backend.routers.v1.payroll import get_company_or_404
from backend.schemas.payment import (
    PaymentBatchCreate,
    PaymentBatchDetailResponse,
    PaymentBatchListResponse,
    PaymentBatchResponse,
)
from backend.services.filings import PayrollRunNotFound
from backend.services.idempotency import (
    IdempotencyCoordinator,
    get_idempotency_coordinator,
    idempotent_request,
)
from backend.services.payments import PaymentBatchExists, PayrollRunNotPayable, create_payment_batch

router = APIRouter()

CREATE_ENDPOINT = "/payments/batches"
LIST_LIMIT = 100


@router.get(
    "",
    response_model=PaymentBatchListResponse,
    summary="List payment batches",
    description="Most recent payment batches for the company, newest first.",
)
async def list_payment_batches(
    company_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.PAYROLL_RUN)),
) -> PaymentBatchListResponse:
    """List payment batches."""
    result = await db.execute(
        select(PaymentBatch)
        .where(PaymentBatch.company_id == company_id)
        .order_by(PaymentBatch.created_at.desc())
        .limit(LIST_LIMIT)
    )
    batches = result.scalars().all()
    return PaymentBatchListResponse(data=[PaymentBatchResponse.model_validate(b) for b in batches])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create payment batch",
    description=(
        "Build a draft payment batch over the net pay of an approved or locked payroll run. "
        "Send an Idempotency-Key header to make retries safe."
    ),
)
async def create_batch(
    company_id: UUID,
    body: PaymentBatchCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    user: CurrentUser = Depends(require_permission(Permission.PAYROLL_RUN)),
):
    """Create a payment batch from a payroll run."""
    await get_company_or_404(company_id, db)

    async with idempotent_request(
        coordinator,
        request,
        company_id=company_id,
        endpoint=CREATE_ENDPOINT,
        payload=body.model_dump(mode="json"),
        actor_id=user.id,
    ) as guard:
        if guard.replay is not None:
            return guard.replay

        try:
            batch = await create_payment_batch(
                db,
                company_id,
                body.payroll_run_id,
                body.provider,
                actor_id=user.id,
            )
        except PayrollRunNotFound as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except PayrollRunNotPayable as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
        except PaymentBatchExists as e:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

        await db.refresh(batch)
        await db.commit()

        return await guard.complete(
            status.HTTP_201_CREATED,
            {"data": PaymentBatchDetailResponse.model_validate(batch).model_dump(mode="json")},
        )

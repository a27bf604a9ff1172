"""
Benefit In Kind API Routes

Endpoints for maintaining the housing, vehicle, loan and other benefit
records that feed the payroll taxable-pay calculation.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.db.session import get_db
from backend.middleware.rbac import CurrentUser, Permission, require_permission
from backend.models.benefit_in_kind import BenefitInKind
from backend.models.employee import Employee
from backend.routers.v1.payroll import get_company_or_404
from backend.schemas.benefit_in_kind import (
    BenefitInKindCreate,
    BenefitInKindListResponse,
    BenefitInKindResponse,
    BenefitInKindUpdate,
    validate_benefit_metadata,
)
from backend.services.idempotency import (
    IdempotencyCoordinator,
    get_idempotency_coordinator,
    idempotent_request,
)

logger = logging.getLogger(__name__)

router = APIRouter()

CREATE_ENDPOINT = "/benefits-in-kind"


def _invalid_payload(errors: list[str]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": "Invalid benefit payload", "errors": errors},
    )


async def _ensure_employee(db: AsyncSession, company_id: UUID, employee_id: UUID) -> None:
    result = await db.execute(
        select(Employee.id).where(
            Employee.company_id == company_id,
            Employee.id == employee_id,
        )
    )
    if result.first() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee {employee_id} not found",
        )


async def _get_benefit_or_404(db: AsyncSession, company_id: UUID, benefit_id: UUID) -> BenefitInKind:
    result = await db.execute(
        select(BenefitInKind).where(
            BenefitInKind.company_id == company_id,
            BenefitInKind.id == benefit_id,
        )
    )
    benefit = result.scalar_one_or_none()
    if not benefit:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Benefit in kind record not found",
        )
    return benefit


@router.get(
    "",
    response_model=BenefitInKindListResponse,
    summary="List benefits in kind",
)
async def list_benefits(
    company_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.EMPLOYEE_READ)),
) -> BenefitInKindListResponse:
    """List the company's benefit records, newest first."""
    result = await db.execute(
        select(BenefitInKind, Employee)
        .join(Employee, Employee.id == BenefitInKind.employee_id)
        .where(BenefitInKind.company_id == company_id)
        .order_by(BenefitInKind.created_at.desc())
    )

    data = []
    for benefit, employee in result.all():
        row = BenefitInKindResponse.model_validate(benefit)
        data.append(
            row.model_copy(
                update={
                    "employee_name": employee.full_name,
                    "employee_number": employee.employee_number,
                }
            )
        )
    return BenefitInKindListResponse(data=data)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create benefit in kind",
    description="Record a benefit for an employee. Send an Idempotency-Key header to make retries safe.",
)
async def create_benefit(
    company_id: UUID,
    body: BenefitInKindCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
    user: CurrentUser = Depends(require_permission(Permission.EMPLOYEE_WRITE)),
):
    """Create a benefit record."""
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

        errors = validate_benefit_metadata(
            body.benefit_type,
            body.metadata,
            body.effective_from,
            body.effective_to,
        )
        if errors:
            raise _invalid_payload(errors)

        await _ensure_employee(db, company_id, body.employee_id)

        benefit = BenefitInKind(
            company_id=company_id,
            employee_id=body.employee_id,
            benefit_type=body.benefit_type,
            effective_from=body.effective_from,
            effective_to=body.effective_to,
            amount=body.amount,
            details=body.metadata,
            created_by=user.id,
        )
        db.add(benefit)
        await db.flush()
        await db.refresh(benefit)
        await db.commit()

        logger.info(
            "Created %s benefit %s for employee %s",
            body.benefit_type,
            benefit.id,
            body.employee_id,
        )
        return await guard.complete(status.HTTP_201_CREATED, {"data": {"id": str(benefit.id)}})


@router.patch(
    "/{benefit_id}",
    summary="Update benefit in kind",
)
async def update_benefit(
    company_id: UUID,
    benefit_id: UUID,
    body: BenefitInKindUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.EMPLOYEE_WRITE)),
) -> dict:
    """Update the supplied fields of a benefit record."""
    benefit = await _get_benefit_or_404(db, company_id, benefit_id)
    update_data = body.model_dump(exclude_unset=True)

    required = [f"{field} cannot be null" for field in ("employee_id", "benefit_type", "effective_from")
                if field in update_data and update_data[field] is None]
    if required:
        raise _invalid_payload(required)

    # Validate the record as it will look after the update
    errors = validate_benefit_metadata(
        update_data.get("benefit_type", benefit.benefit_type),
        update_data["metadata"] if "metadata" in update_data else benefit.details,
        update_data.get("effective_from", benefit.effective_from),
        update_data.get("effective_to", benefit.effective_to),
    )
    if errors:
        raise _invalid_payload(errors)

    if "employee_id" in update_data:
        await _ensure_employee(db, company_id, update_data["employee_id"])

    for field, value in update_data.items():
        if field == "metadata":
            benefit.details = value or {}
        else:
            setattr(benefit, field, value)
    benefit.modified_by = user.id

    await db.flush()

    logger.info("Updated benefit %s (%s)", benefit_id, ", ".join(sorted(update_data)))
    return {"data": {"id": str(benefit_id), "fields_updated": sorted(update_data)}}


@router.delete(
    "/{benefit_id}",
    summary="Delete benefit in kind",
)
async def delete_benefit(
    company_id: UUID,
    benefit_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.EMPLOYEE_WRITE)),
) -> dict:
    """Delete a benefit record."""
    benefit = await _get_benefit_or_404(db, company_id, benefit_id)
    await db.delete(benefit)
    await db.flush()

    logger.info("Deleted benefit %s", benefit_id)
    return {"data": {"id": str(benefit_id)}}

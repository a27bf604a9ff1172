"""
Benefit In Kind Pydantic Schemas

API request/response models for benefit-in-kind records, plus the
per-type checks on the valuation metadata.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

BenefitTypeLiteral = Literal["housing", "vehicle", "loan", "other"]


class BenefitInKindCreate(BaseModel):
    """Schema for creating a benefit record."""

    employee_id: UUID
    benefit_type: BenefitTypeLiteral
    effective_from: date
    effective_to: date | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class BenefitInKindUpdate(BaseModel):
    """Schema for updating a benefit record. Only supplied fields change."""

    employee_id: UUID | None = None
    benefit_type: BenefitTypeLiteral | None = None
    effective_from: date | None = None
    effective_to: date | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    metadata: dict[str, Any] | None = None


class BenefitInKindResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    employee_id: UUID
    employee_name: str | None = None
    employee_number: str | None = None
    benefit_type: str
    effective_from: date
    effective_to: date | None
    amount: Decimal | None
    metadata: dict[str, Any] = Field(validation_alias="details")
    created_at: datetime


class BenefitInKindListResponse(BaseModel):
    data: list[BenefitInKindResponse]


def _number(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def _non_negative(value: Any) -> bool:
    number = _number(value)
    return number is not None and number >= 0


def _positive(value: Any) -> bool:
    number = _number(value)
    return number is not None and number > 0


def validate_benefit_metadata(
    benefit_type: str | None,
    metadata: dict[str, Any] | None,
    effective_from: date | None = None,
    effective_to: date | None = None,
) -> list[str]:
    """
    Return the problems with a benefit's valuation inputs, empty when valid.

    Housing needs market_rent and employer_deductible_expense; vehicle needs a
    positive engine_cc and vehicle_age_years; loan needs principal_outstanding
    and employee_interest_rate. All figures must be non-negative numbers.
    """
    errors: list[str] = []
    metadata = metadata or {}

    if effective_from and effective_to and effective_to < effective_from:
        errors.append("effective_to must not be before effective_from")

    if benefit_type == "housing":
        if not _non_negative(metadata.get("market_rent")):
            errors.append("housing metadata.market_rent is required")
        if not _non_negative(metadata.get("employer_deductible_expense")):
            errors.append("housing metadata.employer_deductible_expense is required")
        if "employee_contribution" in metadata and not _non_negative(metadata["employee_contribution"]):
            errors.append("housing metadata.employee_contribution must be non-negative")

    elif benefit_type == "vehicle":
        if not _positive(metadata.get("engine_cc")):
            errors.append("vehicle metadata.engine_cc is required")
        if not _non_negative(metadata.get("vehicle_age_years")):
            errors.append("vehicle metadata.vehicle_age_years is required")

    elif benefit_type == "loan":
        if not _non_negative(metadata.get("principal_outstanding")):
            errors.append("loan metadata.principal_outstanding is required")
        if not _non_negative(metadata.get("employee_interest_rate")):
            errors.append("loan metadata.employee_interest_rate is required")

    return errors

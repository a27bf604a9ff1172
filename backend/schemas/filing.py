"""
Statutory Filing Pydantic Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FilingGenerateRequest(BaseModel):
    """Generate filings for a run; the latest run when omitted."""

    payroll_run_id: UUID | None = None


class FilingAmendRequest(BaseModel):
    """Corrected amount for a return, with the reason for the correction."""

    amount_due: Decimal = Field(..., ge=0, decimal_places=2)
    reason: str = Field(..., min_length=1, max_length=1000)


class FilingStatusUpdate(BaseModel):
    target_status: Literal["ready", "submitted", "paid"]
    submission_reference: str | None = Field(default=None, max_length=100)
    payment_reference: str | None = Field(default=None, max_length=100)


class FilingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_period_id: UUID
    payroll_run_id: UUID
    filing_type: str
    due_date: date
    status: str
    amount_due: Decimal
    penalty_amount: Decimal
    interest_amount: Decimal
    rule_version: str
    original_filing_id: UUID | None = None
    amended_reason: str | None = None
    submitted_at: datetime | None = None
    submission_reference: str | None = None
    paid_at: datetime | None = None
    payment_reference: str | None = None
    metadata: dict[str, Any] = Field(validation_alias="details")
    created_at: datetime


class FilingListResponse(BaseModel):
    data: list[FilingResponse]


class FilingEnvelope(BaseModel):
    data: FilingResponse

"""
Payroll Pydantic Schemas

API request/response models for payroll draft and run endpoints.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PayrollDraftCreate(BaseModel):
    """Schema for computing a draft payroll run."""

    period_year: int = Field(..., ge=2000, le=2100)
    period_month: int = Field(..., ge=1, le=12)
    run_label: str = Field(default="main", min_length=1, max_length=50)
    employee_ids: list[UUID] | None = Field(
        default=None,
        description="Restrict the run to these employees; all active employees when omitted",
    )


class PayrollRunStatusUpdate(BaseModel):
    """Schema for moving a run along the approval workflow."""

    target_status: Literal["draft", "validated", "approved", "locked", "paid"]


class PayrollPeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    period_year: int
    period_month: int
    starts_on: date
    ends_on: date


class PayrollRunItemResponse(BaseModel):
    """One employee line of a run."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    gross_pay: Decimal
    taxable_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    calc_snapshot: dict[str, Any]


class PayrollRunSummary(BaseModel):
    """Run totals without items, used in listings."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    run_label: str
    status: str
    period: PayrollPeriodResponse

    gross_total: Decimal
    deduction_total: Decimal
    net_total: Decimal
    sdl_total: Decimal
    paye_total: Decimal
    nssf_total: Decimal
    employee_count: int

    rule_set_id: UUID | None
    rule_version: str
    warnings: list[str]

    locked_at: datetime | None
    locked_by: UUID | None
    created_at: datetime


class PayrollRunResponse(PayrollRunSummary):
    """Run with its employee items."""

    items: list[PayrollRunItemResponse]


class PayrollRunListResponse(BaseModel):
    data: list[PayrollRunSummary]

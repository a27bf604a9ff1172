"""
Payment Batch Pydantic Schemas
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PaymentBatchCreate(BaseModel):
    """Schema for building a payment batch from a payroll run."""

    payroll_run_id: UUID
    provider: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Payment channel, e.g. bank_transfer or mpesa",
    )


class PaymentBatchItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_run_item_id: UUID
    employee_id: UUID
    amount: Decimal
    status: str


class PaymentBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_run_id: UUID
    provider: str
    status: str
    total_amount: Decimal
    item_count: int
    created_at: datetime


class PaymentBatchDetailResponse(PaymentBatchResponse):
    items: list[PaymentBatchItemResponse] = []


class PaymentBatchListResponse(BaseModel):
    data: list[PaymentBatchResponse]

"""Pydantic API Schemas for Mshahara Payroll."""

from backend.schemas.benefit_in_kind import (
    BenefitInKindCreate,
    BenefitInKindResponse,
    BenefitInKindUpdate,
)
from backend.schemas.filing import FilingGenerateRequest, FilingResponse
from backend.schemas.payroll import (
    PayrollDraftCreate,
    PayrollRunResponse,
    PayrollRunStatusUpdate,
    PayrollRunSummary,
)

__all__ = [
    "BenefitInKindCreate",
    "BenefitInKindResponse",
    "BenefitInKindUpdate",
    "FilingGenerateRequest",
    "FilingResponse",
    "PayrollDraftCreate",
    "PayrollRunResponse",
    "PayrollRunStatusUpdate",
    "PayrollRunSummary",
]

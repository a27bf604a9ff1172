"""API v1 Route modules."""

from backend.routers.v1 import benefits_in_kind, filings, payroll

__all__ = ["benefits_in_kind", "filings", "payroll"]

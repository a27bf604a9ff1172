"""SQLAlchemy ORM Models for Mshahara."""

from backend.models.base import AuditMixin, Base, TimestampMixin
from backend.models.benefit_in_kind import BenefitInKind
from backend.models.company import Company
from backend.models.employee import Employee, EmployeeContract
from backend.models.filing import StatutoryFiling
from backend.models.idempotency import IdempotencyRequest
from backend.models.pay_inputs import LeaveRequest, RecurringDeduction, RecurringEarning, Timesheet
from backend.models.payment import PaymentBatch, PaymentBatchItem
from backend.models.payroll_run import PayrollPeriod, PayrollRun, PayrollRunItem
from backend.models.statutory_rule import StatutoryRuleEntry, StatutoryRuleSet

__all__ = [
    "Base",
    "TimestampMixin",
    "AuditMixin",
    "Company",
    "Employee",
    "EmployeeContract",
    "RecurringEarning",
    "RecurringDeduction",
    "Timesheet",
    "LeaveRequest",
    "BenefitInKind",
    "StatutoryRuleSet",
    "StatutoryRuleEntry",
    "IdempotencyRequest",
    "PayrollPeriod",
    "PayrollRun",
    "PayrollRunItem",
    "StatutoryFiling",
    "PaymentBatch",
    "PaymentBatchItem",
]

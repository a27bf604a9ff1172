"""
Test Factories

Helper functions for creating model instances in tests.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from backend.models.benefit_in_kind import BenefitInKind
from backend.models.company import Company
from backend.models.employee import Employee, EmployeeContract
from backend.models.pay_inputs import LeaveRequest, RecurringDeduction, RecurringEarning, Timesheet
from backend.models.payroll_run import PayrollPeriod, PayrollRun, PayrollRunItem
from backend.models.statutory_rule import StatutoryRuleEntry, StatutoryRuleSet


def make_company(**overrides) -> Company:
    """Create a Company instance with sensible defaults."""
    defaults = {
        "id": uuid4(),
        "name": "Test Traders Ltd",
        "tin": "100-200-300",
        "country_code": "TZ",
        "jurisdiction": "mainland",
    }
    defaults.update(overrides)
    return Company(**defaults)


def make_employee(company_id, **overrides) -> Employee:
    """Create an Employee instance with sensible defaults."""
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "employee_number": f"EMP-{uuid4().hex[:6]}",
        "first_name": "Asha",
        "last_name": "Mollel",
        "hire_date": date(2024, 1, 1),
        "is_active": True,
        "tax_residency": "resident",
        "is_primary_employment": True,
        "is_non_full_time_director": False,
    }
    defaults.update(overrides)
    return Employee(**defaults)


def make_contract(company_id, employee_id, **overrides) -> EmployeeContract:
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "employee_id": employee_id,
        "basic_salary": Decimal("1000000.00"),
        "effective_from": date(2024, 1, 1),
        "effective_to": None,
    }
    defaults.update(overrides)
    return EmployeeContract(**defaults)


def make_earning(company_id, employee_id, **overrides) -> RecurringEarning:
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "employee_id": employee_id,
        "code": "TRANSPORT",
        "amount": Decimal("100000.00"),
        "effective_from": date(2024, 1, 1),
        "effective_to": None,
    }
    defaults.update(overrides)
    return RecurringEarning(**defaults)


def make_deduction(company_id, employee_id, **overrides) -> RecurringDeduction:
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "employee_id": employee_id,
        "code": "UNION_DUES",
        "amount": Decimal("10000.00"),
        "effective_from": date(2024, 1, 1),
        "effective_to": None,
    }
    defaults.update(overrides)
    return RecurringDeduction(**defaults)


def make_timesheet(company_id, employee_id, **overrides) -> Timesheet:
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "employee_id": employee_id,
        "work_date": date(2025, 6, 2),
        "regular_hours": Decimal("8"),
        "overtime_hours": Decimal("0"),
    }
    defaults.update(overrides)
    return Timesheet(**defaults)


def make_leave(company_id, employee_id, **overrides) -> LeaveRequest:
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "employee_id": employee_id,
        "leave_code": "UNPAID",
        "status": "approved",
        "starts_on": date(2025, 6, 9),
        "ends_on": date(2025, 6, 10),
        "days_requested": Decimal("2"),
    }
    defaults.update(overrides)
    return LeaveRequest(**defaults)


def make_benefit(company_id, employee_id, **overrides) -> BenefitInKind:
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "employee_id": employee_id,
        "benefit_type": "other",
        "amount": Decimal("20000.00"),
        "details": {},
        "effective_from": date(2024, 1, 1),
        "effective_to": None,
    }
    defaults.update(overrides)
    return BenefitInKind(**defaults)


def make_rule_set(company_id=None, entries: dict | None = None, **overrides) -> StatutoryRuleSet:
    """Create a rule set; ``entries`` maps override keys to JSON values."""
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "country_code": "TZ",
        "jurisdiction": "mainland",
        "rule_code": "TZ_PAYROLL_BASELINE",
        "version": "2025.1",
        "effective_from": date(2025, 1, 1),
        "effective_to": None,
    }
    defaults.update(overrides)
    rule_set = StatutoryRuleSet(**defaults)
    rule_set.entries = [StatutoryRuleEntry(key=key, value=value) for key, value in (entries or {}).items()]
    return rule_set


def make_period(company_id, year: int = 2025, month: int = 6, **overrides) -> PayrollPeriod:
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "period_year": year,
        "period_month": month,
        "starts_on": date(year, month, 1),
        "ends_on": date(year, month, 30),
    }
    defaults.update(overrides)
    return PayrollPeriod(**defaults)


def make_payroll_run(company_id, payroll_period_id, **overrides) -> PayrollRun:
    """Create a PayrollRun with totals but no items."""
    defaults = {
        "id": uuid4(),
        "company_id": company_id,
        "payroll_period_id": payroll_period_id,
        "run_label": "main",
        "status": "draft",
        "gross_total": Decimal("12000000.00"),
        "deduction_total": Decimal("3000000.00"),
        "net_total": Decimal("9000000.00"),
        "sdl_total": Decimal("420000.00"),
        "paye_total": Decimal("1800000.00"),
        "nssf_total": Decimal("1200000.00"),
        "employee_count": 12,
        "rule_set_id": None,
        "rule_version": "fallback-default",
        "warnings": [],
    }
    defaults.update(overrides)
    return PayrollRun(**defaults)


def make_run_item(payroll_run_id, employee_id, net_pay: Decimal = Decimal("750000.00"), **overrides) -> PayrollRunItem:
    defaults = {
        "id": uuid4(),
        "payroll_run_id": payroll_run_id,
        "employee_id": employee_id,
        "gross_pay": Decimal("1000000.00"),
        "taxable_pay": Decimal("900000.00"),
        "total_deductions": Decimal("1000000.00") - net_pay,
        "net_pay": net_pay,
        "calc_snapshot": {},
    }
    defaults.update(overrides)
    return PayrollRunItem(**defaults)

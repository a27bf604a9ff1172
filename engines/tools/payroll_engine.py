"""
Payroll Engine MCP Tools

Statutory payroll calculations exposed as MCP tools.
"""

from decimal import Decimal
from typing import Any

from fastmcp import FastMCP

from engines.schemas.payroll import EmployeePayrollInput, EmployeeTaxProfile
from engines.services.payroll_engine import compute_payroll_draft as run_payroll_engine
from engines.services.rule_overrides import resolve_rule_config
from engines.services.statutory import (
    calculate_housing_bik,
    calculate_loan_bik,
    calculate_paye as paye_for_profile,
    calculate_vehicle_bik,
)

# Initialize MCP server (started from server.py)
mcp = FastMCP("Mshahara Payroll Engine")


def _floats(value: Any) -> Any:
    """Convert Decimals in nested dumps to floats for JSON transport."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {key: _floats(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_floats(item) for item in value]
    return value


@mcp.tool()
async def compute_payroll_draft(
    employees: list[dict],
    rule_overrides: dict | None = None,
) -> dict:
    """
    Compute a monthly payroll draft for a batch of employees.

    Args:
        employees: Employee inputs (employee_id, basic_salary, allowance_total,
            overtime_pay, arrears_pay, bonus_pay, unpaid_leave_days,
            working_days_in_period, loan_repayment, manual_deduction_total,
            tax_profile, benefits_in_kind)
        rule_overrides: Statutory rule entries keyed like the persisted rule
            set (SDL_RATE, PAYE_BANDS_RESIDENT_PRIMARY, ...). Malformed entries
            keep the default value.

    Returns:
        Totals, SDL/PAYE/NSSF statutory totals, warnings and per-employee items
    """
    rules = resolve_rule_config(rule_overrides or {})
    inputs = [EmployeePayrollInput.model_validate(employee) for employee in employees]
    result = run_payroll_engine(inputs, rules)
    return _floats(result.model_dump())


@mcp.tool()
async def calculate_paye(
    taxable_pay: float,
    tax_residency: str = "resident",
    is_primary_employment: bool = True,
    is_non_full_time_director: bool = False,
    rule_overrides: dict | None = None,
) -> dict:
    """
    Calculate monthly PAYE for one employee.

    Non-full-time directors, non-residents and secondary employment are
    taxed at flat rates (in that order of precedence); everyone else uses
    the resident progressive schedule.

    Example:
        Resident primary employee with taxable pay 500,000 TZS:
        (500,000 - 270,000.01) x 8% = 18,400.00
    """
    rules = resolve_rule_config(rule_overrides or {})
    profile = EmployeeTaxProfile(
        tax_residency=tax_residency,
        is_primary_employment=is_primary_employment,
        is_non_full_time_director=is_non_full_time_director,
    )
    paye = paye_for_profile(Decimal(str(taxable_pay)), profile, rules)
    return {
        "taxable_pay": taxable_pay,
        "tax_residency": profile.tax_residency,
        "paye": float(paye),
    }


@mcp.tool()
async def calculate_benefits_in_kind(
    reference_income: float = 0.0,
    market_rent: float | None = None,
    employer_deductible_expense: float = 0.0,
    employee_contribution: float = 0.0,
    engine_cc: float | None = None,
    vehicle_age_years: float = 0.0,
    employer_claims_deduction: bool = True,
    principal_outstanding: float | None = None,
    employee_interest_rate: float = 0.0,
    rule_overrides: dict | None = None,
) -> dict:
    """
    Value housing, motor vehicle and loan benefits for one month.

    A benefit is only valued when its leading argument is supplied
    (market_rent, engine_cc, principal_outstanding).
    """
    rules = resolve_rule_config(rule_overrides or {})
    result: dict[str, float | None] = {"housing": None, "vehicle": None, "loan": None}

    if market_rent is not None:
        result["housing"] = float(
            calculate_housing_bik(
                market_rent=Decimal(str(market_rent)),
                employer_deductible_expense=Decimal(str(employer_deductible_expense)),
                employee_contribution=Decimal(str(employee_contribution)),
                reference_income=Decimal(str(reference_income)),
                rules=rules,
            )
        )
    if engine_cc is not None:
        result["vehicle"] = float(
            calculate_vehicle_bik(
                engine_cc=Decimal(str(engine_cc)),
                vehicle_age_years=Decimal(str(vehicle_age_years)),
                employer_claims_deduction=employer_claims_deduction,
                rules=rules,
            )
        )
    if principal_outstanding is not None:
        result["loan"] = float(
            calculate_loan_bik(
                principal_outstanding=Decimal(str(principal_outstanding)),
                employee_interest_rate=Decimal(str(employee_interest_rate)),
                rules=rules,
            )
        )

    result["total"] = sum(value for value in result.values() if value is not None)
    return result

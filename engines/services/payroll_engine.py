"""
Payroll Computation Engine

Pure monthly payroll computation: proration, gross pay assembly,
benefit-in-kind valuation, PAYE/NSSF per employee and SDL over the batch.

Rounding happens at the same points as the published payroll register:
proration to 6 places, every pay component and subtotal to the cent.
"""

from collections.abc import Iterable
from decimal import Decimal

from engines.schemas.payroll import (
    EmployeePayrollInput,
    PayrollComputationResult,
    PayrollItemResult,
    RuleConfig,
    StatutoryTotals,
)
from engines.services.statutory import (
    ZERO,
    calculate_housing_bik,
    calculate_loan_bik,
    calculate_nssf_employee_deduction,
    calculate_paye,
    calculate_sdl,
    calculate_vehicle_bik,
    non_negative,
    round2,
    round6,
)

DEFAULT_WORKING_DAYS = Decimal("22")

WARNING_LEAVE_CAPPED = "Unpaid leave days exceeded working days and were capped for proration."
WARNING_NET_PAY_FLOORED = "Net pay was negative before floor-to-zero adjustment."
WARNING_ZERO_GROSS = "Gross pay is zero. Check contract, earnings, leave and attendance inputs."


def calculate_proration_factor(working_days: Decimal, unpaid_leave_days: Decimal) -> Decimal:
    """Share of the month paid, in [0, 1]; 1 when there are no working days."""
    if working_days <= 0:
        return Decimal("1")
    ratio = (working_days - unpaid_leave_days) / working_days
    return round6(min(Decimal("1"), max(ZERO, ratio)))


def compute_employee_item(employee: EmployeePayrollInput, rules: RuleConfig) -> PayrollItemResult:
    """Compute one employee's payroll line."""
    warnings: list[str] = []

    working_days = non_negative(
        employee.working_days_in_period
        if employee.working_days_in_period is not None
        else DEFAULT_WORKING_DAYS
    )
    unpaid_leave_days = non_negative(employee.unpaid_leave_days)

    if unpaid_leave_days > working_days:
        warnings.append(WARNING_LEAVE_CAPPED)

    proration_factor = calculate_proration_factor(working_days, unpaid_leave_days)

    prorated_basic_pay = round2(non_negative(employee.basic_salary) * proration_factor)
    allowance_pay = round2(non_negative(employee.allowance_total))
    overtime_pay = round2(non_negative(employee.overtime_pay))
    arrears_pay = round2(non_negative(employee.arrears_pay))
    bonus_pay = round2(non_negative(employee.bonus_pay))

    gross_pay = round2(prorated_basic_pay + allowance_pay + overtime_pay + arrears_pay + bonus_pay)

    bik = employee.benefits_in_kind
    bik_housing = bik_vehicle = bik_loan = round2(ZERO)
    if bik is not None and bik.housing is not None:
        bik_housing = calculate_housing_bik(
            market_rent=bik.housing.market_rent,
            employer_deductible_expense=bik.housing.employer_deductible_expense,
            employee_contribution=bik.housing.employee_contribution,
            reference_income=gross_pay,
            rules=rules,
        )
    if bik is not None and bik.vehicle is not None:
        bik_vehicle = calculate_vehicle_bik(
            engine_cc=bik.vehicle.engine_cc,
            vehicle_age_years=bik.vehicle.vehicle_age_years,
            employer_claims_deduction=bik.vehicle.employer_claims_deduction,
            rules=rules,
        )
    if bik is not None and bik.loan is not None:
        bik_loan = calculate_loan_bik(
            principal_outstanding=bik.loan.principal_outstanding,
            employee_interest_rate=bik.loan.employee_interest_rate,
            rules=rules,
        )
    bik_other = round2(non_negative(bik.other_taxable_value if bik is not None else None))

    taxable_pay = round2(gross_pay + bik_housing + bik_vehicle + bik_loan + bik_other)

    paye = calculate_paye(taxable_pay, employee.tax_profile, rules)
    nssf = calculate_nssf_employee_deduction(prorated_basic_pay, rules)

    statutory_deductions = round2(paye + nssf)
    loan_deductions = round2(non_negative(employee.loan_repayment))
    manual_deductions = round2(non_negative(employee.manual_deduction_total))
    total_deductions = round2(statutory_deductions + loan_deductions + manual_deductions)

    raw_net_pay = round2(gross_pay - total_deductions)
    net_pay = max(round2(ZERO), raw_net_pay)

    if raw_net_pay < 0:
        warnings.append(WARNING_NET_PAY_FLOORED)
    if gross_pay == 0:
        warnings.append(WARNING_ZERO_GROSS)

    return PayrollItemResult(
        employee_id=employee.employee_id,
        proration_factor=proration_factor,
        prorated_basic_pay=prorated_basic_pay,
        allowance_pay=allowance_pay,
        overtime_pay=overtime_pay,
        arrears_pay=arrears_pay,
        bonus_pay=bonus_pay,
        bik_housing_taxable=bik_housing,
        bik_vehicle_taxable=bik_vehicle,
        bik_loan_taxable=bik_loan,
        bik_other_taxable=bik_other,
        gross_pay=gross_pay,
        taxable_pay=taxable_pay,
        statutory_deductions=statutory_deductions,
        paye_deduction=paye,
        nssf_deduction=nssf,
        loan_deductions=loan_deductions,
        manual_deductions=manual_deductions,
        total_deductions=total_deductions,
        net_pay=net_pay,
        warnings=tuple(warnings),
    )


def compute_payroll_draft(
    employees: Iterable[EmployeePayrollInput],
    rules: RuleConfig,
) -> PayrollComputationResult:
    """
    Compute a payroll draft for a batch of employees.

    SDL is a population-level levy: it is computed once over the batch
    gross total and headcount, after all items are known. Never raises on
    numeric input; suspicious values surface as warnings instead.
    """
    items = [compute_employee_item(employee, rules) for employee in employees]

    warnings = [
        f"Employee {item.employee_id}: {' '.join(item.warnings)}"
        for item in items
        if item.warnings
    ]

    gross_total = round2(sum((item.gross_pay for item in items), ZERO))
    deduction_total = round2(sum((item.total_deductions for item in items), ZERO))
    net_total = round2(sum((item.net_pay for item in items), ZERO))
    paye_total = round2(sum((item.paye_deduction for item in items), ZERO))
    nssf_total = round2(sum((item.nssf_deduction for item in items), ZERO))

    sdl = calculate_sdl(gross_total, len(items), rules)

    return PayrollComputationResult(
        gross_total=gross_total,
        deduction_total=deduction_total,
        net_total=net_total,
        statutory=StatutoryTotals(sdl=sdl, paye_total=paye_total, nssf_total=nssf_total),
        warnings=tuple(warnings),
        items=tuple(items),
    )

"""
Payroll Input Assembly

Turns stored contracts, recurring earnings/deductions, timesheets, unpaid
leave and benefit records into engine inputs for one calendar month.
"""

import calendar
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.models.benefit_in_kind import BenefitInKind, BenefitType
from backend.models.employee import Employee, EmployeeContract
from backend.models.pay_inputs import (
    UNPAID_LEAVE_CODE,
    DeductionCode,
    EarningCode,
    LeaveRequest,
    LeaveStatus,
    RecurringDeduction,
    RecurringEarning,
    Timesheet,
)
from engines.schemas.payroll import (
    BenefitsInKindInput,
    EmployeePayrollInput,
    EmployeeTaxProfile,
    HousingBenefitInput,
    LoanBenefitInput,
    VehicleBenefitInput,
)
from engines.services.statutory import ZERO, round2

IGNORED_DEDUCTION_CODES = frozenset({DeductionCode.PAYE.value, DeductionCode.NSSF_EMPLOYEE.value})


@dataclass(frozen=True)
class PayPeriod:
    year: int
    month: int

    @property
    def starts_on(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def ends_on(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])


def count_business_days(starts_on: date, ends_on: date) -> int:
    """Monday to Friday days in the inclusive range."""
    count = 0
    current = starts_on
    while current <= ends_on:
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


def is_effective_in_period(
    effective_from: date,
    effective_to: date | None,
    period_start: date,
    period_end: date,
) -> bool:
    """True when the effective range overlaps the period."""
    return effective_from <= period_end and (effective_to is None or effective_to >= period_start)


def _to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = Decimal(str(value))
    except ArithmeticError:
        return default
    return number if number.is_finite() else default


def _housing_input(row: BenefitInKind) -> HousingBenefitInput:
    details = row.details or {}
    return HousingBenefitInput(
        market_rent=_to_decimal(details.get("market_rent", row.amount)),
        employer_deductible_expense=_to_decimal(details.get("employer_deductible_expense", row.amount)),
        employee_contribution=_to_decimal(details.get("employee_contribution")),
    )


def _vehicle_input(row: BenefitInKind) -> VehicleBenefitInput:
    details = row.details or {}
    return VehicleBenefitInput(
        engine_cc=_to_decimal(details.get("engine_cc")),
        vehicle_age_years=_to_decimal(details.get("vehicle_age_years")),
        # Only an explicit false turns the benefit off
        employer_claims_deduction=details.get("employer_claims_deduction") is not False,
    )


def _loan_input(row: BenefitInKind) -> LoanBenefitInput:
    details = row.details or {}
    return LoanBenefitInput(
        principal_outstanding=_to_decimal(details.get("principal_outstanding", row.amount)),
        employee_interest_rate=_to_decimal(details.get("employee_interest_rate")),
    )


def build_benefits_input(rows: Sequence[BenefitInKind]) -> BenefitsInKindInput:
    """
    Collapse one employee's effective benefit rows.

    The most recently created housing, vehicle and loan record is used;
    every ``other`` record is summed.
    """
    newest_first = sorted(rows, key=lambda row: row.created_at, reverse=True)
    latest: dict[str, BenefitInKind] = {}
    other_total = ZERO
    for row in newest_first:
        if row.benefit_type == BenefitType.OTHER.value:
            other_total += _to_decimal(row.amount)
        else:
            latest.setdefault(row.benefit_type, row)

    housing = latest.get(BenefitType.HOUSING.value)
    vehicle = latest.get(BenefitType.VEHICLE.value)
    loan = latest.get(BenefitType.LOAN.value)
    return BenefitsInKindInput(
        housing=_housing_input(housing) if housing is not None else None,
        vehicle=_vehicle_input(vehicle) if vehicle is not None else None,
        loan=_loan_input(loan) if loan is not None else None,
        other_taxable_value=round2(other_total),
    )


def build_payroll_inputs(
    period: PayPeriod,
    employees: Sequence[Employee],
    contracts: Iterable[EmployeeContract],
    earnings: Iterable[RecurringEarning],
    deductions: Iterable[RecurringDeduction],
    timesheets: Iterable[Timesheet],
    unpaid_leave: Iterable[LeaveRequest],
    benefits: Iterable[BenefitInKind],
) -> list[EmployeePayrollInput]:
    """
    Build engine inputs for ``employees`` over ``period``.

    Rows are expected to be pre-filtered to the company; effective-date
    filtering happens here. Overtime pay uses the daily rate over a standard
    day: hours x basic / working days / hours per day x multiplier.
    """
    settings = get_settings()
    starts_on, ends_on = period.starts_on, period.ends_on
    working_days = count_business_days(starts_on, ends_on)

    def effective(row: Any) -> bool:
        return is_effective_in_period(row.effective_from, row.effective_to, starts_on, ends_on)

    latest_contract: dict[UUID, EmployeeContract] = {}
    for contract in sorted(filter(effective, contracts), key=lambda row: row.effective_from):
        latest_contract[contract.employee_id] = contract

    allowance: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    bonus: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    arrears: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for earning in filter(effective, earnings):
        if earning.code == EarningCode.BONUS.value:
            bonus[earning.employee_id] += earning.amount
        elif earning.code == EarningCode.ARREARS.value:
            arrears[earning.employee_id] += earning.amount
        else:
            allowance[earning.employee_id] += earning.amount

    loan_repayment: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    manual: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for deduction in filter(effective, deductions):
        if deduction.code == DeductionCode.LOAN_ADVANCE.value:
            loan_repayment[deduction.employee_id] += deduction.amount
        elif deduction.code not in IGNORED_DEDUCTION_CODES:
            manual[deduction.employee_id] += deduction.amount

    overtime_hours: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for sheet in timesheets:
        if starts_on <= sheet.work_date <= ends_on:
            overtime_hours[sheet.employee_id] += sheet.overtime_hours or ZERO

    unpaid_days: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for leave in unpaid_leave:
        if (
            leave.leave_code == UNPAID_LEAVE_CODE
            and leave.status == LeaveStatus.APPROVED.value
            and leave.starts_on <= ends_on
            and leave.ends_on >= starts_on
        ):
            unpaid_days[leave.employee_id] += leave.days_requested or ZERO

    benefit_rows: dict[UUID, list[BenefitInKind]] = defaultdict(list)
    for benefit in filter(effective, benefits):
        benefit_rows[benefit.employee_id].append(benefit)

    hours_per_day = Decimal(settings.standard_hours_per_day)
    multiplier = Decimal(str(settings.overtime_multiplier))

    inputs: list[EmployeePayrollInput] = []
    for employee in employees:
        contract = latest_contract.get(employee.id)
        basic_salary = contract.basic_salary if contract is not None else ZERO

        hourly_rate = basic_salary / working_days / hours_per_day if working_days > 0 else ZERO
        overtime_pay = round2(overtime_hours[employee.id] * hourly_rate * multiplier)

        inputs.append(
            EmployeePayrollInput(
                employee_id=str(employee.id),
                basic_salary=basic_salary,
                allowance_total=round2(allowance[employee.id]),
                overtime_pay=overtime_pay,
                arrears_pay=round2(arrears[employee.id]),
                bonus_pay=round2(bonus[employee.id]),
                unpaid_leave_days=unpaid_days[employee.id],
                working_days_in_period=Decimal(working_days),
                loan_repayment=round2(loan_repayment[employee.id]),
                manual_deduction_total=round2(manual[employee.id]),
                tax_profile=EmployeeTaxProfile(
                    tax_residency="non_resident" if employee.tax_residency == "non_resident" else "resident",
                    is_primary_employment=employee.is_primary_employment,
                    is_non_full_time_director=employee.is_non_full_time_director,
                ),
                benefits_in_kind=build_benefits_input(benefit_rows[employee.id]),
            )
        )
    return inputs


async def load_active_employees(
    db: AsyncSession,
    company_id: UUID,
    employee_ids: Sequence[UUID] | None = None,
) -> list[Employee]:
    query = select(Employee).where(Employee.company_id == company_id, Employee.is_active.is_(True))
    if employee_ids:
        query = query.where(Employee.id.in_(employee_ids))
    result = await db.execute(query.order_by(Employee.created_at, Employee.id))
    return list(result.scalars().all())


async def load_payroll_inputs(
    db: AsyncSession,
    company_id: UUID,
    period: PayPeriod,
    employees: Sequence[Employee],
) -> list[EmployeePayrollInput]:
    """Query every input table for ``employees`` and build engine inputs."""
    employee_ids = [employee.id for employee in employees]
    if not employee_ids:
        return []

    async def rows(model: Any, *criteria: Any) -> list[Any]:
        result = await db.execute(
            select(model).where(
                model.company_id == company_id,
                model.employee_id.in_(employee_ids),
                *criteria,
            )
        )
        return list(result.scalars().all())

    contracts = await rows(EmployeeContract)
    earnings = await rows(RecurringEarning)
    deductions = await rows(RecurringDeduction)
    timesheets = await rows(
        Timesheet,
        Timesheet.work_date >= period.starts_on,
        Timesheet.work_date <= period.ends_on,
    )
    unpaid_leave = await rows(
        LeaveRequest,
        LeaveRequest.leave_code == UNPAID_LEAVE_CODE,
        LeaveRequest.status == LeaveStatus.APPROVED.value,
        LeaveRequest.starts_on <= period.ends_on,
        LeaveRequest.ends_on >= period.starts_on,
    )
    benefits = await rows(BenefitInKind)

    return build_payroll_inputs(
        period,
        employees,
        contracts,
        earnings,
        deductions,
        timesheets,
        unpaid_leave,
        benefits,
    )

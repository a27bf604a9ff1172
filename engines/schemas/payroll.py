"""
Payroll Engine Schemas

Rule configuration and input/output models for the monthly payroll
computation under Tanzanian statutory rules (PAYE, NSSF, SDL, BIK).
"""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Largest gap tolerated between one band's upper bound and the next band's
# lower bound (the published schedule is written as 270,000 / 270,000.01).
BAND_GAP_TOLERANCE = Decimal("0.01")


class ProgressiveBand(BaseModel):
    """Marginal income tax band: lower bound inclusive, upper bound open or unbounded."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    lower: Decimal = Field(..., alias="from", description="Lower bound of the band")
    upper: Decimal | None = Field(
        default=None,
        alias="to",
        description="Upper bound of the band (None for the top band)",
    )
    rate: Decimal = Field(..., description="Marginal rate applied inside the band")


class VehicleBenefitBand(BaseModel):
    """Flat annual motor vehicle benefit for an engine size / vehicle age bracket."""

    model_config = ConfigDict(frozen=True)

    min_engine_cc: Decimal | None = None
    max_engine_cc: Decimal | None = None
    min_age_years: Decimal | None = None
    max_age_years: Decimal | None = None
    amount: Decimal = Field(..., description="Annual benefit amount (TZS)")

    def matches(self, engine_cc: Decimal, vehicle_age_years: Decimal) -> bool:
        if self.min_engine_cc is not None and engine_cc < self.min_engine_cc:
            return False
        if self.max_engine_cc is not None and engine_cc > self.max_engine_cc:
            return False
        if self.max_age_years is not None and vehicle_age_years > self.max_age_years:
            return False
        if self.min_age_years is not None and vehicle_age_years < self.min_age_years:
            return False
        return True


def bands_are_contiguous(bands: tuple[ProgressiveBand, ...] | list[ProgressiveBand]) -> bool:
    """
    Check the progressive schedule shape.

    Bands must be sorted by lower bound, must not overlap, must not leave a gap
    wider than one cent, and only the final band may be unbounded.
    """
    if not bands:
        return False
    for current, following in zip(bands, bands[1:]):
        if current.upper is None:
            return False
        if current.upper < current.lower:
            return False
        gap = following.lower - current.upper
        if gap < 0 or gap > BAND_GAP_TOLERANCE:
            return False
    return bands[-1].upper is None


class RuleConfig(BaseModel):
    """
    Immutable snapshot of statutory payroll parameters.

    Always passed explicitly to the calculators and the engine. A new
    configuration is built with ``model_copy(update=...)`` or by
    ``engines.services.rule_overrides.resolve_rule_config``.
    """

    model_config = ConfigDict(frozen=True)

    sdl_rate: Decimal = Field(..., description="Skills Development Levy rate on gross emoluments")
    sdl_employee_threshold: Decimal = Field(..., description="Headcount at which SDL applies")
    non_resident_paye_rate: Decimal
    director_non_full_time_rate: Decimal
    secondary_employment_rate: Decimal
    nssf_employee_rate: Decimal
    bik_housing_income_rate: Decimal
    bik_loan_statutory_interest_rate: Decimal
    filing_penalty_daily_rate: Decimal
    paye_bands_resident_primary: tuple[ProgressiveBand, ...]
    motor_vehicle_benefit_bands: tuple[VehicleBenefitBand, ...]

    @model_validator(mode="after")
    def _check_bands(self) -> "RuleConfig":
        if not bands_are_contiguous(self.paye_bands_resident_primary):
            raise ValueError(
                "PAYE bands must be sorted, contiguous and end with an unbounded band"
            )
        return self


class EmployeeTaxProfile(BaseModel):
    """Tax residency and employment profile driving PAYE precedence."""

    tax_residency: Literal["resident", "non_resident"] = "resident"
    is_primary_employment: bool = True
    is_non_full_time_director: bool = False


class HousingBenefitInput(BaseModel):
    market_rent: Decimal = Decimal("0")
    employer_deductible_expense: Decimal = Decimal("0")
    employee_contribution: Decimal = Decimal("0")


class VehicleBenefitInput(BaseModel):
    engine_cc: Decimal = Decimal("0")
    vehicle_age_years: Decimal = Decimal("0")
    employer_claims_deduction: bool = True


class LoanBenefitInput(BaseModel):
    principal_outstanding: Decimal = Decimal("0")
    employee_interest_rate: Decimal = Decimal("0")


class BenefitsInKindInput(BaseModel):
    """Non-cash benefits for one employee in one period."""

    housing: HousingBenefitInput | None = None
    vehicle: VehicleBenefitInput | None = None
    loan: LoanBenefitInput | None = None
    other_taxable_value: Decimal | None = None


class EmployeePayrollInput(BaseModel):
    """
    Per-employee input for one payroll computation.

    Numeric fields are not range-checked here: the engine clamps negatives
    to zero and reports suspicious combinations as warnings.
    """

    employee_id: str = Field(..., description="Employee identifier")
    basic_salary: Decimal = Field(..., description="Monthly contractual basic salary")
    allowance_total: Decimal | None = None
    overtime_pay: Decimal | None = None
    arrears_pay: Decimal | None = None
    bonus_pay: Decimal | None = None
    unpaid_leave_days: Decimal | None = None
    working_days_in_period: Decimal | None = Field(
        default=None,
        description="Working days in the period (defaults to 22)",
    )
    loan_repayment: Decimal | None = None
    manual_deduction_total: Decimal | None = None
    tax_profile: EmployeeTaxProfile = Field(default_factory=EmployeeTaxProfile)
    benefits_in_kind: BenefitsInKindInput | None = None


class PayrollItemResult(BaseModel):
    """Computed payroll line for one employee."""

    model_config = ConfigDict(frozen=True)

    employee_id: str
    proration_factor: Decimal
    prorated_basic_pay: Decimal
    allowance_pay: Decimal
    overtime_pay: Decimal
    arrears_pay: Decimal
    bonus_pay: Decimal
    bik_housing_taxable: Decimal
    bik_vehicle_taxable: Decimal
    bik_loan_taxable: Decimal
    bik_other_taxable: Decimal
    gross_pay: Decimal
    taxable_pay: Decimal
    statutory_deductions: Decimal
    paye_deduction: Decimal
    nssf_deduction: Decimal
    loan_deductions: Decimal
    manual_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    warnings: tuple[str, ...] = ()


class StatutoryTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    sdl: Decimal
    paye_total: Decimal
    nssf_total: Decimal


class PayrollComputationResult(BaseModel):
    """Aggregate result of one payroll computation call."""

    model_config = ConfigDict(frozen=True)

    gross_total: Decimal
    deduction_total: Decimal
    net_total: Decimal
    statutory: StatutoryTotals
    warnings: tuple[str, ...] = ()
    items: tuple[PayrollItemResult, ...] = ()

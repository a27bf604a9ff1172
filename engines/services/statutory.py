"""
Statutory Calculator

Pure calculation logic for Tanzanian payroll statutory items:
benefit-in-kind valuation (housing, motor vehicle, concessional loan),
PAYE, NSSF employee contribution, SDL and late filing penalties.

Every function takes the RuleConfig explicitly and rounds half-up to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal

from engines.schemas.payroll import (
    EmployeeTaxProfile,
    ProgressiveBand,
    RuleConfig,
    VehicleBenefitBand,
)

ZERO = Decimal("0")
CENT = Decimal("0.01")
MICRO = Decimal("0.000001")
MONTHS_PER_YEAR = Decimal("12")


def round2(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round6(value: Decimal) -> Decimal:
    return value.quantize(MICRO, rounding=ROUND_HALF_UP)


def non_negative(value: Decimal | int | None) -> Decimal:
    """Clamp missing, non-finite or negative values to zero."""
    if value is None:
        return ZERO
    value = Decimal(value)
    if not value.is_finite():
        return ZERO
    return max(ZERO, value)


# Resident primary employment monthly schedule (TZS)
DEFAULT_RESIDENT_BANDS: tuple[ProgressiveBand, ...] = (
    ProgressiveBand(lower=Decimal("0"), upper=Decimal("270000"), rate=Decimal("0")),
    ProgressiveBand(lower=Decimal("270000.01"), upper=Decimal("520000"), rate=Decimal("0.08")),
    ProgressiveBand(lower=Decimal("520000.01"), upper=Decimal("760000"), rate=Decimal("0.20")),
    ProgressiveBand(lower=Decimal("760000.01"), upper=Decimal("1000000"), rate=Decimal("0.25")),
    ProgressiveBand(lower=Decimal("1000000.01"), upper=None, rate=Decimal("0.30")),
)

# Annual motor vehicle benefit by engine size and age; first match wins
DEFAULT_VEHICLE_BANDS: tuple[VehicleBenefitBand, ...] = (
    VehicleBenefitBand(max_engine_cc=Decimal("1000"), max_age_years=Decimal("5"), amount=Decimal("250000")),
    VehicleBenefitBand(max_engine_cc=Decimal("1000"), min_age_years=Decimal("6"), amount=Decimal("125000")),
    VehicleBenefitBand(
        min_engine_cc=Decimal("1001"), max_engine_cc=Decimal("2000"),
        max_age_years=Decimal("5"), amount=Decimal("500000"),
    ),
    VehicleBenefitBand(
        min_engine_cc=Decimal("1001"), max_engine_cc=Decimal("2000"),
        min_age_years=Decimal("6"), amount=Decimal("250000"),
    ),
    VehicleBenefitBand(
        min_engine_cc=Decimal("2001"), max_engine_cc=Decimal("3000"),
        max_age_years=Decimal("5"), amount=Decimal("1000000"),
    ),
    VehicleBenefitBand(
        min_engine_cc=Decimal("2001"), max_engine_cc=Decimal("3000"),
        min_age_years=Decimal("6"), amount=Decimal("500000"),
    ),
    VehicleBenefitBand(min_engine_cc=Decimal("3001"), max_age_years=Decimal("5"), amount=Decimal("1500000")),
    VehicleBenefitBand(min_engine_cc=Decimal("3001"), min_age_years=Decimal("6"), amount=Decimal("750000")),
)

DEFAULT_RULE_CONFIG = RuleConfig(
    sdl_rate=Decimal("0.035"),
    sdl_employee_threshold=Decimal("10"),
    non_resident_paye_rate=Decimal("0.15"),
    director_non_full_time_rate=Decimal("0.15"),
    secondary_employment_rate=Decimal("0.30"),
    nssf_employee_rate=Decimal("0.10"),
    bik_housing_income_rate=Decimal("0.15"),
    bik_loan_statutory_interest_rate=Decimal("0.16"),
    filing_penalty_daily_rate=Decimal("0.0005"),
    paye_bands_resident_primary=DEFAULT_RESIDENT_BANDS,
    motor_vehicle_benefit_bands=DEFAULT_VEHICLE_BANDS,
)


# ── Benefits in kind ──────────────────────────────────


def calculate_housing_bik(
    market_rent: Decimal,
    employer_deductible_expense: Decimal,
    employee_contribution: Decimal,
    reference_income: Decimal,
    rules: RuleConfig,
) -> Decimal:
    """
    Taxable value of employer-provided housing.

    quantified = min(market rent, max(income x housing rate, employer expense));
    the employee's own contribution is then deducted, floored at zero.
    """
    income_based = non_negative(reference_income) * rules.bik_housing_income_rate
    quantified = min(
        non_negative(market_rent),
        max(income_based, non_negative(employer_deductible_expense)),
    )
    return round2(max(ZERO, quantified - non_negative(employee_contribution)))


def calculate_vehicle_bik(
    engine_cc: Decimal,
    vehicle_age_years: Decimal,
    employer_claims_deduction: bool,
    rules: RuleConfig,
) -> Decimal:
    """Monthly motor vehicle benefit from the first matching band (zero if none)."""
    if not employer_claims_deduction:
        return round2(ZERO)

    annual_amount = ZERO
    for band in rules.motor_vehicle_benefit_bands:
        if band.matches(Decimal(engine_cc), Decimal(vehicle_age_years)):
            annual_amount = band.amount
            break

    return round2(annual_amount / MONTHS_PER_YEAR)


def calculate_loan_bik(
    principal_outstanding: Decimal,
    employee_interest_rate: Decimal,
    rules: RuleConfig,
) -> Decimal:
    """Monthly benefit on a loan below the statutory reference interest rate."""
    rate_diff = max(ZERO, rules.bik_loan_statutory_interest_rate - non_negative(employee_interest_rate))
    return round2(non_negative(principal_outstanding) * rate_diff / MONTHS_PER_YEAR)


# ── Deductions ────────────────────────────────────────


def calculate_progressive_tax(taxable_amount: Decimal, bands: tuple[ProgressiveBand, ...]) -> Decimal:
    """Unrounded marginal tax over an ordered band schedule."""
    tax = ZERO
    for band in bands:
        if taxable_amount <= band.lower:
            continue
        upper = band.upper if band.upper is not None else taxable_amount
        taxable_slice = max(ZERO, min(taxable_amount, upper) - band.lower)
        if taxable_slice > 0:
            tax += taxable_slice * band.rate
    return tax


def calculate_paye(taxable_pay: Decimal, profile: EmployeeTaxProfile, rules: RuleConfig) -> Decimal:
    """
    PAYE on monthly taxable pay.

    Precedence, first applicable wins:
    1. Non-full-time director flat rate
    2. Non-resident flat rate
    3. Secondary employment flat rate
    4. Resident primary progressive schedule
    """
    taxable_pay = non_negative(taxable_pay)

    if profile.is_non_full_time_director:
        return round2(taxable_pay * rules.director_non_full_time_rate)

    if profile.tax_residency == "non_resident":
        return round2(taxable_pay * rules.non_resident_paye_rate)

    if not profile.is_primary_employment:
        return round2(taxable_pay * rules.secondary_employment_rate)

    return round2(calculate_progressive_tax(taxable_pay, rules.paye_bands_resident_primary))


def calculate_nssf_employee_deduction(pensionable_pay: Decimal, rules: RuleConfig) -> Decimal:
    """NSSF employee share, applied to prorated basic pay only."""
    return round2(non_negative(pensionable_pay) * rules.nssf_employee_rate)


def calculate_sdl(total_gross_emoluments: Decimal, employee_count: int, rules: RuleConfig) -> Decimal:
    """SDL over the whole batch, zero below the headcount threshold."""
    if employee_count < rules.sdl_employee_threshold:
        return round2(ZERO)
    return round2(total_gross_emoluments * rules.sdl_rate)


def calculate_filing_penalty(amount_due: Decimal, late_days: int, rules: RuleConfig) -> Decimal:
    """Simple daily penalty on an overdue statutory filing."""
    return round2(non_negative(amount_due) * rules.filing_penalty_daily_rate * max(0, late_days))

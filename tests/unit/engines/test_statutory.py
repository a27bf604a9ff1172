"""
Statutory Calculator Unit Tests

PAYE, NSSF, SDL, benefit-in-kind valuation and filing penalties
against the built-in Tanzanian defaults.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from engines.schemas.payroll import EmployeeTaxProfile, ProgressiveBand, RuleConfig
from engines.services.statutory import (
    DEFAULT_RULE_CONFIG,
    calculate_filing_penalty,
    calculate_housing_bik,
    calculate_loan_bik,
    calculate_nssf_employee_deduction,
    calculate_paye,
    calculate_progressive_tax,
    calculate_sdl,
    calculate_vehicle_bik,
    round2,
)

RESIDENT = EmployeeTaxProfile(tax_residency="resident")
NON_RESIDENT = EmployeeTaxProfile(tax_residency="non_resident")
DIRECTOR = EmployeeTaxProfile(tax_residency="resident", is_non_full_time_director=True)
SECONDARY = EmployeeTaxProfile(tax_residency="resident", is_primary_employment=False)


class TestRounding:

    def test_half_up(self):
        assert round2(Decimal("0.005")) == Decimal("0.01")
        assert round2(Decimal("41666.666")) == Decimal("41666.67")
        assert round2(Decimal("2.675")) == Decimal("2.68")


class TestPAYE:
    """PAYE precedence and the resident progressive schedule."""

    def test_resident_primary_progressive(self):
        assert calculate_paye(Decimal("500000"), RESIDENT, DEFAULT_RULE_CONFIG) == Decimal("18400.00")

    def test_below_first_threshold_is_tax_free(self):
        assert calculate_paye(Decimal("270000"), RESIDENT, DEFAULT_RULE_CONFIG) == Decimal("0.00")
        assert calculate_paye(Decimal("150000"), RESIDENT, DEFAULT_RULE_CONFIG) == Decimal("0.00")

    def test_top_band_applies_thirty_percent_above_one_million(self):
        low = calculate_paye(Decimal("1000000.01"), RESIDENT, DEFAULT_RULE_CONFIG)
        high = calculate_paye(Decimal("1100000.01"), RESIDENT, DEFAULT_RULE_CONFIG)
        assert high - low == Decimal("30000.00")

    def test_non_resident_flat_rate(self):
        assert calculate_paye(Decimal("1000000"), NON_RESIDENT, DEFAULT_RULE_CONFIG) == Decimal("150000.00")

    def test_director_flat_rate(self):
        assert calculate_paye(Decimal("1000000"), DIRECTOR, DEFAULT_RULE_CONFIG) == Decimal("150000.00")

    def test_secondary_employment_flat_rate(self):
        assert calculate_paye(Decimal("1000000"), SECONDARY, DEFAULT_RULE_CONFIG) == Decimal("300000.00")

    def test_director_wins_over_non_resident(self):
        rules = DEFAULT_RULE_CONFIG.model_copy(update={"director_non_full_time_rate": Decimal("0.20")})
        profile = EmployeeTaxProfile(tax_residency="non_resident", is_non_full_time_director=True)
        assert calculate_paye(Decimal("1000000"), profile, rules) == Decimal("200000.00")

    def test_non_resident_wins_over_secondary(self):
        profile = EmployeeTaxProfile(tax_residency="non_resident", is_primary_employment=False)
        assert calculate_paye(Decimal("1000000"), profile, DEFAULT_RULE_CONFIG) == Decimal("150000.00")

    def test_negative_taxable_pay_is_floored(self):
        assert calculate_paye(Decimal("-5000"), RESIDENT, DEFAULT_RULE_CONFIG) == Decimal("0.00")
        assert calculate_paye(Decimal("-5000"), NON_RESIDENT, DEFAULT_RULE_CONFIG) == Decimal("0.00")

    def test_paye_is_non_decreasing(self):
        previous = Decimal("0")
        for amount in range(0, 3_000_001, 125_000):
            paye = calculate_paye(Decimal(amount), RESIDENT, DEFAULT_RULE_CONFIG)
            assert paye >= previous
            previous = paye

    def test_progressive_tax_skips_bands_below_pay(self):
        bands = (
            ProgressiveBand(lower=Decimal("0"), upper=Decimal("100"), rate=Decimal("0.10")),
            ProgressiveBand(lower=Decimal("100"), upper=None, rate=Decimal("0.50")),
        )
        assert calculate_progressive_tax(Decimal("50"), bands) == Decimal("5.00")
        assert calculate_progressive_tax(Decimal("300"), bands) == Decimal("110.00")


class TestNSSFAndSDL:

    def test_nssf_ten_percent(self):
        assert calculate_nssf_employee_deduction(Decimal("900000"), DEFAULT_RULE_CONFIG) == Decimal("90000.00")

    def test_nssf_negative_pay_floored(self):
        assert calculate_nssf_employee_deduction(Decimal("-1"), DEFAULT_RULE_CONFIG) == Decimal("0.00")

    def test_sdl_at_threshold(self):
        assert calculate_sdl(Decimal("10000000"), 10, DEFAULT_RULE_CONFIG) == Decimal("350000.00")

    def test_sdl_below_threshold_is_zero(self):
        assert calculate_sdl(Decimal("10000000"), 9, DEFAULT_RULE_CONFIG) == Decimal("0.00")


class TestBenefitsInKind:

    def test_housing(self):
        taxable = calculate_housing_bik(
            market_rent=Decimal("500000"),
            employer_deductible_expense=Decimal("300000"),
            employee_contribution=Decimal("50000"),
            reference_income=Decimal("2000000"),
            rules=DEFAULT_RULE_CONFIG,
        )
        assert taxable == Decimal("250000.00")

    def test_housing_capped_at_market_rent(self):
        taxable = calculate_housing_bik(
            market_rent=Decimal("200000"),
            employer_deductible_expense=Decimal("300000"),
            employee_contribution=Decimal("0"),
            reference_income=Decimal("5000000"),
            rules=DEFAULT_RULE_CONFIG,
        )
        assert taxable == Decimal("200000.00")

    def test_housing_contribution_above_value_floors_to_zero(self):
        taxable = calculate_housing_bik(
            market_rent=Decimal("500000"),
            employer_deductible_expense=Decimal("100000"),
            employee_contribution=Decimal("400000"),
            reference_income=Decimal("1000000"),
            rules=DEFAULT_RULE_CONFIG,
        )
        assert taxable == Decimal("0.00")

    def test_vehicle_first_matching_band(self):
        monthly = calculate_vehicle_bik(Decimal("1800"), Decimal("3"), True, DEFAULT_RULE_CONFIG)
        assert monthly == Decimal("41666.67")

    def test_vehicle_older_than_five_years(self):
        monthly = calculate_vehicle_bik(Decimal("1800"), Decimal("8"), True, DEFAULT_RULE_CONFIG)
        assert monthly == Decimal("20833.33")

    def test_vehicle_not_claimed_by_employer(self):
        assert calculate_vehicle_bik(Decimal("1800"), Decimal("3"), False, DEFAULT_RULE_CONFIG) == Decimal("0.00")

    def test_vehicle_no_band_matches(self):
        rules = DEFAULT_RULE_CONFIG.model_copy(update={"motor_vehicle_benefit_bands": ()})
        assert calculate_vehicle_bik(Decimal("1800"), Decimal("3"), True, rules) == Decimal("0.00")

    def test_loan(self):
        monthly = calculate_loan_bik(Decimal("6000000"), Decimal("0.05"), DEFAULT_RULE_CONFIG)
        assert monthly == Decimal("55000.00")

    def test_loan_at_or_above_statutory_rate_is_zero(self):
        assert calculate_loan_bik(Decimal("6000000"), Decimal("0.20"), DEFAULT_RULE_CONFIG) == Decimal("0.00")


class TestFilingPenalty:

    def test_daily_penalty(self):
        assert calculate_filing_penalty(Decimal("1000000"), 10, DEFAULT_RULE_CONFIG) == Decimal("5000.00")

    def test_not_late(self):
        assert calculate_filing_penalty(Decimal("1000000"), 0, DEFAULT_RULE_CONFIG) == Decimal("0.00")
        assert calculate_filing_penalty(Decimal("1000000"), -3, DEFAULT_RULE_CONFIG) == Decimal("0.00")


class TestRuleConfigValidation:

    def test_default_bands_are_valid(self):
        assert DEFAULT_RULE_CONFIG.paye_bands_resident_primary[-1].upper is None

    @pytest.mark.parametrize(
        "bands",
        [
            # gap
            (
                ProgressiveBand(lower=Decimal("0"), upper=Decimal("100"), rate=Decimal("0")),
                ProgressiveBand(lower=Decimal("200"), upper=None, rate=Decimal("0.1")),
            ),
            # overlap
            (
                ProgressiveBand(lower=Decimal("0"), upper=Decimal("100"), rate=Decimal("0")),
                ProgressiveBand(lower=Decimal("50"), upper=None, rate=Decimal("0.1")),
            ),
            # bounded top band
            (
                ProgressiveBand(lower=Decimal("0"), upper=Decimal("100"), rate=Decimal("0")),
            ),
        ],
    )
    def test_malformed_bands_rejected(self, bands):
        with pytest.raises(ValidationError):
            RuleConfig(**{**DEFAULT_RULE_CONFIG.model_dump(), "paye_bands_resident_primary": bands})

"""
Seed Script

Populates the database with demo data for development and testing.
Creates the global TZ_PAYROLL_BASELINE rule set and a "Kilimanjaro Coffee
Traders" company with employees, contracts, pay inputs and benefits, then
prints an access token for the owner.

Usage:
    python -m scripts.seed
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

from backend.config import get_settings
from backend.db.session import get_async_session
from backend.models.benefit_in_kind import BenefitInKind
from backend.models.company import Company
from backend.models.employee import Employee, EmployeeContract
from backend.models.pay_inputs import LeaveRequest, RecurringDeduction, RecurringEarning, Timesheet
from backend.models.statutory_rule import StatutoryRuleEntry, StatutoryRuleSet
from backend.services.auth import create_access_token
from backend.services.statutory_rules import invalidate_payroll_rules

settings = get_settings()

BASELINE_ENTRIES = {
    "SDL_RATE": {"rate": 0.035, "employee_threshold": 10},
    "NON_RESIDENT_PAYE_RATE": {"rate": 0.15},
    "DIRECTOR_NON_FULL_TIME_RATE": {"rate": 0.15},
    "SECONDARY_EMPLOYMENT_RATE": {"rate": 0.30},
    "NSSF_EMPLOYEE_RATE": {"rate": 0.10},
    "BIK_HOUSING": {"income_rate": 0.15},
    "BIK_LOAN": {"statutory_interest_rate": 0.16},
    "FILING_PENALTY_DAILY_RATE": {"rate": 0.0005},
    "PAYE_BANDS_RESIDENT_PRIMARY": {
        "bands": [
            {"from": 0, "to": 270000, "rate": 0},
            {"from": 270000.01, "to": 520000, "rate": 0.08},
            {"from": 520000.01, "to": 760000, "rate": 0.20},
            {"from": 760000.01, "to": 1000000, "rate": 0.25},
            {"from": 1000000.01, "to": None, "rate": 0.30},
        ]
    },
    "MOTOR_VEHICLE_BIK_ANNUAL": {
        "bands": [
            {"max_engine_cc": 1000, "max_age_years": 5, "amount": 250000},
            {"min_engine_cc": 1001, "max_engine_cc": 2000, "max_age_years": 5, "amount": 500000},
            {"min_engine_cc": 2001, "max_engine_cc": 3000, "max_age_years": 5, "amount": 1000000},
            {"min_engine_cc": 3001, "max_age_years": 5, "amount": 1500000},
            {"max_engine_cc": 1000, "min_age_years": 6, "amount": 125000},
            {"min_engine_cc": 1001, "max_engine_cc": 2000, "min_age_years": 6, "amount": 250000},
            {"min_engine_cc": 2001, "max_engine_cc": 3000, "min_age_years": 6, "amount": 500000},
            {"min_engine_cc": 3001, "min_age_years": 6, "amount": 750000},
        ]
    },
}


async def seed():
    """Create demo data."""
    async with get_async_session() as db:
        # ── Global rule set ───────────────────────────────
        rule_set = StatutoryRuleSet(
            id=uuid4(),
            company_id=None,
            country_code=settings.statutory_country_code,
            jurisdiction=settings.default_jurisdiction,
            rule_code=settings.statutory_rule_code,
            version="2025.1",
            effective_from=date(2025, 1, 1),
            entries=[StatutoryRuleEntry(key=key, value=value) for key, value in BASELINE_ENTRIES.items()],
        )
        db.add(rule_set)

        # ── Company ───────────────────────────────────────
        company = Company(
            id=uuid4(),
            name="Kilimanjaro Coffee Traders Ltd",
            tin="123-456-789",
            country_code="TZ",
            jurisdiction="mainland",
        )
        db.add(company)
        await db.flush()

        # ── Employees ─────────────────────────────────────
        employees_data = [
            {"first_name": "Neema", "last_name": "Mushi", "salary": Decimal("2500000")},
            {"first_name": "Baraka", "last_name": "Mwakyusa", "salary": Decimal("1200000")},
            {"first_name": "Zawadi", "last_name": "Kimaro", "salary": Decimal("650000")},
            {"first_name": "Juma", "last_name": "Hassan", "salary": Decimal("400000")},
            {
                "first_name": "Pieter", "last_name": "de Vries", "salary": Decimal("3000000"),
                "tax_residency": "non_resident",
            },
            {
                "first_name": "Rehema", "last_name": "Said", "salary": Decimal("800000"),
                "is_primary_employment": False,
            },
            {
                "first_name": "Emmanuel", "last_name": "Lyimo", "salary": Decimal("1500000"),
                "is_non_full_time_director": True,
            },
        ]

        employees = []
        for number, data in enumerate(employees_data, start=1):
            employee = Employee(
                id=uuid4(),
                company_id=company.id,
                employee_number=f"KCT-{number:03d}",
                first_name=data["first_name"],
                last_name=data["last_name"],
                hire_date=date(2024, 1, 15),
                tax_residency=data.get("tax_residency", "resident"),
                is_primary_employment=data.get("is_primary_employment", True),
                is_non_full_time_director=data.get("is_non_full_time_director", False),
            )
            db.add(employee)
            db.add(
                EmployeeContract(
                    company_id=company.id,
                    employee_id=employee.id,
                    basic_salary=data["salary"],
                    effective_from=date(2024, 1, 15),
                )
            )
            employees.append(employee)
        await db.flush()

        neema, baraka, zawadi, juma = employees[:4]

        # ── Pay inputs ────────────────────────────────────
        db.add_all([
            RecurringEarning(
                company_id=company.id, employee_id=neema.id, code="TRANSPORT",
                amount=Decimal("150000"), effective_from=date(2025, 1, 1),
            ),
            RecurringEarning(
                company_id=company.id, employee_id=baraka.id, code="BONUS",
                amount=Decimal("100000"), effective_from=date(2025, 6, 1), effective_to=date(2025, 6, 30),
            ),
            RecurringDeduction(
                company_id=company.id, employee_id=zawadi.id, code="LOAN_ADVANCE",
                amount=Decimal("50000"), effective_from=date(2025, 1, 1),
            ),
            RecurringDeduction(
                company_id=company.id, employee_id=juma.id, code="UNION_DUES",
                amount=Decimal("10000"), effective_from=date(2025, 1, 1),
            ),
            Timesheet(
                company_id=company.id, employee_id=baraka.id, work_date=date(2025, 6, 14),
                regular_hours=Decimal("8"), overtime_hours=Decimal("4"),
            ),
            LeaveRequest(
                company_id=company.id, employee_id=juma.id, leave_code="UNPAID", status="approved",
                starts_on=date(2025, 6, 9), ends_on=date(2025, 6, 11), days_requested=Decimal("3"),
            ),
        ])

        # ── Benefits in kind ──────────────────────────────
        db.add_all([
            BenefitInKind(
                company_id=company.id, employee_id=neema.id, benefit_type="housing",
                effective_from=date(2025, 1, 1),
                details={
                    "market_rent": 500000,
                    "employer_deductible_expense": 300000,
                    "employee_contribution": 50000,
                },
            ),
            BenefitInKind(
                company_id=company.id, employee_id=neema.id, benefit_type="vehicle",
                effective_from=date(2025, 1, 1),
                details={"engine_cc": 1800, "vehicle_age_years": 3, "employer_claims_deduction": True},
            ),
            BenefitInKind(
                company_id=company.id, employee_id=baraka.id, benefit_type="loan",
                effective_from=date(2025, 1, 1),
                details={"principal_outstanding": 6000000, "employee_interest_rate": 0.05},
            ),
        ])

        await db.flush()

    # Drop rules resolved before the new rule set existed
    await invalidate_payroll_rules()

    token = create_access_token(
        sub=str(uuid4()),
        email="owner@kilimanjarocoffee.co.tz",
        company_id=str(company.id),
        role="owner",
    )

    print(f"Seeded rule set: {rule_set.rule_code} v{rule_set.version} (ID: {rule_set.id})")
    print(f"Seeded company: {company.name} (ID: {company.id})")
    print(f"Employees: {len(employees)}")
    print(f"Owner access token: {token}")


if __name__ == "__main__":
    asyncio.run(seed())

"""Initial schema: companies, pay inputs, statutory rules, payroll runs, filings, payments

Revision ID: m001
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "m001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _audit() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.Column("modified_by", sa.Uuid(), nullable=True),
    ]


def _company_fk() -> sa.Column:
    return sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)


def _employee_fk() -> sa.Column:
    return sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    # === companies ===
    op.create_table(
        "companies",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, comment="Registered business name"),
        sa.Column("tin", sa.String(20), nullable=True, comment="TRA Taxpayer Identification Number"),
        sa.Column("country_code", sa.String(2), nullable=False, server_default="TZ"),
        sa.Column("jurisdiction", sa.String(30), nullable=False, server_default="mainland"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_companies_tin", "companies", ["tin"])

    # === employees ===
    op.create_table(
        "employees",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        sa.Column("employee_number", sa.String(50), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("tax_residency", sa.String(20), nullable=False, server_default="resident"),
        sa.Column("is_primary_employment", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_non_full_time_director", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
        *_audit(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("tax_residency IN ('resident', 'non_resident')", name="valid_tax_residency"),
    )
    op.create_index("ix_employees_company_id", "employees", ["company_id"])
    op.create_index("ix_employees_company_active", "employees", ["company_id", "is_active"])

    # === employee_contracts ===
    op.create_table(
        "employee_contracts",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        _employee_fk(),
        sa.Column("basic_salary", sa.Numeric(14, 2), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_to", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("basic_salary >= 0", name="non_negative_basic_salary"),
        sa.CheckConstraint("effective_to IS NULL OR effective_to >= effective_from", name="valid_contract_range"),
    )
    op.create_index("ix_employee_contracts_employee", "employee_contracts", ["employee_id", "effective_from"])

    # === recurring earnings / deductions ===
    for table, index in (
        ("employee_recurring_earnings", "ix_recurring_earnings_employee"),
        ("employee_recurring_deductions", "ix_recurring_deductions_employee"),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Uuid(), nullable=False),
            _company_fk(),
            _employee_fk(),
            sa.Column("code", sa.String(50), nullable=False),
            sa.Column("amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("effective_from", sa.Date(), nullable=False),
            sa.Column("effective_to", sa.Date(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(index, table, ["company_id", "employee_id"])

    # === timesheets ===
    op.create_table(
        "timesheets",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        _employee_fk(),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("regular_hours", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("overtime_hours", sa.Numeric(6, 2), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("overtime_hours >= 0", name="non_negative_overtime_hours"),
    )
    op.create_index("ix_timesheets_employee_date", "timesheets", ["company_id", "employee_id", "work_date"])

    # === leave_requests ===
    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        _employee_fk(),
        sa.Column("leave_code", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("starts_on", sa.Date(), nullable=False),
        sa.Column("ends_on", sa.Date(), nullable=False),
        sa.Column("days_requested", sa.Numeric(5, 1), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("ends_on >= starts_on", name="valid_leave_range"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="valid_leave_status",
        ),
    )
    op.create_index("ix_leave_requests_employee", "leave_requests", ["company_id", "employee_id", "status"])

    # === employee_benefits_in_kind ===
    op.create_table(
        "employee_benefits_in_kind",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        _employee_fk(),
        sa.Column("benefit_type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_to", sa.Date(), nullable=True),
        *_timestamps(),
        *_audit(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "benefit_type IN ('housing', 'vehicle', 'loan', 'other')",
            name="valid_benefit_type",
        ),
        sa.CheckConstraint("amount IS NULL OR amount >= 0", name="non_negative_benefit_amount"),
    )
    op.create_index("ix_benefits_in_kind_employee", "employee_benefits_in_kind", ["company_id", "employee_id"])

    # === statutory_rule_sets ===
    op.create_table(
        "statutory_rule_sets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=True),
        sa.Column("country_code", sa.String(2), nullable=False, server_default="TZ"),
        sa.Column("jurisdiction", sa.String(30), nullable=False, server_default="mainland"),
        sa.Column("rule_code", sa.String(50), nullable=False),
        sa.Column("version", sa.String(50), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_to", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("effective_to IS NULL OR effective_to >= effective_from", name="valid_rule_set_range"),
    )
    op.create_index(
        "ix_statutory_rule_sets_lookup",
        "statutory_rule_sets",
        ["company_id", "country_code", "jurisdiction", "rule_code", "effective_from"],
    )

    # === statutory_rule_entries ===
    op.create_table(
        "statutory_rule_entries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "rule_set_id",
            sa.Uuid(),
            sa.ForeignKey("statutory_rule_sets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", postgresql.JSONB(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("rule_set_id", "key", name="uq_statutory_rule_entries_key"),
    )

    # === idempotency_requests ===
    op.create_table(
        "idempotency_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        sa.Column("endpoint", sa.String(200), nullable=False),
        sa.Column("idempotency_key", sa.String(200), nullable=False),
        sa.Column("request_hash", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="in_progress"),
        sa.Column("response_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("error_body", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "company_id",
            "endpoint",
            "idempotency_key",
            name="uq_idempotency_requests_scope_key",
        ),
        sa.CheckConstraint(
            "status IN ('in_progress', 'completed', 'failed')",
            name="valid_idempotency_status",
        ),
    )

    # === payroll_periods ===
    op.create_table(
        "payroll_periods",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        sa.Column("period_year", sa.Integer(), nullable=False),
        sa.Column("period_month", sa.Integer(), nullable=False),
        sa.Column("starts_on", sa.Date(), nullable=False),
        sa.Column("ends_on", sa.Date(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "period_year", "period_month", name="uq_payroll_periods_company_month"),
        sa.CheckConstraint("period_month BETWEEN 1 AND 12", name="valid_period_month"),
    )

    # === payroll_runs ===
    op.create_table(
        "payroll_runs",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        sa.Column(
            "payroll_period_id",
            sa.Uuid(),
            sa.ForeignKey("payroll_periods.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("run_label", sa.String(50), nullable=False, server_default="main"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("gross_total", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("deduction_total", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("net_total", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("sdl_total", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("paye_total", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("nssf_total", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("employee_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rule_set_id", sa.Uuid(), nullable=True),
        sa.Column("rule_version", sa.String(50), nullable=False),
        sa.Column("warnings", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        *_audit(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('draft', 'validated', 'approved', 'locked', 'paid')",
            name="valid_payroll_run_status",
        ),
    )
    op.create_index("ix_payroll_runs_company_created", "payroll_runs", ["company_id", "created_at"])
    op.create_index("ix_payroll_runs_period", "payroll_runs", ["payroll_period_id"])

    # === payroll_run_items ===
    op.create_table(
        "payroll_run_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "payroll_run_id",
            sa.Uuid(),
            sa.ForeignKey("payroll_runs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _employee_fk(),
        sa.Column("gross_pay", sa.Numeric(14, 2), nullable=False),
        sa.Column("taxable_pay", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_deductions", sa.Numeric(14, 2), nullable=False),
        sa.Column("net_pay", sa.Numeric(14, 2), nullable=False),
        sa.Column("calc_snapshot", postgresql.JSONB(), nullable=False, server_default="{}"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payroll_run_id", "employee_id", name="uq_payroll_run_items_employee"),
        sa.CheckConstraint("net_pay >= 0", name="non_negative_net_pay"),
    )

    # === statutory_filings ===
    op.create_table(
        "statutory_filings",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        sa.Column(
            "payroll_period_id",
            sa.Uuid(),
            sa.ForeignKey("payroll_periods.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "payroll_run_id",
            sa.Uuid(),
            sa.ForeignKey("payroll_runs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("filing_type", sa.String(10), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ready"),
        sa.Column("amount_due", sa.Numeric(16, 2), nullable=False),
        sa.Column("penalty_amount", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("interest_amount", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("rule_version", sa.String(50), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column(
            "original_filing_id",
            sa.Uuid(),
            sa.ForeignKey("statutory_filings.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amended_reason", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_by", sa.Uuid(), nullable=True),
        sa.Column("submission_reference", sa.String(100), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        *_timestamps(),
        *_audit(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("filing_type IN ('SDL', 'PAYE')", name="valid_filing_type"),
        sa.CheckConstraint(
            "status IN ('ready', 'submitted', 'paid', 'amended')",
            name="valid_filing_status",
        ),
        sa.CheckConstraint("amount_due >= 0", name="non_negative_amount_due"),
    )
    op.create_index("ix_statutory_filings_company_due", "statutory_filings", ["company_id", "due_date"])
    op.create_index(
        "uq_statutory_filings_base_period_type",
        "statutory_filings",
        ["company_id", "payroll_period_id", "filing_type"],
        unique=True,
        postgresql_where=sa.text("original_filing_id IS NULL"),
    )

    # === payment_batches ===
    op.create_table(
        "payment_batches",
        sa.Column("id", sa.Uuid(), nullable=False),
        _company_fk(),
        sa.Column(
            "payroll_run_id",
            sa.Uuid(),
            sa.ForeignKey("payroll_runs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("total_amount", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("file_uri", sa.String(500), nullable=True),
        *_timestamps(),
        *_audit(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('draft', 'exported', 'processing', 'completed', 'failed')",
            name="valid_payment_batch_status",
        ),
    )
    op.create_index("ix_payment_batches_company_created", "payment_batches", ["company_id", "created_at"])

    # === payment_batch_items ===
    op.create_table(
        "payment_batch_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "payment_batch_id",
            sa.Uuid(),
            sa.ForeignKey("payment_batches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "payroll_run_item_id",
            sa.Uuid(),
            sa.ForeignKey("payroll_run_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _employee_fk(),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("destination_account", sa.String(100), nullable=True),
        sa.Column("provider_reference", sa.String(100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_batch_id", "payroll_run_item_id", name="uq_payment_batch_items_run_item"),
    )


def downgrade() -> None:
    op.drop_table("payment_batch_items")
    op.drop_table("payment_batches")
    op.drop_table("statutory_filings")
    op.drop_table("payroll_run_items")
    op.drop_table("payroll_runs")
    op.drop_table("payroll_periods")
    op.drop_table("idempotency_requests")
    op.drop_table("statutory_rule_entries")
    op.drop_table("statutory_rule_sets")
    op.drop_table("employee_benefits_in_kind")
    op.drop_table("leave_requests")
    op.drop_table("timesheets")
    op.drop_table("employee_recurring_deductions")
    op.drop_table("employee_recurring_earnings")
    op.drop_table("employee_contracts")
    op.drop_table("employees")
    op.drop_table("companies")

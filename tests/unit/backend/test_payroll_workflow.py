"""
Payroll Run Workflow Unit Tests
"""

import pytest

from backend.models.payroll_run import PayrollRunStatus
from backend.services.payroll_workflow import (
    InvalidPayrollTransition,
    assert_payroll_run_transition,
    can_transition_payroll_run_status,
)

ALLOWED = {
    ("draft", "validated"),
    ("validated", "approved"),
    ("validated", "draft"),
    ("approved", "locked"),
    ("approved", "validated"),
    ("locked", "paid"),
}


class TestTransitions:

    @pytest.mark.parametrize("from_status", [s.value for s in PayrollRunStatus])
    @pytest.mark.parametrize("to_status", [s.value for s in PayrollRunStatus])
    def test_transition_table(self, from_status, to_status):
        expected = (from_status, to_status) in ALLOWED
        assert can_transition_payroll_run_status(from_status, to_status) is expected

    def test_accepts_enum_members(self):
        assert can_transition_payroll_run_status(PayrollRunStatus.LOCKED, PayrollRunStatus.PAID)

    def test_paid_is_terminal(self):
        for target in PayrollRunStatus:
            assert not can_transition_payroll_run_status(PayrollRunStatus.PAID, target)

    def test_unknown_status_not_allowed(self):
        assert can_transition_payroll_run_status("archived", "draft") is False
        assert can_transition_payroll_run_status("draft", "archived") is False


class TestAssertTransition:

    def test_allowed_transition_passes(self):
        assert_payroll_run_transition("approved", "locked")

    def test_skipping_a_step_raises(self):
        with pytest.raises(InvalidPayrollTransition) as exc_info:
            assert_payroll_run_transition("draft", "approved")

        assert str(exc_info.value) == "Invalid payroll status transition: draft -> approved"
        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "approved"

    def test_enum_labels_in_message(self):
        with pytest.raises(InvalidPayrollTransition, match="locked -> draft"):
            assert_payroll_run_transition(PayrollRunStatus.LOCKED, PayrollRunStatus.DRAFT)

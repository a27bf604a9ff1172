"""
Payroll Run Workflow

Legal status transitions for payroll runs. Callers persist the new status
only after the check passes.
"""

from backend.models.payroll_run import PayrollRunStatus

ALLOWED_TRANSITIONS: dict[PayrollRunStatus, frozenset[PayrollRunStatus]] = {
    PayrollRunStatus.DRAFT: frozenset({PayrollRunStatus.VALIDATED}),
    PayrollRunStatus.VALIDATED: frozenset({PayrollRunStatus.APPROVED, PayrollRunStatus.DRAFT}),
    PayrollRunStatus.APPROVED: frozenset({PayrollRunStatus.LOCKED, PayrollRunStatus.VALIDATED}),
    PayrollRunStatus.LOCKED: frozenset({PayrollRunStatus.PAID}),
    PayrollRunStatus.PAID: frozenset(),
}


class InvalidPayrollTransition(ValueError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid payroll status transition: {from_status} -> {to_status}")


def can_transition_payroll_run_status(
    from_status: PayrollRunStatus | str,
    to_status: PayrollRunStatus | str,
) -> bool:
    try:
        current = PayrollRunStatus(from_status)
        target = PayrollRunStatus(to_status)
    except ValueError:
        return False
    return target in ALLOWED_TRANSITIONS[current]


def assert_payroll_run_transition(
    from_status: PayrollRunStatus | str,
    to_status: PayrollRunStatus | str,
) -> None:
    """Raise InvalidPayrollTransition unless ``from_status -> to_status`` is allowed."""
    if not can_transition_payroll_run_status(from_status, to_status):
        raise InvalidPayrollTransition(_label(from_status), _label(to_status))


def _label(status: PayrollRunStatus | str) -> str:
    return status.value if isinstance(status, PayrollRunStatus) else str(status)

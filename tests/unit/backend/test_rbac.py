"""
Unit Tests for RBAC Middleware

Tests role-permission mappings, CurrentUser helper methods,
and JWT token validation logic.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt
import pytest
from fastapi import HTTPException

from backend.config import get_settings
from backend.middleware.rbac import (
    ROLE_PERMISSIONS,
    CurrentUser,
    Permission,
    Role,
    _validate_token,
)
from backend.services.auth import create_access_token, decode_token

settings = get_settings()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_user(role: Role, permissions: set[Permission] | None = None) -> CurrentUser:
    """Build a CurrentUser with role-based permissions (or explicit overrides)."""
    return CurrentUser(
        id=uuid4(),
        email="test@example.co.tz",
        company_id=uuid4(),
        role=role,
        permissions=permissions if permissions is not None else ROLE_PERMISSIONS[role],
    )


# ===========================================================================
# Role-permission mapping tests
# ===========================================================================

class TestRolePermissions:
    """Verify that ROLE_PERMISSIONS grants the correct capabilities."""

    def test_owner_and_admin_have_all_permissions(self):
        all_perms = set(Permission)
        assert ROLE_PERMISSIONS[Role.OWNER] == all_perms
        assert ROLE_PERMISSIONS[Role.ADMIN] == all_perms

    def test_payroll_manager_prepares_but_cannot_approve(self):
        perms = ROLE_PERMISSIONS[Role.PAYROLL_MANAGER]
        assert Permission.PAYROLL_RUN in perms
        assert Permission.FILING_GENERATE in perms
        assert Permission.PAYROLL_APPROVE not in perms

    def test_hr_cannot_run_payroll(self):
        """HR maintains employee data but cannot compute or file."""
        perms = ROLE_PERMISSIONS[Role.HR]
        assert Permission.EMPLOYEE_WRITE in perms
        assert Permission.PAYROLL_RUN not in perms
        assert Permission.FILING_GENERATE not in perms

    def test_viewer_has_only_read_permissions(self):
        viewer_perms = ROLE_PERMISSIONS[Role.VIEWER]
        assert viewer_perms == {
            Permission.EMPLOYEE_READ,
            Permission.PAYROLL_READ,
            Permission.REPORTS_READ,
        }
        for perm in viewer_perms:
            assert perm.value.endswith(":read"), (
                f"VIEWER permission {perm.value} is not read-only"
            )

    def test_every_role_mapped(self):
        assert set(ROLE_PERMISSIONS) == set(Role)


# ===========================================================================
# CurrentUser helper method tests
# ===========================================================================

class TestCurrentUserHelpers:

    def test_has_permission(self):
        user = _make_user(Role.VIEWER)
        assert user.has_permission(Permission.PAYROLL_READ) is True
        assert user.has_permission(Permission.PAYROLL_RUN) is False

    def test_has_any_permission(self):
        user = _make_user(Role.VIEWER)
        assert user.has_any_permission(Permission.PAYROLL_READ, Permission.PAYROLL_RUN) is True
        assert user.has_any_permission(Permission.PAYROLL_RUN, Permission.FILING_GENERATE) is False


# ===========================================================================
# Token creation and validation
# ===========================================================================

class TestValidateToken:
    """Exercise the JWT validation path in _validate_token."""

    def test_access_token_claims(self):
        company_id = str(uuid4())
        token = create_access_token(
            sub=str(uuid4()),
            email="hr@test.co.tz",
            company_id=company_id,
            role="hr",
        )

        payload = decode_token(token)
        assert payload["company_id"] == company_id
        assert payload["role"] == "hr"
        assert payload["type"] == "access"
        assert payload["exp"] > payload["iat"]

    def test_valid_token_returns_correct_user(self):
        user_id = uuid4()
        company_id = uuid4()

        token = create_access_token(
            sub=str(user_id),
            email="admin@test.co.tz",
            company_id=str(company_id),
            role=Role.ADMIN.value,
        )

        current_user = _validate_token(token)

        assert current_user.id == user_id
        assert current_user.email == "admin@test.co.tz"
        assert current_user.company_id == company_id
        assert current_user.role == Role.ADMIN
        assert current_user.permissions == ROLE_PERMISSIONS[Role.ADMIN]

    def test_invalid_token_raises_401(self):
        with pytest.raises(HTTPException) as exc_info:
            _validate_token("this.is.not.a.jwt")
        assert exc_info.value.status_code == 401
        assert "Invalid token" in exc_info.value.detail

        wrong_secret_token = jwt.encode(
            {
                "sub": str(uuid4()),
                "company_id": str(uuid4()),
                "role": "viewer",
                "iat": datetime.now(timezone.utc),
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            "wrong-secret-key",
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            _validate_token(wrong_secret_token)
        assert exc_info.value.status_code == 401

    def test_expired_token_raises_401(self):
        expired_token = jwt.encode(
            {
                "sub": str(uuid4()),
                "company_id": str(uuid4()),
                "role": "viewer",
                "iat": datetime.now(timezone.utc) - timedelta(hours=2),
                "exp": datetime.now(timezone.utc) - timedelta(hours=1),
            },
            settings.secret_key,
            algorithm="HS256",
        )

        with pytest.raises(HTTPException) as exc_info:
            _validate_token(expired_token)
        assert exc_info.value.status_code == 401
        assert "Invalid token" in exc_info.value.detail

    def test_missing_company_claim_raises_401(self):
        token = jwt.encode(
            {
                "sub": str(uuid4()),
                "role": "owner",
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            settings.secret_key,
            algorithm="HS256",
        )

        with pytest.raises(HTTPException) as exc_info:
            _validate_token(token)
        assert exc_info.value.status_code == 401
        assert "Invalid token claims" in exc_info.value.detail

    def test_unknown_role_raises_401(self):
        token = create_access_token(
            sub=str(uuid4()),
            email="x@test.co.tz",
            company_id=str(uuid4()),
            role="superuser",
        )
        with pytest.raises(HTTPException) as exc_info:
            _validate_token(token)
        assert exc_info.value.status_code == 401

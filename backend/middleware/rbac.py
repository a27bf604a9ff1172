"""
Role-Based Access Control Middleware

Manages roles, permissions, and authorization for multi-tenant access.
"""

import logging
from enum import Enum
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel, Field

from backend.services.auth import decode_token

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """System roles."""
    OWNER = "owner"
    ADMIN = "admin"
    PAYROLL_MANAGER = "payroll_manager"
    HR = "hr"
    VIEWER = "viewer"


class Permission(str, Enum):
    """Granular permissions."""
    # Employees and pay inputs
    EMPLOYEE_READ = "employee:read"
    EMPLOYEE_WRITE = "employee:write"

    # Payroll
    PAYROLL_READ = "payroll:read"
    PAYROLL_RUN = "payroll:run"
    PAYROLL_APPROVE = "payroll:approve"

    # Statutory returns and reports
    REPORTS_READ = "reports:read"
    FILING_GENERATE = "filing:generate"


# Role-permission mapping
ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    Role.OWNER: set(Permission),  # All permissions
    Role.ADMIN: set(Permission),
    Role.PAYROLL_MANAGER: {
        Permission.EMPLOYEE_READ, Permission.EMPLOYEE_WRITE,
        Permission.PAYROLL_READ, Permission.PAYROLL_RUN,
        Permission.REPORTS_READ, Permission.FILING_GENERATE,
    },
    Role.HR: {
        Permission.EMPLOYEE_READ, Permission.EMPLOYEE_WRITE,
        Permission.PAYROLL_READ,
    },
    Role.VIEWER: {
        Permission.EMPLOYEE_READ,
        Permission.PAYROLL_READ,
        Permission.REPORTS_READ,
    },
}


class CurrentUser(BaseModel):
    """Authenticated user context."""
    id: UUID
    email: str
    company_id: UUID
    role: Role
    permissions: set[Permission] = Field(default_factory=set)

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions

    def has_any_permission(self, *permissions: Permission) -> bool:
        return any(p in self.permissions for p in permissions)


async def get_current_user(request: Request) -> CurrentUser:
    """Extract and validate the current user from the Bearer token."""
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")

    token = auth_header.split(" ", 1)[1]
    return _validate_token(token)


def require_permission(*permissions: Permission, company_id_param: str = "company_id"):
    """
    Dependency that checks for specific permissions.

    When the route has a ``company_id`` path parameter it must match the
    user's company.
    """

    async def check(request: Request, user: CurrentUser = Depends(get_current_user)):
        company_id = request.path_params.get(company_id_param)
        if company_id and str(user.company_id) != company_id:
            raise HTTPException(
                status_code=403,
                detail="Access denied to this company",
            )
        for perm in permissions:
            if not user.has_permission(perm):
                raise HTTPException(
                    status_code=403,
                    detail=f"Missing permission: {perm.value}",
                )
        return user

    return check


def _validate_token(token: str) -> CurrentUser:
    """Validate JWT token and return user context."""
    try:
        payload = decode_token(token)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")

    try:
        role = Role(payload.get("role", "viewer"))
        user_id = UUID(payload["sub"])
        company_id = UUID(payload["company_id"])
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail=f"Invalid token claims: {e}")

    return CurrentUser(
        id=user_id,
        email=payload.get("email", ""),
        company_id=company_id,
        role=role,
        permissions=ROLE_PERMISSIONS.get(role, set()),
    )

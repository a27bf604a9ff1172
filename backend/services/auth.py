"""
Authentication Service

JWT creation and validation. Sign-in itself is handled by the identity
provider; this service only mints and decodes API access tokens.
"""

from datetime import datetime, timedelta, timezone

import jwt

from backend.config import get_settings

settings = get_settings()


def create_access_token(
    sub: str,
    email: str,
    company_id: str,
    role: str,
) -> str:
    """
    Create a JWT access token.

    Claims match the contract in backend/middleware/rbac.py _validate_token():
      - sub: str(user.id)
      - email: user.email
      - company_id: str(user.company_id)
      - role: user.role
      - type: "access"
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "email": email,
        "company_id": company_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=settings.access_token_expire_minutes),
    }
    return jwt.encode(payload, settings.secret_key, algorithm="HS256")


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises jwt.InvalidTokenError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=["HS256"])

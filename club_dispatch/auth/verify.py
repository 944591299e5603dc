"""
verify.py
---------
Purpose:
    Admin token verification for the operator endpoints.

Notes:
    - Tokens are HS256 JWTs signed with ADMIN_JWT_SECRET.
    - A valid token carries ``role: "admin"`` and an ``exp`` claim.
    - Provides `admin_dependency` for protected routes.
"""

from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from club_dispatch.config import settings

ADMIN_ROLE = "admin"
ALGORITHM = "HS256"

_security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def issue_admin_token(subject: str, ttl: timedelta = timedelta(hours=12)) -> str:
    """Mint an admin token, e.g. from an operator shell."""
    if not settings.ADMIN_JWT_SECRET:
        raise RuntimeError("ADMIN_JWT_SECRET not configured")
    now = datetime.now(UTC)
    claims = {"sub": subject, "role": ADMIN_ROLE, "iat": now, "exp": now + ttl}
    return jwt.encode(claims, settings.ADMIN_JWT_SECRET, algorithm=ALGORITHM)


def verify_admin_token(token: str) -> dict:
    if not settings.ADMIN_JWT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin authentication not configured",
        )
    try:
        claims = jwt.decode(
            token,
            settings.ADMIN_JWT_SECRET,
            algorithms=[ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.PyJWTError as e:
        raise _unauthorized(f"Invalid authentication token: {e}") from e

    if claims.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return claims


def admin_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> dict:
    if credentials is None:
        raise _unauthorized("Missing bearer token")
    return verify_admin_token(credentials.credentials)

"""
Auth utilities for the CareerHub API.

Validates HS256 bearer JWTs and extracts user_id from the ``sub`` claim.
Falls back to the X-User-Id header for service-to-service calls and tests.
Admin routes use a shared X-Admin-Key.
"""
import hmac
import logging
from typing import Optional

import jwt
from fastapi import Header, Request

from careerhub.core.config import settings
from careerhub.core.errors import PermissionError, UnauthorizedError

logger = logging.getLogger(__name__)


def verify_jwt(token: str, secret: Optional[str] = None) -> Optional[str]:
    """
    Verify a bearer JWT and extract user_id.

    Args:
        token: JWT from Authorization header (Bearer {token})
        secret: Override for AUTH_JWT_SECRET

    Returns:
        user_id from the 'sub' claim, or None when no secret is configured

    Raises:
        UnauthorizedError: Invalid or expired token
    """
    key = secret or settings.AUTH_JWT_SECRET
    if not key:
        logger.debug("No AUTH_JWT_SECRET configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=["HS256"],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("No 'sub' claim in token")
    return str(user_id)


def _upsert_principal(user_id: str) -> None:
    from careerhub.features.credits.service import get_or_create_user

    get_or_create_user(user_id)


def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Service-to-service / test principal"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. Bearer JWT from Authorization header
    2. X-User-Id header
    3. Raise 401 Unauthorized

    Plain def: the principal upsert is a blocking DB write, so FastAPI runs
    this dependency in its threadpool.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        user_id = verify_jwt(auth_header[7:])
        if user_id:
            _upsert_principal(user_id)
            return user_id

    if x_user_id and x_user_id.strip():
        user_id = x_user_id.strip()
        _upsert_principal(user_id)
        return user_id

    raise UnauthorizedError("Missing Authorization (Bearer JWT) or X-User-Id header")


def require_admin_key(x_admin_key: Optional[str] = Header(None)) -> str:
    """Check X-Admin-Key against ADMIN_KEY; returns an actor label for the audit trail."""
    expected = settings.ADMIN_KEY
    if not expected:
        raise PermissionError("Admin access is not configured")
    if not x_admin_key or not hmac.compare_digest(x_admin_key.strip(), expected):
        raise PermissionError("Invalid admin key")
    return "admin_key"

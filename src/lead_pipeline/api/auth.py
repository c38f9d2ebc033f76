"""Request authentication for the pipeline API.

Users authenticate with ``Authorization: Bearer <jwt>`` (HS256, signed with
``JWT_SECRET``). Scheduled and server-to-server callers may instead send the
``X-Cron-Secret`` header or the service-role key as the bearer token on the
endpoints that accept them.
"""

import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import jwt
from fastapi import Header

from ..config import config
from ..errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
JWT_ALGORITHMS = ["HS256"]


@dataclass
class Caller:
    """The authenticated principal behind a request."""

    user_id: Optional[str] = None
    roles: list[str] = field(default_factory=list)
    is_service: bool = False

    @property
    def is_admin(self) -> bool:
        return self.is_service or ADMIN_ROLE in self.roles


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None


def _matches(candidate: Optional[str], secret: Optional[str]) -> bool:
    if not candidate or not secret:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), secret.encode("utf-8"))


def _roles_from_claims(claims: dict[str, Any]) -> list[str]:
    roles = claims.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    role = claims.get("role")
    if role:
        roles = list(roles) + [role]
    return [str(r) for r in roles]


def decode_user_token(token: str) -> Caller:
    """Verify a user JWT and return its caller.

    Raises:
        Unauthorized: If the token is invalid, expired or has no subject.
    """
    if not config.JWT_SECRET:
        logger.error("JWT_SECRET is not configured; rejecting user token")
        raise Unauthorized("Invalid authentication")

    audience = config.JWT_AUDIENCE or None
    try:
        claims = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=JWT_ALGORITHMS,
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except jwt.PyJWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise Unauthorized("Invalid authentication") from e

    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized("Invalid authentication")
    return Caller(user_id=str(user_id), roles=_roles_from_claims(claims))


async def require_user(authorization: Optional[str] = Header(None)) -> Caller:
    """Dependency: an authenticated user."""
    token = _bearer_token(authorization)
    if token is None:
        raise Unauthorized("Authentication required")
    return decode_user_token(token)


async def require_admin(authorization: Optional[str] = Header(None)) -> Caller:
    """Dependency: an authenticated user holding the admin role."""
    caller = await require_user(authorization)
    if not caller.is_admin:
        raise Forbidden("Admin access required")
    return caller


async def require_cron_or_user(
    authorization: Optional[str] = Header(None),
    x_cron_secret: Optional[str] = Header(None),
) -> Caller:
    """Dependency: the cron secret, the service-role key or a user token."""
    if _matches(x_cron_secret, config.CRON_SECRET):
        return Caller(is_service=True)

    token = _bearer_token(authorization)
    if token is None:
        raise Unauthorized("Unauthorized")
    if _matches(token, config.SERVICE_ROLE_KEY):
        return Caller(is_service=True)
    return decode_user_token(token)

"""
tms/security/rbac.py
Centralized role-based access control over identity provider tokens

Tokens are issued by the external identity provider and only verified here.
The verified identity is handed to route handlers as an explicit
AuthContext; nothing is stashed on the request.

Roles: "admin", "teacher", "student". Roles are read from the first of
these claims that is present:
- role            (single string)
- roles           (list)
- realm_access.roles (Keycloak style)
Unknown role names are ignored.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from tms.config.settings import settings
from tms.errors import ErrorCode, ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

VALID_ROLES = {"admin", "teacher", "student"}
STAFF_ROLES = frozenset({"admin", "teacher"})

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Who is calling, as asserted by a verified token."""
    user_id: str
    email: Optional[str] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return bool(self.roles & set(roles))

    @property
    def is_staff(self) -> bool:
        return self.has_any_role(STAFF_ROLES)


def extract_roles(payload: Dict[str, Any]) -> FrozenSet[str]:
    """Collect known roles from the token claims."""
    raw = []
    if isinstance(payload.get("role"), str):
        raw = [payload["role"]]
    elif isinstance(payload.get("roles"), list):
        raw = payload["roles"]
    else:
        realm_access = payload.get("realm_access") or {}
        if isinstance(realm_access, dict) and isinstance(realm_access.get("roles"), list):
            raw = realm_access["roles"]

    return frozenset(str(r).lower() for r in raw if str(r).lower() in VALID_ROLES)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify signature, expiry and (when configured) audience.

    Raises:
        UnauthorizedError: invalid or expired token
    """
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except ExpiredSignatureError:
        logger.warning("Authentication failed: token expired")
        raise UnauthorizedError("Token expired", ErrorCode.AUTH_EXPIRED)
    except JWTError as e:
        logger.warning(f"Authentication failed: {e}")
        raise UnauthorizedError("Invalid token", ErrorCode.AUTH_INVALID)


def context_from_payload(payload: Dict[str, Any]) -> AuthContext:
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload", ErrorCode.AUTH_INVALID)
    return AuthContext(
        user_id=str(user_id),
        email=payload.get("email"),
        roles=extract_roles(payload),
    )


# ================= AUTH DEPENDENCIES =================

async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthContext:
    """Bearer token -> AuthContext. Use as: Depends(get_auth_context)"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing Authorization header")

    context = context_from_payload(decode_token(credentials.credentials))
    logger.debug(f"Authenticated: user={context.user_id}, roles={sorted(context.roles)}")
    return context


def require_roles(*roles: str) -> Callable:
    """
    Require at least one of the given roles.
    Use as: Depends(require_roles("teacher", "admin"))
    """
    allowed = frozenset(roles)

    async def dependency(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not context.has_any_role(allowed):
            logger.warning(
                f"Access denied: user={context.user_id}, roles={sorted(context.roles)}, "
                f"required={sorted(allowed)}"
            )
            raise ForbiddenError("Forbidden: Insufficient permissions")
        return context

    return dependency


require_staff = require_roles("teacher", "admin")
require_any_role = require_roles("student", "teacher", "admin")


def ensure_self_or_staff(context: AuthContext, learner_id: str, resource_name: str = "progress"):
    """Learners may only touch their own data; teachers and admins may touch anyone's."""
    if context.is_staff or context.user_id == learner_id:
        return
    logger.warning(f"Ownership violation: user={context.user_id} tried {resource_name} of {learner_id}")
    raise ForbiddenError(
        f"This {resource_name} does not belong to you",
        code=ErrorCode.OWNERSHIP_VIOLATION
    )

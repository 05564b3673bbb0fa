# backend/homebridge/api/dependencies/auth.py
"""
Authentication and role dependencies.

``get_current_principal`` turns the bearer token into a ``Principal`` (401
when missing or invalid); ``require_roles`` narrows it to a set of roles
(403 otherwise).
"""

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jwt import PyJWTError

from ...auth import decode_access_token, principal_from_claims
from ...core.enums import RoleName
from ...principal import Principal

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


async def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme_optional),
) -> Principal:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    invalid_credentials = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise invalid_credentials

    principal = principal_from_claims(payload)
    if principal is None:
        logger.warning("Token payload missing 'sub' or a known 'role'")
        raise invalid_credentials
    return principal


def require_roles(*roles: RoleName) -> Callable[..., Principal]:
    """Dependency factory allowing only the given roles."""
    allowed = {role.value for role in roles}

    async def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            logger.info(f"Principal {principal.id} with role {principal.role} denied")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return principal

    return _check


require_student = require_roles(RoleName.STUDENT)
require_agent = require_roles(RoleName.AGENT)
require_agent_or_admin = require_roles(RoleName.AGENT, RoleName.ADMIN, RoleName.SUPERADMIN)
require_admin = require_roles(RoleName.ADMIN, RoleName.SUPERADMIN)

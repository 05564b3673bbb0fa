"""
Bearer token verification.

Tokens are issued by the identity service; this backend only decodes them.
The ``sub`` claim is the user id and ``role`` one of the RoleName values.
"""

import logging
from typing import Any, Dict, Optional, cast

import jwt

from .core.config import Settings, settings as default_settings
from .core.enums import RoleName
from .principal import Principal

logger = logging.getLogger(__name__)

_VALID_ROLES = {role.value for role in RoleName}


def decode_access_token(token: str, config: Optional[Settings] = None) -> Dict[str, Any]:
    """Decode and verify a JWT access token. Raises ``jwt.PyJWTError`` when invalid."""
    config = config or default_settings
    payload_raw = jwt.decode(
        token,
        config.secret_key.get_secret_value(),
        algorithms=[config.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


def principal_from_claims(payload: Dict[str, Any]) -> Optional[Principal]:
    subject = payload.get("sub")
    role = str(payload.get("role") or "").upper()
    if not isinstance(subject, str) or not subject or role not in _VALID_ROLES:
        return None
    email = payload.get("email")
    return Principal(id=subject, role=role, email=email if isinstance(email, str) else None)

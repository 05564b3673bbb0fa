"""Authenticated caller as seen by the service layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from homebridge.core.enums import ADMIN_ROLES, AGENT_ROLES, RoleName


@dataclass(frozen=True)
class Principal:
    """Identity and role supplied by the auth layer; services trust it as-is."""

    id: str
    role: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_agent_or_admin(self) -> bool:
        return self.role in AGENT_ROLES

    @property
    def is_student(self) -> bool:
        return self.role == RoleName.STUDENT.value

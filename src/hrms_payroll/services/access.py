"""Caller identity and payslip read access."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from hrms_payroll.exceptions import AccessDeniedError


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, as asserted by the identity layer."""

    user_id: UUID | None
    role_name: str | None = None

    def is_elevated(self, elevated_roles: Iterable[str]) -> bool:
        return (self.role_name or "").strip().lower() in set(elevated_roles)


def ensure_can_view(actor: Actor, owner_id: UUID, elevated_roles: Iterable[str]) -> None:
    """Owner or elevated role only."""
    if actor.user_id is not None and actor.user_id == owner_id:
        return
    if actor.is_elevated(elevated_roles):
        return
    raise AccessDeniedError()


def ensure_elevated(actor: Actor, elevated_roles: Iterable[str]) -> None:
    if not actor.is_elevated(elevated_roles):
        raise AccessDeniedError("Elevated role required")

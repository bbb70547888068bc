from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import Role


@dataclass(frozen=True)
class CallerContext:
    """Identity of the caller, resolved once per request from the bearer token."""

    user_id: int
    role: Role

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles

from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: platform user (candidate, trainer, admin, ...)."""

    user_id: int
    full_name: str
    email: str
    role: Role
    is_active: bool = True

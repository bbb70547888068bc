from __future__ import annotations

from enum import Enum
from typing import Any


class Role(str, Enum):
    """Platform roles used for authorization."""

    ADMIN = "admin"
    TRAINER = "trainer"
    CANDIDATE = "candidate"
    RECRUITER = "recruiter"
    BROKER = "broker"
    EMPLOYER = "employer"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Normalize a role claim into a Role.

        Accepts the enum itself, a case-insensitive name, or a role object
        shaped like ``{"name": "Trainer"}``. The legacy ``agent`` name maps
        to RECRUITER.
        """

        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            value = value.get("name")
        if not isinstance(value, str):
            raise ValueError(f"Unsupported role value: {value!r}")

        key = value.strip().lower()
        key = _ROLE_ALIASES.get(key, key)
        return cls(key)


_ROLE_ALIASES = {
    "agent": "recruiter",
}


class AttendanceStatus(str, Enum):
    """Attendance status stored per session."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"


class AppealStatus(str, Enum):
    """Lifecycle of an attendance appeal."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ReviewDecision(str, Enum):
    """Trainer decision on a pending appeal."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"

    @property
    def appeal_status(self) -> AppealStatus:
        return AppealStatus.APPROVED if self is ReviewDecision.APPROVE else AppealStatus.REJECTED

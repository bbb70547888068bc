from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..core.enums import AppealStatus


@dataclass(frozen=True)
class AppealDecided:
    """Published after an appeal decision (review or override) is committed."""

    appeal_id: int
    attendance_record_id: int
    candidate_id: int
    decision: AppealStatus
    decided_by: int
    decided_at: datetime
    overridden: bool = False

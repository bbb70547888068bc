from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Mapping, Optional

from ..core.enums import AppealStatus, AttendanceStatus

# A record may hold at most one appeal in one of these statuses.
ACTIVE_APPEAL_STATUSES = frozenset({AppealStatus.PENDING, AppealStatus.APPROVED})
DECIDED_APPEAL_STATUSES = frozenset({AppealStatus.APPROVED, AppealStatus.REJECTED})
REQUESTABLE_STATUSES = frozenset({AttendanceStatus.PRESENT, AttendanceStatus.EXCUSED, AttendanceStatus.LATE})


@dataclass(frozen=True)
class AttendanceAppeal:
    """Domain entity: a candidate's request to change one attendance status.

    ``course_id`` and ``trainer_id`` are joined from the appealed record's
    enrollment and are used for authorization only.
    """

    appeal_id: int
    attendance_record_id: int
    candidate_id: int
    original_status: AttendanceStatus
    requested_status: Optional[AttendanceStatus]
    reason: str
    supporting_documents: tuple[str, ...]
    status: AppealStatus
    created_at: datetime
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    reviewer_comments: Optional[str] = None
    course_id: Optional[int] = None
    trainer_id: Optional[int] = None


@dataclass(frozen=True)
class AppealListItem:
    """Read-model for appeal listings (joined with candidate, course and session)."""

    appeal: AttendanceAppeal
    candidate_name: Optional[str]
    course_title: Optional[str]
    session_date: Optional[date]
    session_number: Optional[int]
    attendance_status: Optional[AttendanceStatus]


@dataclass(frozen=True)
class AppealStatistics:
    total: int
    pending: int
    approved: int
    rejected: int
    cancelled: int

    @classmethod
    def from_counts(cls, counts: Mapping[AppealStatus, int]) -> "AppealStatistics":
        return cls(
            total=sum(int(v) for v in counts.values()),
            pending=int(counts.get(AppealStatus.PENDING, 0)),
            approved=int(counts.get(AppealStatus.APPROVED, 0)),
            rejected=int(counts.get(AppealStatus.REJECTED, 0)),
            cancelled=int(counts.get(AppealStatus.CANCELLED, 0)),
        )

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "pending": self.pending,
            "approved": self.approved,
            "rejected": self.rejected,
            "cancelled": self.cancelled,
        }

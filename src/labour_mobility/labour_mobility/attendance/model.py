from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class Enrollment:
    """A candidate's registration in a course, with the course trainer resolved."""

    enrollment_id: int
    candidate_id: int
    course_id: int
    trainer_id: int


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: attendance of one enrollment for one session.

    The enrollment's candidate, course and trainer are joined in so callers can
    authorize without a second lookup.
    """

    attendance_id: int
    enrollment_id: int
    candidate_id: int
    course_id: int
    trainer_id: int
    session_date: date
    session_number: int
    status: AttendanceStatus
    notes: Optional[str] = None
    marked_by: Optional[int] = None
    course_title: Optional[str] = None

    @property
    def is_appealable(self) -> bool:
        return self.status in APPEALABLE_STATUSES


APPEALABLE_STATUSES = frozenset({AttendanceStatus.ABSENT, AttendanceStatus.LATE})

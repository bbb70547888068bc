from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord, Enrollment


class AttendanceRepository(Protocol):
    def get_enrollment(self, enrollment_id: int) -> Optional[Enrollment]:
        raise NotImplementedError

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def upsert_session(
        self,
        *,
        enrollment_id: int,
        session_date: date,
        session_number: int,
        status: AttendanceStatus,
        notes: Optional[str],
        marked_by: int,
    ) -> int:
        """Create the session record, or update it in place if already marked."""

        raise NotImplementedError

    def update_status(self, *, attendance_id: int, status: AttendanceStatus) -> bool:
        raise NotImplementedError

    def list_for_candidate(
        self,
        *,
        candidate_id: int,
        course_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

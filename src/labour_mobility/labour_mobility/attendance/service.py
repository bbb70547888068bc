from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ..common.validators import optional_text, parse_enum, require_positive_int
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import AuthorizationError, NotFoundError
from .model import AttendanceRecord
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    """Use cases: trainers mark sessions, staff correct statuses, candidates read their own."""

    def __init__(self, attendance: AttendanceRepository):
        self._attendance = attendance

    @staticmethod
    def _ensure_can_manage(*, current_role: Role, user_id: int, trainer_id: int) -> None:
        if current_role == Role.ADMIN:
            return
        if current_role == Role.TRAINER and int(user_id) == int(trainer_id):
            return
        raise AuthorizationError("Only the course trainer or an admin can manage this attendance")

    def mark_attendance(
        self,
        *,
        current_role: Role,
        user_id: int,
        enrollment_id: int,
        session_date: date,
        session_number,
        status,
        notes: Optional[str] = None,
    ) -> AttendanceRecord:
        session_number = require_positive_int(session_number, "sessionNumber")
        status = parse_enum(AttendanceStatus, status, "status")

        enrollment = self._attendance.get_enrollment(int(enrollment_id))
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        self._ensure_can_manage(current_role=current_role, user_id=user_id, trainer_id=enrollment.trainer_id)

        attendance_id = self._attendance.upsert_session(
            enrollment_id=enrollment.enrollment_id,
            session_date=session_date,
            session_number=session_number,
            status=status,
            notes=optional_text(notes, "notes"),
            marked_by=int(user_id),
        )
        logger.info(
            "Attendance %s marked %s for enrollment %s session %s by user %s",
            attendance_id, status.value, enrollment.enrollment_id, session_number, user_id,
        )
        return self._get_or_raise(attendance_id)

    def update_status(
        self,
        *,
        current_role: Role,
        user_id: int,
        attendance_id: int,
        status,
    ) -> AttendanceRecord:
        status = parse_enum(AttendanceStatus, status, "status")

        record = self._get_or_raise(attendance_id)
        self._ensure_can_manage(current_role=current_role, user_id=user_id, trainer_id=record.trainer_id)

        if not self._attendance.update_status(attendance_id=record.attendance_id, status=status):
            raise NotFoundError("Attendance record not found")
        logger.info("Attendance %s set to %s by user %s", record.attendance_id, status.value, user_id)
        return self._get_or_raise(record.attendance_id)

    def list_for_candidate(self, *, candidate_id: int, course_id: Optional[int] = None) -> list[AttendanceRecord]:
        return list(
            self._attendance.list_for_candidate(
                candidate_id=int(candidate_id),
                course_id=course_id,
                limit=DEFAULT_LIST_LIMIT,
            )
        )

    def _get_or_raise(self, attendance_id: int) -> AttendanceRecord:
        record = self._attendance.get_by_id(int(attendance_id))
        if not record:
            raise NotFoundError("Attendance record not found")
        return record

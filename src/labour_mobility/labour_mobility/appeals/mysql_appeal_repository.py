from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence

import mysql.connector

from ..attendance.model import AttendanceRecord
from ..attendance.mysql_attendance_repository import ATTENDANCE_SELECT, attendance_from_row
from ..core.enums import AppealStatus, AttendanceStatus
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json_list, fetchall, fetchone, load_json_list
from .model import ACTIVE_APPEAL_STATUSES, AppealListItem, AttendanceAppeal
from .repository import AppealRepository, AppealTransaction


DUPLICATE_ENTRY_ERRNO = 1062

APPEAL_SELECT = """
    SELECT ap.appeal_id, ap.attendance_record_id, ap.candidate_id,
           ap.original_status, ap.requested_status, ap.reason, ap.supporting_documents,
           ap.status, ap.created_at, ap.reviewed_by, ap.reviewed_at, ap.reviewer_comments,
           e.course_id, c.trainer_id
    FROM attendance_appeals ap
    JOIN attendance_records a ON a.attendance_id = ap.attendance_record_id
    JOIN enrollments e ON e.enrollment_id = a.enrollment_id
    JOIN courses c ON c.course_id = e.course_id
"""


def appeal_from_row(r: Dict[str, Any]) -> AttendanceAppeal:
    requested = r.get("requested_status")
    return AttendanceAppeal(
        appeal_id=int(r["appeal_id"]),
        attendance_record_id=int(r["attendance_record_id"]),
        candidate_id=int(r["candidate_id"]),
        original_status=AttendanceStatus(r["original_status"]),
        requested_status=AttendanceStatus(requested) if requested else None,
        reason=r["reason"],
        supporting_documents=load_json_list(r.get("supporting_documents")),
        status=AppealStatus(r["status"]),
        created_at=r["created_at"],
        reviewed_by=r.get("reviewed_by"),
        reviewed_at=r.get("reviewed_at"),
        reviewer_comments=r.get("reviewer_comments"),
        course_id=r.get("course_id"),
        trainer_id=r.get("trainer_id"),
    )


class MySQLAppealTransaction(AppealTransaction):
    def __init__(self, cur):
        self._cur = cur

    def get_attendance_record(self, record_id: int, *, for_update: bool = False) -> Optional[AttendanceRecord]:
        sql = ATTENDANCE_SELECT + " WHERE a.attendance_id=%s"
        if for_update:
            sql += " FOR UPDATE OF a"
        self._cur.execute(sql, (int(record_id),))
        r = fetchone(self._cur)
        return attendance_from_row(r) if r else None

    def get_appeal(self, appeal_id: int, *, for_update: bool = False) -> Optional[AttendanceAppeal]:
        sql = APPEAL_SELECT + " WHERE ap.appeal_id=%s"
        if for_update:
            sql += " FOR UPDATE OF ap"
        self._cur.execute(sql, (int(appeal_id),))
        r = fetchone(self._cur)
        return appeal_from_row(r) if r else None

    def find_active_appeal_for_record(
        self,
        record_id: int,
        *,
        exclude_appeal_id: Optional[int] = None,
    ) -> Optional[AttendanceAppeal]:
        statuses = sorted(s.value for s in ACTIVE_APPEAL_STATUSES)
        clauses = ["ap.attendance_record_id=%s", "ap.status IN (%s,%s)"]
        params: list[object] = [int(record_id), *statuses]
        if exclude_appeal_id is not None:
            clauses.append("ap.appeal_id<>%s")
            params.append(int(exclude_appeal_id))

        self._cur.execute(
            APPEAL_SELECT + " WHERE " + " AND ".join(clauses) + " ORDER BY ap.appeal_id DESC LIMIT 1",
            tuple(params),
        )
        r = fetchone(self._cur)
        return appeal_from_row(r) if r else None

    def create_appeal(
        self,
        *,
        attendance_record_id: int,
        candidate_id: int,
        original_status: AttendanceStatus,
        requested_status: Optional[AttendanceStatus],
        reason: str,
        supporting_documents: Sequence[str],
    ) -> int:
        try:
            self._cur.execute(
                """
                INSERT INTO attendance_appeals(
                    attendance_record_id, candidate_id, original_status, requested_status,
                    reason, supporting_documents, status
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(attendance_record_id),
                    int(candidate_id),
                    original_status.value,
                    requested_status.value if requested_status else None,
                    reason,
                    dump_json_list(supporting_documents),
                    AppealStatus.PENDING.value,
                ),
            )
        except mysql.connector.IntegrityError as e:
            # uq_active_appeal: another transaction won the race for this record.
            if e.errno == DUPLICATE_ENTRY_ERRNO:
                raise ConflictError("An appeal for this attendance record is already pending or approved") from e
            raise
        return int(self._cur.lastrowid)

    def update_appeal_status(
        self,
        *,
        appeal_id: int,
        expected_status: AppealStatus,
        status: AppealStatus,
        reviewed_by: Optional[int],
        reviewed_at: Optional[datetime],
        reviewer_comments: Optional[str],
    ) -> bool:
        try:
            self._cur.execute(
                """
                UPDATE attendance_appeals
                SET status=%s, reviewed_by=%s, reviewed_at=%s, reviewer_comments=%s
                WHERE appeal_id=%s AND status=%s
                """,
                (
                    status.value,
                    reviewed_by,
                    reviewed_at,
                    reviewer_comments,
                    int(appeal_id),
                    expected_status.value,
                ),
            )
        except mysql.connector.IntegrityError as e:
            if e.errno == DUPLICATE_ENTRY_ERRNO:
                raise ConflictError("Another appeal for this attendance record is already pending or approved") from e
            raise
        return self._cur.rowcount > 0

    def update_attendance_status(self, *, attendance_id: int, status: AttendanceStatus) -> bool:
        self._cur.execute(
            "UPDATE attendance_records SET status=%s WHERE attendance_id=%s",
            (status.value, int(attendance_id)),
        )
        if self._cur.rowcount > 0:
            return True
        # Unchanged status reports zero affected rows.
        self._cur.execute("SELECT 1 AS found FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
        return fetchone(self._cur) is not None


class MySQLAppealRepository(AppealRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @contextmanager
    def transaction(self) -> Iterator[MySQLAppealTransaction]:
        with db_cursor(self._conn_factory) as (_, cur):
            yield MySQLAppealTransaction(cur)

    def list_appeals(
        self,
        *,
        status: Optional[AppealStatus] = None,
        candidate_id: Optional[int] = None,
        trainer_id: Optional[int] = None,
        course_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[AppealListItem]:
        clauses = ["1=1"]
        params: list[object] = []

        if status is not None:
            clauses.append("ap.status=%s")
            params.append(status.value)
        if candidate_id is not None:
            clauses.append("ap.candidate_id=%s")
            params.append(int(candidate_id))
        if trainer_id is not None:
            clauses.append("c.trainer_id=%s")
            params.append(int(trainer_id))
        if course_id is not None:
            clauses.append("e.course_id=%s")
            params.append(int(course_id))

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT ap.appeal_id, ap.attendance_record_id, ap.candidate_id,
                       ap.original_status, ap.requested_status, ap.reason, ap.supporting_documents,
                       ap.status, ap.created_at, ap.reviewed_by, ap.reviewed_at, ap.reviewer_comments,
                       e.course_id, c.trainer_id, c.title AS course_title,
                       u.full_name AS candidate_name,
                       a.session_date, a.session_number, a.status AS attendance_status
                FROM attendance_appeals ap
                JOIN attendance_records a ON a.attendance_id = ap.attendance_record_id
                JOIN enrollments e ON e.enrollment_id = a.enrollment_id
                JOIN courses c ON c.course_id = e.course_id
                JOIN users u ON u.user_id = ap.candidate_id
                WHERE {where}
                ORDER BY ap.created_at DESC, ap.appeal_id DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [
                AppealListItem(
                    appeal=appeal_from_row(r),
                    candidate_name=r.get("candidate_name"),
                    course_title=r.get("course_title"),
                    session_date=r.get("session_date"),
                    session_number=r.get("session_number"),
                    attendance_status=AttendanceStatus(r["attendance_status"]) if r.get("attendance_status") else None,
                )
                for r in fetchall(cur)
            ]

    def count_by_status(self) -> Mapping[AppealStatus, int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT status, COUNT(*) AS n FROM attendance_appeals GROUP BY status")
            return {AppealStatus(r["status"]): int(r["n"]) for r in fetchall(cur)}

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceRecord, Enrollment
from .repository import AttendanceRepository

ATTENDANCE_SELECT = """
    SELECT a.attendance_id, a.enrollment_id, e.candidate_id, e.course_id,
           c.trainer_id, c.title AS course_title,
           a.session_date, a.session_number, a.status, a.notes, a.marked_by
    FROM attendance_records a
    JOIN enrollments e ON e.enrollment_id = a.enrollment_id
    JOIN courses c ON c.course_id = e.course_id
"""


def attendance_from_row(r: Dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        enrollment_id=int(r["enrollment_id"]),
        candidate_id=int(r["candidate_id"]),
        course_id=int(r["course_id"]),
        trainer_id=int(r["trainer_id"]),
        session_date=r["session_date"],
        session_number=int(r["session_number"]),
        status=AttendanceStatus(r["status"]),
        notes=r.get("notes"),
        marked_by=r.get("marked_by"),
        course_title=r.get("course_title"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_enrollment(self, enrollment_id: int) -> Optional[Enrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT e.enrollment_id, e.candidate_id, e.course_id, c.trainer_id
                FROM enrollments e
                JOIN courses c ON c.course_id = e.course_id
                WHERE e.enrollment_id=%s
                """,
                (int(enrollment_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Enrollment(
                enrollment_id=int(r["enrollment_id"]),
                candidate_id=int(r["candidate_id"]),
                course_id=int(r["course_id"]),
                trainer_id=int(r["trainer_id"]),
            )

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(ATTENDANCE_SELECT + " WHERE a.attendance_id=%s", (int(attendance_id),))
            r = fetchone(cur)
            return attendance_from_row(r) if r else None

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
        with db_cursor(self._conn_factory) as (_, cur):
            # LAST_INSERT_ID(expr) makes lastrowid point at the updated row on duplicates.
            cur.execute(
                """
                INSERT INTO attendance_records(enrollment_id, session_date, session_number, status, notes, marked_by)
                VALUES(%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    attendance_id=LAST_INSERT_ID(attendance_id),
                    session_date=VALUES(session_date),
                    status=VALUES(status),
                    notes=VALUES(notes),
                    marked_by=VALUES(marked_by)
                """,
                (int(enrollment_id), session_date, int(session_number), status.value, notes, int(marked_by)),
            )
            return int(cur.lastrowid)

    def update_status(self, *, attendance_id: int, status: AttendanceStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_records SET status=%s WHERE attendance_id=%s",
                (status.value, int(attendance_id)),
            )
            # rowcount is 0 when the status is unchanged, so confirm existence separately.
            if cur.rowcount > 0:
                return True
            cur.execute("SELECT 1 AS found FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            return fetchone(cur) is not None

    def list_for_candidate(
        self,
        *,
        candidate_id: int,
        course_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[AttendanceRecord]:
        clauses = ["e.candidate_id=%s"]
        params: list[object] = [int(candidate_id)]
        if course_id is not None:
            clauses.append("e.course_id=%s")
            params.append(int(course_id))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                ATTENDANCE_SELECT
                + f"""
                WHERE {where}
                ORDER BY a.session_date DESC, a.session_number DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [attendance_from_row(r) for r in fetchall(cur)]

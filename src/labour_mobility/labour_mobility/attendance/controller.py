from __future__ import annotations

from flask import Flask, request

from ..auth.guards import current_caller, make_role_guard
from ..common.datetime_utils import iso_or_none, parse_iso_date
from ..common.http import json_body, ok
from ..common.validators import require_positive_int
from ..core.enums import Role
from ..container import Container
from .model import AttendanceRecord


def record_to_dict(record: AttendanceRecord) -> dict:
    return {
        "id": record.attendance_id,
        "enrollmentId": record.enrollment_id,
        "candidateId": record.candidate_id,
        "courseId": record.course_id,
        "courseTitle": record.course_title,
        "sessionDate": iso_or_none(record.session_date),
        "sessionNumber": record.session_number,
        "status": record.status.value,
        "notes": record.notes,
        "markedBy": record.marked_by,
        "appealable": record.is_appealable,
    }


def register(app: Flask, container: Container) -> None:
    roles_required = make_role_guard(container.authenticator)
    service = container.attendance_service

    @app.route("/candidate/attendance", methods=["GET"], endpoint="my_attendance")
    @roles_required(Role.CANDIDATE)
    def my_attendance():
        caller = current_caller()
        course_id = request.args.get("courseId")
        records = service.list_for_candidate(
            candidate_id=caller.user_id,
            course_id=require_positive_int(course_id, "courseId") if course_id else None,
        )
        return ok([record_to_dict(r) for r in records])

    @app.route("/trainer/attendance", methods=["POST"], endpoint="mark_attendance")
    @roles_required(Role.TRAINER, Role.ADMIN)
    def mark_attendance():
        caller = current_caller()
        body = json_body()
        record = service.mark_attendance(
            current_role=caller.role,
            user_id=caller.user_id,
            enrollment_id=require_positive_int(body.get("enrollmentId"), "enrollmentId"),
            session_date=parse_iso_date(body.get("sessionDate", "")),
            session_number=body.get("sessionNumber"),
            status=body.get("status"),
            notes=body.get("notes"),
        )
        return ok(record_to_dict(record), status=201, message="Attendance marked")

    @app.route("/trainer/attendance/<int:attendance_id>", methods=["PUT"], endpoint="update_attendance")
    @roles_required(Role.TRAINER, Role.ADMIN)
    def update_attendance(attendance_id: int):
        caller = current_caller()
        body = json_body()
        record = service.update_status(
            current_role=caller.role,
            user_id=caller.user_id,
            attendance_id=attendance_id,
            status=body.get("status"),
        )
        return ok(record_to_dict(record), message="Attendance updated")

from __future__ import annotations

from flask import Flask, request

from ..auth.guards import current_caller, make_role_guard
from ..common.datetime_utils import iso_or_none
from ..common.http import json_body, ok
from ..core.enums import Role
from ..container import Container
from .model import AppealListItem, AttendanceAppeal


def appeal_to_dict(appeal: AttendanceAppeal) -> dict:
    return {
        "id": appeal.appeal_id,
        "attendanceRecordId": appeal.attendance_record_id,
        "candidateId": appeal.candidate_id,
        "courseId": appeal.course_id,
        "originalStatus": appeal.original_status.value,
        "requestedStatus": appeal.requested_status.value if appeal.requested_status else None,
        "reason": appeal.reason,
        "supportingDocuments": list(appeal.supporting_documents),
        "status": appeal.status.value,
        "reviewedBy": appeal.reviewed_by,
        "reviewedAt": iso_or_none(appeal.reviewed_at),
        "reviewerComments": appeal.reviewer_comments,
        "createdAt": iso_or_none(appeal.created_at),
    }


def appeal_item_to_dict(item: AppealListItem) -> dict:
    data = appeal_to_dict(item.appeal)
    data.update(
        {
            "candidateName": item.candidate_name,
            "courseTitle": item.course_title,
            "sessionDate": iso_or_none(item.session_date),
            "sessionNumber": item.session_number,
            "attendanceStatus": item.attendance_status.value if item.attendance_status else None,
        }
    )
    return data


def register(app: Flask, container: Container) -> None:
    roles_required = make_role_guard(container.authenticator)
    workflow = container.appeal_workflow

    # -------- Candidate --------
    @app.route("/candidate/attendance/<int:attendance_id>/appeal", methods=["POST"], endpoint="submit_appeal")
    @roles_required(Role.CANDIDATE)
    def submit_appeal(attendance_id: int):
        caller = current_caller()
        body = json_body()
        appeal = workflow.submit_appeal(
            current_role=caller.role,
            candidate_id=caller.user_id,
            attendance_record_id=attendance_id,
            reason=body.get("reason", ""),
            requested_status=body.get("requestedStatus"),
            supporting_documents=body.get("supportingDocuments"),
        )
        return ok(appeal_to_dict(appeal), status=201, message="Appeal submitted successfully")

    @app.route("/candidate/attendance/appeals", methods=["GET"], endpoint="my_appeals")
    @roles_required(Role.CANDIDATE)
    def my_appeals():
        caller = current_caller()
        items = workflow.list_candidate_appeals(
            candidate_id=caller.user_id,
            status=request.args.get("status"),
            course_id=request.args.get("courseId"),
        )
        return ok([appeal_item_to_dict(i) for i in items])

    @app.route("/candidate/attendance/appeals/<int:appeal_id>", methods=["DELETE"], endpoint="cancel_appeal")
    @roles_required(Role.CANDIDATE)
    def cancel_appeal(appeal_id: int):
        caller = current_caller()
        appeal = workflow.cancel_appeal(
            current_role=caller.role,
            candidate_id=caller.user_id,
            appeal_id=appeal_id,
        )
        return ok(appeal_to_dict(appeal), message="Appeal cancelled successfully")

    # -------- Trainer --------
    @app.route("/trainer/attendance/appeals", methods=["GET"], endpoint="trainer_appeals")
    @roles_required(Role.TRAINER)
    def trainer_appeals():
        caller = current_caller()
        items = workflow.list_trainer_appeals(
            trainer_id=caller.user_id,
            status=request.args.get("status"),
            course_id=request.args.get("courseId"),
        )
        return ok([appeal_item_to_dict(i) for i in items])

    @app.route("/trainer/attendance/appeals/<int:appeal_id>/review", methods=["PUT"], endpoint="review_appeal")
    @roles_required(Role.TRAINER)
    def review_appeal(appeal_id: int):
        caller = current_caller()
        body = json_body()
        appeal = workflow.review_appeal(
            current_role=caller.role,
            trainer_id=caller.user_id,
            appeal_id=appeal_id,
            decision=body.get("decision"),
            reviewer_comments=body.get("reviewerComments"),
            new_status=body.get("newStatus"),
        )
        return ok(appeal_to_dict(appeal), message=f"Appeal {appeal.status.value.lower()}")

    # -------- Admin --------
    @app.route("/admin/attendance/appeals", methods=["GET"], endpoint="admin_appeals")
    @roles_required(Role.ADMIN)
    def admin_appeals():
        result = workflow.list_admin_appeals(
            status=request.args.get("status"),
            course_id=request.args.get("courseId"),
        )
        return ok(
            [appeal_item_to_dict(i) for i in result["appeals"]],
            statistics=result["statistics"].as_dict(),
        )

    @app.route("/admin/attendance/appeals/<int:appeal_id>/override", methods=["PUT"], endpoint="override_appeal")
    @roles_required(Role.ADMIN)
    def override_appeal(appeal_id: int):
        caller = current_caller()
        body = json_body()
        appeal = workflow.override_appeal(
            current_role=caller.role,
            admin_id=caller.user_id,
            appeal_id=appeal_id,
            decision=body.get("decision"),
            comments=body.get("comments", ""),
            new_status=body.get("newStatus"),
        )
        return ok(appeal_to_dict(appeal), message=f"Appeal overridden to {appeal.status.value}")

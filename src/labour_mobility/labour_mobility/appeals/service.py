from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import (
    optional_text,
    parse_enum,
    parse_optional_enum,
    require_length_between,
    require_non_empty,
)
from ..core.constants import (
    DEFAULT_LIST_LIMIT,
    MAX_APPEAL_REASON_LENGTH,
    MAX_SUPPORTING_DOCUMENTS,
    MIN_APPEAL_REASON_LENGTH,
    OVERRIDE_COMMENT_PREFIX,
)
from ..core.enums import AppealStatus, AttendanceStatus, ReviewDecision, Role
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from ..notifications.events import AppealDecided
from ..notifications.sink import NotificationSink
from .model import (
    DECIDED_APPEAL_STATUSES,
    REQUESTABLE_STATUSES,
    AppealListItem,
    AppealStatistics,
    AttendanceAppeal,
)
from .repository import AppealRepository, AppealTransaction

logger = logging.getLogger(__name__)

_DECISION_ALIASES = {
    "APPROVED": "APPROVE",
    "REJECTED": "REJECT",
}


class AppealWorkflow:
    """Use cases: submit, review, cancel and override attendance appeals.

    Every mutating call runs inside one ``AppealRepository.transaction()``. The
    appealed attendance row is locked before the appeal row so that submits
    and decisions on the same record serialize in the same order.
    """

    def __init__(self, appeals: AppealRepository, notifier: NotificationSink):
        self._appeals = appeals
        self._notifier = notifier

    # -------- Candidate --------
    def submit_appeal(
        self,
        *,
        current_role: Role,
        candidate_id: int,
        attendance_record_id: int,
        reason: str,
        requested_status=None,
        supporting_documents: Optional[Sequence[str]] = None,
    ) -> AttendanceAppeal:
        if current_role != Role.CANDIDATE:
            raise AuthorizationError("Only candidates can submit attendance appeals")

        reason = require_length_between(reason, "Reason", MIN_APPEAL_REASON_LENGTH, MAX_APPEAL_REASON_LENGTH)
        requested = parse_optional_enum(AttendanceStatus, requested_status, "requestedStatus")
        if requested is not None and requested not in REQUESTABLE_STATUSES:
            raise ValidationError("requestedStatus must be one of: PRESENT, EXCUSED, LATE")
        documents = self._clean_documents(supporting_documents)

        with self._appeals.transaction() as tx:
            record = tx.get_attendance_record(int(attendance_record_id), for_update=True)
            if not record or record.candidate_id != int(candidate_id):
                raise NotFoundError("Attendance record not found")
            if not record.is_appealable:
                raise ValidationError(f"Attendance marked {record.status.value} cannot be appealed")
            if requested == record.status:
                raise ValidationError("requestedStatus must differ from the current attendance status")
            if tx.find_active_appeal_for_record(record.attendance_id):
                raise ConflictError("An appeal for this attendance record is already pending or approved")

            appeal_id = tx.create_appeal(
                attendance_record_id=record.attendance_id,
                candidate_id=int(candidate_id),
                original_status=record.status,
                requested_status=requested,
                reason=reason,
                supporting_documents=documents,
            )
            appeal = tx.get_appeal(appeal_id)

        logger.info(
            "Appeal %s submitted by candidate %s for attendance %s (%s)",
            appeal.appeal_id, candidate_id, appeal.attendance_record_id, appeal.original_status.value,
        )
        return appeal

    def cancel_appeal(self, *, current_role: Role, candidate_id: int, appeal_id: int) -> AttendanceAppeal:
        if current_role != Role.CANDIDATE:
            raise AuthorizationError("Only candidates can cancel attendance appeals")

        with self._appeals.transaction() as tx:
            appeal = self._lock_appeal(tx, appeal_id)
            if appeal.candidate_id != int(candidate_id):
                raise AuthorizationError("You can only cancel your own appeals")
            if appeal.status != AppealStatus.PENDING:
                raise StateError(f"Only pending appeals can be cancelled (appeal is {appeal.status.value})")

            self._transition(
                tx,
                appeal,
                AppealStatus.CANCELLED,
                reviewed_by=appeal.reviewed_by,
                reviewed_at=appeal.reviewed_at,
                reviewer_comments=appeal.reviewer_comments,
            )
            appeal = tx.get_appeal(appeal.appeal_id)

        logger.info("Appeal %s cancelled by candidate %s", appeal.appeal_id, candidate_id)
        return appeal

    # -------- Trainer --------
    def review_appeal(
        self,
        *,
        current_role: Role,
        trainer_id: int,
        appeal_id: int,
        decision,
        reviewer_comments: Optional[str] = None,
        new_status=None,
    ) -> AttendanceAppeal:
        if current_role != Role.TRAINER:
            raise AuthorizationError("Only trainers can review attendance appeals")

        decision = self._parse_decision(decision)
        new_status = parse_optional_enum(AttendanceStatus, new_status, "newStatus")
        comments = optional_text(reviewer_comments, "reviewerComments")
        target = decision.appeal_status
        decided_at = now_local()

        with self._appeals.transaction() as tx:
            appeal = self._lock_appeal(tx, appeal_id)
            if appeal.trainer_id != int(trainer_id):
                raise AuthorizationError("You do not teach the course for this appeal")
            if appeal.status != AppealStatus.PENDING:
                raise StateError(f"Appeal has already been decided ({appeal.status.value})")

            self._transition(
                tx,
                appeal,
                target,
                reviewed_by=int(trainer_id),
                reviewed_at=decided_at,
                reviewer_comments=comments,
            )
            if target == AppealStatus.APPROVED:
                self._apply_approval(tx, appeal, new_status)
            appeal = tx.get_appeal(appeal.appeal_id)

        logger.info("Appeal %s %s by trainer %s", appeal.appeal_id, target.value, trainer_id)
        self._notify(appeal, decided_by=int(trainer_id), decided_at=decided_at, overridden=False)
        return appeal

    # -------- Admin --------
    def override_appeal(
        self,
        *,
        current_role: Role,
        admin_id: int,
        appeal_id: int,
        decision,
        comments: str,
        new_status=None,
    ) -> AttendanceAppeal:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can override appeal decisions")

        target = self._parse_decision(decision).appeal_status
        comments = require_non_empty(comments, "Comments")
        new_status = parse_optional_enum(AttendanceStatus, new_status, "newStatus")
        decided_at = now_local()

        with self._appeals.transaction() as tx:
            appeal = self._lock_appeal(tx, appeal_id)
            if appeal.status == AppealStatus.PENDING:
                raise StateError("Pending appeals must be reviewed by the trainer, not overridden")
            if appeal.status not in DECIDED_APPEAL_STATUSES:
                raise StateError(f"Appeal is {appeal.status.value} and cannot be overridden")

            if target == AppealStatus.APPROVED and appeal.status != AppealStatus.APPROVED:
                other = tx.find_active_appeal_for_record(
                    appeal.attendance_record_id,
                    exclude_appeal_id=appeal.appeal_id,
                )
                if other:
                    raise ConflictError(
                        f"Appeal {other.appeal_id} is already {other.status.value} for this attendance record"
                    )

            self._transition(
                tx,
                appeal,
                target,
                reviewed_by=int(admin_id),
                reviewed_at=decided_at,
                reviewer_comments=self._merge_override_comments(appeal.reviewer_comments, comments),
            )
            # Switching APPROVED -> REJECTED leaves the attendance record as the approval set it.
            if target == AppealStatus.APPROVED:
                self._apply_approval(tx, appeal, new_status)
            previous = appeal.status
            appeal = tx.get_appeal(appeal.appeal_id)

        logger.info(
            "Appeal %s overridden %s -> %s by admin %s",
            appeal.appeal_id, previous.value, target.value, admin_id,
        )
        self._notify(appeal, decided_by=int(admin_id), decided_at=decided_at, overridden=True)
        return appeal

    # -------- Listings --------
    def list_candidate_appeals(self, *, candidate_id: int, status=None, course_id=None) -> list[AppealListItem]:
        return self._list(candidate_id=int(candidate_id), status=status, course_id=course_id)

    def list_trainer_appeals(self, *, trainer_id: int, status=None, course_id=None) -> list[AppealListItem]:
        return self._list(trainer_id=int(trainer_id), status=status, course_id=course_id)

    def list_admin_appeals(self, *, status=None, course_id=None) -> dict:
        return {
            "appeals": self._list(status=status, course_id=course_id),
            "statistics": self.get_statistics(),
        }

    def get_statistics(self) -> AppealStatistics:
        return AppealStatistics.from_counts(self._appeals.count_by_status())

    # -------- Helpers --------
    def _list(self, *, status=None, course_id=None, candidate_id=None, trainer_id=None) -> list[AppealListItem]:
        status = parse_optional_enum(AppealStatus, status, "status")
        course_id = self._parse_optional_id(course_id, "courseId")
        return list(
            self._appeals.list_appeals(
                status=status,
                candidate_id=candidate_id,
                trainer_id=trainer_id,
                course_id=course_id,
                limit=DEFAULT_LIST_LIMIT,
            )
        )

    @staticmethod
    def _lock_appeal(tx: AppealTransaction, appeal_id: int) -> AttendanceAppeal:
        appeal = tx.get_appeal(int(appeal_id))
        if not appeal:
            raise NotFoundError("Appeal not found")
        tx.get_attendance_record(appeal.attendance_record_id, for_update=True)
        # Re-read under lock; the status may have moved since the first read.
        appeal = tx.get_appeal(appeal.appeal_id, for_update=True)
        if not appeal:
            raise NotFoundError("Appeal not found")
        return appeal

    @staticmethod
    def _transition(
        tx: AppealTransaction,
        appeal: AttendanceAppeal,
        status: AppealStatus,
        *,
        reviewed_by: Optional[int],
        reviewed_at: Optional[datetime],
        reviewer_comments: Optional[str],
    ) -> None:
        updated = tx.update_appeal_status(
            appeal_id=appeal.appeal_id,
            expected_status=appeal.status,
            status=status,
            reviewed_by=reviewed_by,
            reviewed_at=reviewed_at,
            reviewer_comments=reviewer_comments,
        )
        if not updated:
            raise StateError("Appeal was changed by another request; reload and try again")

    @staticmethod
    def _apply_approval(
        tx: AppealTransaction,
        appeal: AttendanceAppeal,
        new_status: Optional[AttendanceStatus],
    ) -> None:
        # Explicit reviewer status wins over the candidate's request.
        target = new_status or appeal.requested_status
        if target is None:
            return
        if not tx.update_attendance_status(attendance_id=appeal.attendance_record_id, status=target):
            raise NotFoundError("Attendance record not found")

    @staticmethod
    def _parse_decision(value) -> ReviewDecision:
        if isinstance(value, ReviewDecision):
            return value
        if isinstance(value, AppealStatus):
            value = value.value
        key = str(value or "").strip().upper()
        return parse_enum(ReviewDecision, _DECISION_ALIASES.get(key, key), "decision")

    @staticmethod
    def _parse_optional_id(value, field_name: str) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field_name} must be an integer")

    @staticmethod
    def _clean_documents(documents: Optional[Sequence[str]]) -> tuple[str, ...]:
        if documents is None:
            return ()
        if isinstance(documents, str) or not isinstance(documents, (list, tuple)):
            raise ValidationError("supportingDocuments must be a list of file references")
        cleaned = []
        for doc in documents:
            if not isinstance(doc, str) or not doc.strip():
                raise ValidationError("supportingDocuments entries must be non-empty strings")
            cleaned.append(doc.strip())
        if len(cleaned) > MAX_SUPPORTING_DOCUMENTS:
            raise ValidationError(f"At most {MAX_SUPPORTING_DOCUMENTS} supporting documents are allowed")
        return tuple(cleaned)

    @staticmethod
    def _merge_override_comments(existing: Optional[str], comments: str) -> str:
        line = f"{OVERRIDE_COMMENT_PREFIX} {comments}"
        return f"{existing}\n{line}" if existing else line

    def _notify(self, appeal: AttendanceAppeal, *, decided_by: int, decided_at: datetime, overridden: bool) -> None:
        event = AppealDecided(
            appeal_id=appeal.appeal_id,
            attendance_record_id=appeal.attendance_record_id,
            candidate_id=appeal.candidate_id,
            decision=appeal.status,
            decided_by=decided_by,
            decided_at=decided_at,
            overridden=overridden,
        )
        try:
            self._notifier.publish(event)
        except Exception:
            # The decision is already committed; delivery failures must not undo it.
            logger.exception("Failed to publish decision for appeal %s", appeal.appeal_id)

from __future__ import annotations

from datetime import datetime
from typing import ContextManager, Mapping, Optional, Protocol, Sequence

from ..attendance.model import AttendanceRecord
from ..core.enums import AppealStatus, AttendanceStatus
from .model import AppealListItem, AttendanceAppeal


class AppealTransaction(Protocol):
    """Reads and writes that share one database transaction.

    ``for_update`` reads take a row lock held until the transaction ends.
    """

    def get_attendance_record(self, record_id: int, *, for_update: bool = False) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_appeal(self, appeal_id: int, *, for_update: bool = False) -> Optional[AttendanceAppeal]:
        raise NotImplementedError

    def find_active_appeal_for_record(
        self,
        record_id: int,
        *,
        exclude_appeal_id: Optional[int] = None,
    ) -> Optional[AttendanceAppeal]:
        """Return the PENDING or APPROVED appeal on a record, if any."""

        raise NotImplementedError

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
        raise NotImplementedError

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
        """Write the new status only if the row still has ``expected_status``."""

        raise NotImplementedError

    def update_attendance_status(self, *, attendance_id: int, status: AttendanceStatus) -> bool:
        raise NotImplementedError


class AppealRepository(Protocol):
    def transaction(self) -> ContextManager[AppealTransaction]:
        """Commit on normal exit, roll back when the block raises."""

        raise NotImplementedError

    def list_appeals(
        self,
        *,
        status: Optional[AppealStatus] = None,
        candidate_id: Optional[int] = None,
        trainer_id: Optional[int] = None,
        course_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[AppealListItem]:
        raise NotImplementedError

    def count_by_status(self) -> Mapping[AppealStatus, int]:
        raise NotImplementedError

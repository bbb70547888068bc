from __future__ import annotations

import copy
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Optional

import pytest

from src.labour_mobility.labour_mobility.appeals.model import (
    ACTIVE_APPEAL_STATUSES,
    AppealListItem,
    AttendanceAppeal,
)
from src.labour_mobility.labour_mobility.appeals.service import AppealWorkflow
from src.labour_mobility.labour_mobility.attendance.model import AttendanceRecord, Enrollment
from src.labour_mobility.labour_mobility.core.enums import AppealStatus, AttendanceStatus, Role
from src.labour_mobility.labour_mobility.users.model import User

ADMIN_ID = 1
TRAINER_ID = 2
OTHER_TRAINER_ID = 3
CANDIDATE_ID = 4
OTHER_CANDIDATE_ID = 5
INACTIVE_CANDIDATE_ID = 6

WELDING_COURSE_ID = 10
CAREGIVING_COURSE_ID = 11

ABSENT_RECORD_ID = 1000
LATE_RECORD_ID = 1001
PRESENT_RECORD_ID = 1002
EXCUSED_RECORD_ID = 1003
OTHER_CANDIDATE_RECORD_ID = 1004
CAREGIVING_RECORD_ID = 1005


class InMemoryStore:
    def __init__(self):
        self.users: dict[int, User] = {}
        self.courses: dict[int, dict] = {}
        self.enrollments: dict[int, Enrollment] = {}
        self.records: dict[int, dict] = {}
        self.appeals: dict[int, AttendanceAppeal] = {}
        self.next_record_id = 2000
        self.next_appeal_id = 1
        self.clock = datetime(2026, 3, 2, 9, 0, 0)

    def add_user(self, user_id: int, name: str, role: Role, *, is_active: bool = True) -> None:
        self.users[user_id] = User(
            user_id=user_id,
            full_name=name,
            email=f"user{user_id}@example.org",
            role=role,
            is_active=is_active,
        )

    def add_course(self, course_id: int, title: str, trainer_id: int) -> None:
        self.courses[course_id] = {"title": title, "trainer_id": trainer_id}

    def add_enrollment(self, enrollment_id: int, candidate_id: int, course_id: int) -> None:
        self.enrollments[enrollment_id] = Enrollment(
            enrollment_id=enrollment_id,
            candidate_id=candidate_id,
            course_id=course_id,
            trainer_id=self.courses[course_id]["trainer_id"],
        )

    def add_record(self, record_id: int, enrollment_id: int, session_number: int, status: AttendanceStatus) -> None:
        self.records[record_id] = {
            "attendance_id": record_id,
            "enrollment_id": enrollment_id,
            "session_date": date(2026, 3, session_number),
            "session_number": session_number,
            "status": status,
            "notes": None,
            "marked_by": self.courses[self.enrollments[enrollment_id].course_id]["trainer_id"],
        }

    def record(self, record_id: int) -> Optional[AttendanceRecord]:
        row = self.records.get(int(record_id))
        if not row:
            return None
        enrollment = self.enrollments[row["enrollment_id"]]
        return AttendanceRecord(
            candidate_id=enrollment.candidate_id,
            course_id=enrollment.course_id,
            trainer_id=enrollment.trainer_id,
            course_title=self.courses[enrollment.course_id]["title"],
            **row,
        )

    def appeal(self, appeal_id: int) -> Optional[AttendanceAppeal]:
        appeal = self.appeals.get(int(appeal_id))
        if not appeal:
            return None
        record = self.record(appeal.attendance_record_id)
        return replace(appeal, course_id=record.course_id, trainer_id=record.trainer_id)

    def tick(self) -> datetime:
        self.clock = self.clock + timedelta(minutes=1)
        return self.clock


class InMemoryUsers:
    def __init__(self, store: InMemoryStore):
        self._store = store

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._store.users.get(int(user_id))


class InMemoryAttendance:
    def __init__(self, store: InMemoryStore):
        self._store = store

    def get_enrollment(self, enrollment_id: int) -> Optional[Enrollment]:
        return self._store.enrollments.get(int(enrollment_id))

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return self._store.record(attendance_id)

    def upsert_session(self, *, enrollment_id, session_date, session_number, status, notes, marked_by) -> int:
        for row in self._store.records.values():
            if row["enrollment_id"] == enrollment_id and row["session_number"] == session_number:
                row.update(session_date=session_date, status=status, notes=notes, marked_by=marked_by)
                return row["attendance_id"]
        record_id = self._store.next_record_id
        self._store.next_record_id += 1
        self._store.records[record_id] = {
            "attendance_id": record_id,
            "enrollment_id": enrollment_id,
            "session_date": session_date,
            "session_number": session_number,
            "status": status,
            "notes": notes,
            "marked_by": marked_by,
        }
        return record_id

    def update_status(self, *, attendance_id, status) -> bool:
        row = self._store.records.get(int(attendance_id))
        if not row:
            return False
        row["status"] = status
        return True

    def list_for_candidate(self, *, candidate_id, course_id=None, limit=200):
        out = []
        for record_id in self._store.records:
            record = self._store.record(record_id)
            if record.candidate_id != candidate_id:
                continue
            if course_id is not None and record.course_id != course_id:
                continue
            out.append(record)
        out.sort(key=lambda r: (r.session_date, r.session_number), reverse=True)
        return out[:limit]


class InMemoryAppealTransaction:
    def __init__(self, store: InMemoryStore):
        self._store = store
        self.locked_records: list[int] = []
        self.locked_appeals: list[int] = []

    def get_attendance_record(self, record_id, *, for_update=False):
        if for_update:
            self.locked_records.append(int(record_id))
        return self._store.record(record_id)

    def get_appeal(self, appeal_id, *, for_update=False):
        if for_update:
            self.locked_appeals.append(int(appeal_id))
        return self._store.appeal(appeal_id)

    def find_active_appeal_for_record(self, record_id, *, exclude_appeal_id=None):
        for appeal in self._store.appeals.values():
            if appeal.attendance_record_id != int(record_id) or appeal.appeal_id == exclude_appeal_id:
                continue
            if appeal.status in ACTIVE_APPEAL_STATUSES:
                return self._store.appeal(appeal.appeal_id)
        return None

    def create_appeal(self, *, attendance_record_id, candidate_id, original_status, requested_status, reason,
                      supporting_documents) -> int:
        appeal_id = self._store.next_appeal_id
        self._store.next_appeal_id += 1
        self._store.appeals[appeal_id] = AttendanceAppeal(
            appeal_id=appeal_id,
            attendance_record_id=attendance_record_id,
            candidate_id=candidate_id,
            original_status=original_status,
            requested_status=requested_status,
            reason=reason,
            supporting_documents=tuple(supporting_documents),
            status=AppealStatus.PENDING,
            created_at=self._store.tick(),
        )
        return appeal_id

    def update_appeal_status(self, *, appeal_id, expected_status, status, reviewed_by, reviewed_at,
                             reviewer_comments) -> bool:
        appeal = self._store.appeals.get(int(appeal_id))
        if not appeal or appeal.status != expected_status:
            return False
        self._store.appeals[appeal.appeal_id] = replace(
            appeal,
            status=status,
            reviewed_by=reviewed_by,
            reviewed_at=reviewed_at,
            reviewer_comments=reviewer_comments,
        )
        return True

    def update_attendance_status(self, *, attendance_id, status) -> bool:
        row = self._store.records.get(int(attendance_id))
        if not row:
            return False
        row["status"] = status
        return True


class InMemoryAppeals:
    def __init__(self, store: InMemoryStore):
        self._store = store
        self.transactions: list[InMemoryAppealTransaction] = []
        self.rollbacks = 0

    @contextmanager
    def transaction(self):
        snapshot = (copy.deepcopy(self._store.records), dict(self._store.appeals), self._store.next_appeal_id)
        tx = InMemoryAppealTransaction(self._store)
        self.transactions.append(tx)
        try:
            yield tx
        except Exception:
            self._store.records, self._store.appeals, self._store.next_appeal_id = snapshot
            self.rollbacks += 1
            raise

    def list_appeals(self, *, status=None, candidate_id=None, trainer_id=None, course_id=None, limit=200):
        out = []
        for appeal_id in sorted(self._store.appeals, reverse=True):
            appeal = self._store.appeal(appeal_id)
            if status is not None and appeal.status != status:
                continue
            if candidate_id is not None and appeal.candidate_id != candidate_id:
                continue
            if trainer_id is not None and appeal.trainer_id != trainer_id:
                continue
            if course_id is not None and appeal.course_id != course_id:
                continue
            record = self._store.record(appeal.attendance_record_id)
            out.append(
                AppealListItem(
                    appeal=appeal,
                    candidate_name=self._store.users[appeal.candidate_id].full_name,
                    course_title=record.course_title,
                    session_date=record.session_date,
                    session_number=record.session_number,
                    attendance_status=record.status,
                )
            )
        return out[:limit]

    def count_by_status(self):
        counts: dict[AppealStatus, int] = {}
        for appeal in self._store.appeals.values():
            counts[appeal.status] = counts.get(appeal.status, 0) + 1
        return counts


class RecordingSink:
    def __init__(self, *, fail: bool = False):
        self.events = []
        self._fail = fail

    def publish(self, event) -> None:
        if self._fail:
            raise RuntimeError("smtp relay down")
        self.events.append(event)


@pytest.fixture
def store() -> InMemoryStore:
    s = InMemoryStore()
    s.add_user(ADMIN_ID, "Ada Admin", Role.ADMIN)
    s.add_user(TRAINER_ID, "Tomas Trainer", Role.TRAINER)
    s.add_user(OTHER_TRAINER_ID, "Olga Trainer", Role.TRAINER)
    s.add_user(CANDIDATE_ID, "Chidi Candidate", Role.CANDIDATE)
    s.add_user(OTHER_CANDIDATE_ID, "Priya Candidate", Role.CANDIDATE)
    s.add_user(INACTIVE_CANDIDATE_ID, "Ivan Inactive", Role.CANDIDATE, is_active=False)

    s.add_course(WELDING_COURSE_ID, "Welding Level 1", TRAINER_ID)
    s.add_course(CAREGIVING_COURSE_ID, "Caregiving Basics", OTHER_TRAINER_ID)

    s.add_enrollment(100, CANDIDATE_ID, WELDING_COURSE_ID)
    s.add_enrollment(101, OTHER_CANDIDATE_ID, WELDING_COURSE_ID)
    s.add_enrollment(102, CANDIDATE_ID, CAREGIVING_COURSE_ID)

    s.add_record(ABSENT_RECORD_ID, 100, 1, AttendanceStatus.ABSENT)
    s.add_record(LATE_RECORD_ID, 100, 2, AttendanceStatus.LATE)
    s.add_record(PRESENT_RECORD_ID, 100, 3, AttendanceStatus.PRESENT)
    s.add_record(EXCUSED_RECORD_ID, 100, 4, AttendanceStatus.EXCUSED)
    s.add_record(OTHER_CANDIDATE_RECORD_ID, 101, 1, AttendanceStatus.ABSENT)
    s.add_record(CAREGIVING_RECORD_ID, 102, 1, AttendanceStatus.ABSENT)
    return s


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def appeals_repo(store) -> InMemoryAppeals:
    return InMemoryAppeals(store)


@pytest.fixture
def workflow(appeals_repo, sink) -> AppealWorkflow:
    return AppealWorkflow(appeals_repo, sink)

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .appeals.mysql_appeal_repository import MySQLAppealRepository
from .appeals.repository import AppealRepository
from .appeals.service import AppealWorkflow
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .auth.service import CallerAuthenticator
from .database.connection import DBConfig, DatabaseConnection
from .notifications.sink import LoggingNotificationSink, NotificationSink
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository


@dataclass(frozen=True)
class Container:
    users_repo: UserRepository
    attendance_repo: AttendanceRepository
    appeals_repo: AppealRepository
    notifier: NotificationSink

    authenticator: CallerAuthenticator
    attendance_service: AttendanceService
    appeal_workflow: AppealWorkflow

    conn: Optional[DatabaseConnection] = None


def build_services(
    *,
    users_repo: UserRepository,
    attendance_repo: AttendanceRepository,
    appeals_repo: AppealRepository,
    notifier: NotificationSink,
    jwt_secret_key: str,
    jwt_algorithm: str = "HS256",
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    return Container(
        users_repo=users_repo,
        attendance_repo=attendance_repo,
        appeals_repo=appeals_repo,
        notifier=notifier,
        authenticator=CallerAuthenticator(users_repo, secret_key=jwt_secret_key, algorithm=jwt_algorithm),
        attendance_service=AttendanceService(attendance_repo),
        appeal_workflow=AppealWorkflow(appeals_repo, notifier),
        conn=conn,
    )


def build_container(*, db_config: dict, jwt_secret_key: str, jwt_algorithm: str = "HS256") -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))

    return build_services(
        users_repo=MySQLUserRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        appeals_repo=MySQLAppealRepository(conn),
        notifier=LoggingNotificationSink(),
        jwt_secret_key=jwt_secret_key,
        jwt_algorithm=jwt_algorithm,
        conn=conn,
    )

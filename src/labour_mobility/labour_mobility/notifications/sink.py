from __future__ import annotations

import logging
from typing import Protocol

from .events import AppealDecided

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def publish(self, event: AppealDecided) -> None:
        raise NotImplementedError


class LoggingNotificationSink(NotificationSink):
    """Default sink: one INFO line per decision, for e-mail/in-app relays to tail."""

    def publish(self, event: AppealDecided) -> None:
        logger.info(
            "appeal_decided appeal_id=%s record_id=%s candidate_id=%s decision=%s decided_by=%s overridden=%s",
            event.appeal_id,
            event.attendance_record_id,
            event.candidate_id,
            event.decision.value,
            event.decided_by,
            event.overridden,
        )

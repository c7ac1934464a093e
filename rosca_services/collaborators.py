"""
Collaborator contracts -- activity feed and notification delivery.

The engine only knows these two narrow interfaces.  Messages reach them
after the unit of work that produced them has committed; delivery is
best-effort and a failing collaborator never undoes a payout.

Usage:
    ops = PoolOperations(activity_sink=MyFeed(), notifier=MyMailer())
"""

from __future__ import annotations

from typing import Protocol

from rosca_kernel.domain.outbox import ActivityEvent, Notice
from rosca_kernel.logging_config import get_logger

logger = get_logger("services.collaborators")


class ActivitySink(Protocol):
    """Receives auto-generated activity feed entries."""

    def post(self, event: ActivityEvent) -> None: ...


class Notifier(Protocol):
    """Delivers messages to pool members."""

    def notify(self, notice: Notice) -> None: ...


class LoggingActivitySink:
    """Default sink: writes each activity as a structured log line."""

    def post(self, event: ActivityEvent) -> None:
        logger.info(
            "activity_posted",
            extra={
                "pool_id": str(event.pool_id),
                "activity_type": event.activity_type.value,
                "occurred_at": event.occurred_at.isoformat(),
                "data": event.data,
            },
        )


class LoggingNotifier:
    """Default notifier: writes each notice as a structured log line."""

    def notify(self, notice: Notice) -> None:
        logger.info(
            "notice_sent",
            extra={
                "pool_id": str(notice.pool_id),
                "kind": notice.kind.value,
                "recipient_count": len(notice.recipients),
                "data": notice.data,
            },
        )

"""
Outbox -- activity events and notifications produced inside a unit of work.

Responsibility:
    Kernel services never call the activity feed or the notification
    service directly.  They append messages to an Outbox; the outer facade
    drains it only after the unit of work commits.  A rolled-back payout
    therefore never announces itself, and a failing feed never rolls back a
    payout.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class ActivityType(str, Enum):
    """Auto-generated activity feed entries."""

    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYOUT_SENT = "PAYOUT_SENT"
    MEMBER_JOINED = "MEMBER_JOINED"
    ROUND_STARTED = "ROUND_STARTED"


class NoticeKind(str, Enum):
    ROUND_ADVANCED = "ROUND_ADVANCED"
    PAYOUT_ISSUED = "PAYOUT_ISSUED"


@dataclass(frozen=True)
class ActivityEvent:
    """One entry for a pool's activity feed."""

    pool_id: UUID
    activity_type: ActivityType
    occurred_at: datetime
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Notice:
    """A message to deliver to one or more pool members."""

    pool_id: UUID
    kind: NoticeKind
    recipients: tuple[UUID, ...]
    data: dict[str, Any] = field(default_factory=dict)


class Outbox:
    """
    Ordered buffer of messages for one unit of work.

    Contract:
        Services ``record()``/``notify()``; the owner ``drain()``s after
        commit or ``discard()``s after rollback.

    Non-goals:
        - Not thread-safe.  One Outbox per unit of work.
    """

    def __init__(self) -> None:
        self._activities: list[ActivityEvent] = []
        self._notices: list[Notice] = []

    def record(self, event: ActivityEvent) -> None:
        self._activities.append(event)

    def notify(self, notice: Notice) -> None:
        self._notices.append(notice)

    @property
    def activities(self) -> tuple[ActivityEvent, ...]:
        return tuple(self._activities)

    @property
    def notices(self) -> tuple[Notice, ...]:
        return tuple(self._notices)

    def drain(self) -> tuple[tuple[ActivityEvent, ...], tuple[Notice, ...]]:
        """Return and clear everything recorded so far."""
        drained = (self.activities, self.notices)
        self.discard()
        return drained

    def discard(self) -> None:
        self._activities.clear()
        self._notices.clear()

    def __len__(self) -> int:
        return len(self._activities) + len(self._notices)

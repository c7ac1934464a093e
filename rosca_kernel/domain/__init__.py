"""
Pure domain layer.

This package contains DTOs and rotation rules with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from rosca_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from rosca_kernel.domain.contribution_state import (
    Confirmed,
    ContributionState,
    ContributionStatus,
    Failed,
    Pending,
)
from rosca_kernel.domain.dtos import (
    ContributionInfo,
    ContributionStatusRow,
    ContributionStatusView,
    EarlyPayoutResult,
    EarlyPayoutStatus,
    MemberInfo,
    PayoutInfo,
    PayoutOutcome,
    PoolInfo,
    RoundAdvance,
)
from rosca_kernel.domain.outbox import ActivityEvent, ActivityType, Notice, NoticeKind, Outbox
from rosca_kernel.domain.rotation import (
    Completed,
    NotStarted,
    RoundInProgress,
    RoundState,
    ScheduleInterval,
    recipient_position,
)

__all__ = [
    "ActivityEvent",
    "ActivityType",
    "Clock",
    "Completed",
    "Confirmed",
    "ContributionInfo",
    "ContributionState",
    "ContributionStatus",
    "ContributionStatusRow",
    "ContributionStatusView",
    "DeterministicClock",
    "EarlyPayoutResult",
    "EarlyPayoutStatus",
    "Failed",
    "MemberInfo",
    "NotStarted",
    "Notice",
    "NoticeKind",
    "Outbox",
    "PayoutInfo",
    "PayoutOutcome",
    "Pending",
    "PoolInfo",
    "RoundAdvance",
    "RoundInProgress",
    "RoundState",
    "ScheduleInterval",
    "SystemClock",
    "recipient_position",
]

"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable structures that kernel services and selectors
    return: pool, member, contribution and payout snapshots plus the
    composite views (round advance, early-payout status, contribution
    status).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from
    services and selectors; they read attributes and never import the ORM.

Invariants enforced:
    - Services and selectors return DTOs, never ORM entities, so nothing
      outside a unit of work can lazily load or mutate a row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from rosca_kernel.domain.contribution_state import (
    ContributionState,
    ContributionStatus,
    from_columns,
    is_confirmed,
)


@dataclass(frozen=True)
class PoolInfo:
    id: UUID
    name: str
    description: str | None
    contribution_amount: int
    frequency: str
    total_rounds: int
    current_round: int
    max_members: int
    member_count: int
    status: str
    start_date: date | None
    next_payout_date: date | None
    total_amount: int
    version: int

    @classmethod
    def from_model(cls, pool: Any) -> PoolInfo:
        return cls(
            id=pool.id,
            name=pool.name,
            description=pool.description,
            contribution_amount=pool.contribution_amount,
            frequency=_enum_value(pool.frequency),
            total_rounds=pool.total_rounds,
            current_round=pool.current_round,
            max_members=pool.max_members,
            member_count=pool.member_count,
            status=_enum_value(pool.status),
            start_date=pool.start_date,
            next_payout_date=pool.next_payout_date,
            total_amount=pool.total_amount,
            version=pool.version,
        )

    @property
    def is_complete(self) -> bool:
        return self.current_round > self.total_rounds


@dataclass(frozen=True)
class MemberInfo:
    id: UUID
    pool_id: UUID
    name: str
    email: str
    role: str
    position: int | None
    status: str
    account_ref: str | None
    joined_at: datetime
    total_contributed: int
    payments_on_time: int
    payouts_received: int

    @classmethod
    def from_model(cls, member: Any) -> MemberInfo:
        return cls(
            id=member.id,
            pool_id=member.pool_id,
            name=member.name,
            email=member.email,
            role=_enum_value(member.role),
            position=member.position,
            status=_enum_value(member.status),
            account_ref=member.account_ref,
            joined_at=member.joined_at,
            total_contributed=member.total_contributed,
            payments_on_time=member.payments_on_time,
            payouts_received=member.payouts_received,
        )


@dataclass(frozen=True)
class ContributionInfo:
    id: UUID
    pool_id: UUID
    member_id: UUID
    round_number: int
    amount: int
    state: ContributionState

    @classmethod
    def from_model(cls, record: Any) -> ContributionInfo:
        return cls(
            id=record.id,
            pool_id=record.pool_id,
            member_id=record.member_id,
            round_number=record.round_number,
            amount=record.amount,
            state=from_columns(
                _enum_value(record.status),
                confirmed_at=record.confirmed_at,
                method=record.method,
                transaction_ref=record.transaction_ref,
                failure_reason=record.failure_reason,
            ),
        )

    @property
    def status(self) -> ContributionStatus:
        return self.state.status

    @property
    def is_confirmed(self) -> bool:
        return is_confirmed(self.state)


@dataclass(frozen=True)
class PayoutInfo:
    id: UUID
    pool_id: UUID
    round_number: int
    recipient_member_id: UUID
    recipient_name: str
    amount: int
    issued_at: datetime
    was_early_payout: bool
    reason: str | None
    scheduled_payout_date: date | None
    initiated_by: str | None

    @classmethod
    def from_model(cls, tx: Any) -> PayoutInfo:
        return cls(
            id=tx.id,
            pool_id=tx.pool_id,
            round_number=tx.round_number,
            recipient_member_id=tx.recipient_member_id,
            recipient_name=tx.recipient_name,
            amount=tx.amount,
            issued_at=tx.issued_at,
            was_early_payout=tx.was_early_payout,
            reason=tx.reason,
            scheduled_payout_date=tx.scheduled_payout_date,
            initiated_by=tx.initiated_by,
        )


@dataclass(frozen=True)
class RoundAdvance:
    """What changed when a paid round closed."""

    pool_id: UUID
    paid_round: int
    next_round: int
    is_complete: bool
    next_recipient: MemberInfo | None
    next_payout_date: date | None


@dataclass(frozen=True)
class PayoutOutcome:
    transaction: PayoutInfo
    advance: RoundAdvance


@dataclass(frozen=True)
class EarlyPayoutStatus:
    """Whether the open round may be paid out now, and why not if not."""

    allowed: bool
    reason: str | None
    current_round: int
    recipient: MemberInfo | None
    payout_amount: int
    scheduled_date: date | None
    missing_contributions: tuple[MemberInfo, ...] = ()


@dataclass(frozen=True)
class EarlyPayoutResult:
    transaction: PayoutInfo
    next_round: int
    is_complete: bool
    message: str


@dataclass(frozen=True)
class ContributionStatusRow:
    """One line of the contribution-status view."""

    member_id: UUID
    name: str
    email: str
    position: int | None
    is_recipient: bool
    has_contributed: bool
    contribution_date: datetime | None
    contribution_status: str | None
    amount: int


@dataclass(frozen=True)
class ContributionStatusView:
    pool_id: UUID
    current_round: int
    total_rounds: int
    contribution_amount: int
    recipient: MemberInfo | None
    contributions: tuple[ContributionStatusRow, ...]
    all_contributions_received: bool

    @property
    def pending(self) -> tuple[ContributionStatusRow, ...]:
        return tuple(
            row for row in self.contributions
            if not row.is_recipient and not row.has_contributed
        )


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)

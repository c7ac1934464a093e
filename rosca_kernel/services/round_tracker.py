"""
RoundTracker -- round counters, recipient derivation and round advancement.

Responsibility:
    Moves a pool through ``NotStarted -> RoundInProgress(r) -> Completed``
    and keeps the payout schedule and member statuses in step with it.

Architecture position:
    Kernel > Services.  Depends on RosterService (recipient derivation) and
    ContributionLedger (opening a round's pending records).  PayoutEngine
    is the only caller of advance().

Invariants enforced:
    - RoundInProgress(r) -> RoundInProgress(r + 1) only after round r's
      payout transaction exists (checked here, not trusted from caller).
    - The pool becomes COMPLETED exactly when current_round passes
      total_rounds.
    - next_payout_date of round r is start_date plus r intervals, so an
      early payout never shifts the schedule and month-end dates never drift.

Failure modes:
    - PoolAlreadyStartedError when starting a running pool.
    - PoolNotActiveError when the pool is completed or cancelled.
    - RoundNotOpenError when advancing a round that is not current.
    - StateError when advancing a round with no payout transaction.
"""

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from rosca_kernel.domain.clock import Clock
from rosca_kernel.domain.dtos import MemberInfo, PoolInfo, RoundAdvance
from rosca_kernel.domain.outbox import (
    ActivityEvent,
    ActivityType,
    Notice,
    NoticeKind,
    Outbox,
)
from rosca_kernel.domain.rotation import (
    DEFAULT_INTERVALS,
    RoundState,
    ScheduleInterval,
    round_state,
    scheduled_date,
)
from rosca_kernel.exceptions import (
    MemberNotFoundError,
    PoolAlreadyStartedError,
    PoolNotActiveError,
    RoundNotOpenError,
    StateError,
    ValidationError,
)
from rosca_kernel.logging_config import get_logger
from rosca_kernel.models.pool import Frequency, Pool, PoolStatus
from rosca_kernel.services.base import BaseService
from rosca_kernel.services.contribution_ledger import ContributionLedger
from rosca_kernel.services.pool_repository import PoolRepository
from rosca_kernel.services.roster_service import RosterService

logger = get_logger("services.round_tracker")


class RoundTracker(BaseService):
    """
    Service for round progression.

    Contract:
        ``state()`` and ``recipient()`` are pure functions of the stored
        round counter and roster snapshot.  ``start()`` and ``advance()``
        mutate the pool inside the caller's unit of work.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        outbox: Outbox | None = None,
        intervals: dict[str, ScheduleInterval] | None = None,
        roster: RosterService | None = None,
        ledger: ContributionLedger | None = None,
    ):
        super().__init__(session, clock, outbox)
        self.repo = PoolRepository(session)
        self.intervals = intervals or DEFAULT_INTERVALS
        self.roster = roster or RosterService(session, self.clock, self.outbox)
        self.ledger = ledger or ContributionLedger(
            session, self.clock, self.outbox, roster=self.roster
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def state(self, pool_id: UUID | str) -> RoundState:
        pool = self.repo.get(pool_id)
        return round_state(pool.current_round, pool.total_rounds)

    def recipient(self, pool_id: UUID | str, round_number: int | None = None) -> MemberInfo:
        """Member due to receive ``round_number`` (default: the open round)."""
        pool = self.repo.get(pool_id)
        round_number = round_number or pool.current_round
        if round_number < 1:
            raise RoundNotOpenError(str(pool.id), round_number, pool.current_round)
        member = self.roster.recipient_for(pool, round_number)
        if member is None:
            raise MemberNotFoundError(str(pool.id), f"recipient of round {round_number}")
        return MemberInfo.from_model(member)

    def interval_for(self, pool: Pool) -> ScheduleInterval:
        frequency = Frequency(pool.frequency).value
        return self.intervals.get(frequency, DEFAULT_INTERVALS[frequency])

    # =========================================================================
    # Transitions
    # =========================================================================

    def start(self, pool_id: UUID | str, start_date: date | None = None) -> PoolInfo:
        """Open round 1."""
        pool = self.repo.load_for_update(pool_id)
        if not pool.is_active:
            raise PoolNotActiveError(str(pool.id), str(pool.status))
        if pool.has_started:
            raise PoolAlreadyStartedError(str(pool.id), pool.current_round)
        if pool.member_count < 2:
            raise ValidationError("A pool needs at least 2 members to start")

        now = self.clock.now()
        pool.start_date = start_date or now.date()
        pool.next_payout_date = scheduled_date(pool.start_date, self.interval_for(pool), 1)
        pool.current_round = 1
        pool.touch(now)
        self.roster.sync_statuses(pool)
        self.ledger.open_round(pool, 1)
        self.repo.flush(pool.id)

        self._announce_round(pool, now)
        logger.info(
            "pool_started",
            extra={
                "pool_id": str(pool.id),
                "start_date": pool.start_date.isoformat(),
                "next_payout_date": pool.next_payout_date.isoformat(),
                "member_count": pool.member_count,
            },
        )
        return PoolInfo.from_model(pool)

    def reorder(
        self, pool_id: UUID | str, new_order: Sequence[UUID | str]
    ) -> list[MemberInfo]:
        """Change the payout order and realign the open round with it.

        When the open round's recipient changes, the new recipient is
        exempted (any confirmation they made is reversed) and the previous
        recipient gets a pending record.
        """
        members = self.roster.reorder(pool_id, new_order)
        # Row already locked by the roster reorder above
        pool = self.repo.get(pool_id)
        self.ledger.realign_open_round(pool)
        self.repo.flush(pool.id)
        return members

    def advance(self, pool: Pool, paid_round: int) -> RoundAdvance:
        """Close ``paid_round`` and open the next one (or complete the pool).

        Must be called on a pool row already locked by the caller, after
        the round's payout transaction has been added to the session.
        """
        if paid_round != pool.current_round:
            raise RoundNotOpenError(str(pool.id), paid_round, pool.current_round)
        self.repo.flush(pool.id)
        if self.repo.payout_for_round(pool.id, paid_round) is None:
            raise StateError(f"Round {paid_round} of pool {pool.id} has no payout transaction")

        now = self.clock.now()
        next_round = paid_round + 1
        pool.current_round = next_round
        if pool.start_date is not None:
            pool.next_payout_date = scheduled_date(
                pool.start_date, self.interval_for(pool), next_round
            )
        pool.touch(now)

        is_complete = next_round > pool.total_rounds
        next_recipient = None
        if is_complete:
            pool.status = PoolStatus.COMPLETED.value
            self.roster.sync_statuses(pool)
        else:
            self.roster.sync_statuses(pool)
            self.ledger.open_round(pool, next_round)
            member = self.roster.recipient_for(pool, next_round)
            next_recipient = MemberInfo.from_model(member) if member is not None else None
            self._announce_round(pool, now)
        self.repo.flush(pool.id)

        self.outbox.notify(
            Notice(
                pool_id=pool.id,
                kind=NoticeKind.ROUND_ADVANCED,
                recipients=tuple(m.id for m in self.repo.members(pool.id)),
                data={
                    "paidRound": paid_round,
                    "nextRound": next_round,
                    "isComplete": is_complete,
                    "nextPayoutDate": (
                        pool.next_payout_date.isoformat() if pool.next_payout_date else None
                    ),
                },
            )
        )
        logger.info(
            "round_advanced",
            extra={
                "pool_id": str(pool.id),
                "paid_round": paid_round,
                "next_round": next_round,
                "is_complete": is_complete,
            },
        )
        return RoundAdvance(
            pool_id=pool.id,
            paid_round=paid_round,
            next_round=next_round,
            is_complete=is_complete,
            next_recipient=next_recipient,
            next_payout_date=pool.next_payout_date,
        )

    def _announce_round(self, pool: Pool, now) -> None:
        recipient = self.roster.recipient_for(pool, pool.current_round)
        self.outbox.record(
            ActivityEvent(
                pool_id=pool.id,
                activity_type=ActivityType.ROUND_STARTED,
                occurred_at=now,
                data={
                    "round": pool.current_round,
                    "recipientName": recipient.name if recipient is not None else None,
                    "dueDate": (
                        pool.next_payout_date.isoformat() if pool.next_payout_date else None
                    ),
                },
            )
        )

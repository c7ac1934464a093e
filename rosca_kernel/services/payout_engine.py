"""
PayoutEngine -- payout computation and issuance.

Responsibility:
    Computes a round's payout, writes the round's PayoutTransaction,
    deducts the pool balance, credits the recipient's statistics and
    triggers RoundTracker to advance.  Queues the PAYOUT_SENT activity and
    the payout-issued notice on the Outbox.

Architecture position:
    Kernel > Services.  Top of the write-side dependency chain: uses
    RosterService, ContributionLedger and RoundTracker.  EarlyPayoutEvaluator
    delegates its trigger path here.

Invariants enforced:
    - At most one PayoutTransaction per (pool, round).  Checked under the
      pool row lock, enforced by the version counter and finally by the
      uq_payout_pool_round constraint.
    - No premature payout: the round must be the open round and every
      non-recipient member must have confirmed, for natural and early
      payouts alike.
    - Issuing, balance deduction and round advance happen in one flush
      sequence inside the caller's unit of work: all or nothing.

Failure modes:
    - AlreadyPaidError when the round already has a transaction.
    - PoolNotActiveError, RoundNotOpenError, RoundIncompleteError.
    - ConflictError when a concurrent writer wins the race.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from rosca_kernel.domain.clock import Clock
from rosca_kernel.domain.dtos import PayoutInfo, PayoutOutcome
from rosca_kernel.domain.outbox import (
    ActivityEvent,
    ActivityType,
    Notice,
    NoticeKind,
    Outbox,
)
from rosca_kernel.domain.rotation import ScheduleInterval, compute_payout_amount
from rosca_kernel.exceptions import (
    AlreadyPaidError,
    MemberNotFoundError,
    PoolNotActiveError,
    RoundIncompleteError,
    RoundNotOpenError,
)
from rosca_kernel.logging_config import get_logger
from rosca_kernel.models.payout import PayoutTransaction
from rosca_kernel.services.base import BaseService
from rosca_kernel.services.contribution_ledger import ContributionLedger
from rosca_kernel.services.pool_repository import PoolRepository
from rosca_kernel.services.roster_service import RosterService
from rosca_kernel.services.round_tracker import RoundTracker

logger = get_logger("services.payout_engine")


class PayoutEngine(BaseService):
    """
    Service that pays out rounds.

    Contract:
        ``issue_payout()`` returns a PayoutOutcome (transaction + round
        advance) or raises a typed kernel error; it never leaves a partial
        payout behind when the caller rolls back.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        outbox: Outbox | None = None,
        intervals: dict[str, ScheduleInterval] | None = None,
    ):
        super().__init__(session, clock, outbox)
        self.repo = PoolRepository(session)
        self.roster = RosterService(session, self.clock, self.outbox)
        self.ledger = ContributionLedger(session, self.clock, self.outbox, roster=self.roster)
        self.tracker = RoundTracker(
            session,
            self.clock,
            self.outbox,
            intervals=intervals,
            roster=self.roster,
            ledger=self.ledger,
        )

    def compute_payout_amount(self, pool_id: UUID | str) -> int:
        pool = self.repo.get(pool_id)
        return compute_payout_amount(pool.contribution_amount, pool.member_count)

    def issue_payout(
        self,
        pool_id: UUID | str,
        round_number: int | None = None,
        *,
        early: bool = False,
        reason: str | None = None,
        initiated_by: str | None = None,
    ) -> PayoutOutcome:
        """Pay out ``round_number`` (default: the open round)."""
        pool = self.repo.load_for_update(pool_id)
        round_number = round_number or pool.current_round
        t0 = self.clock.now()

        if round_number >= 1 and self.repo.payout_for_round(pool.id, round_number) is not None:
            raise AlreadyPaidError(str(pool.id), round_number)
        if not pool.is_active:
            raise PoolNotActiveError(str(pool.id), str(pool.status))
        if pool.current_round < 1 or round_number != pool.current_round:
            raise RoundNotOpenError(str(pool.id), round_number, pool.current_round)

        missing = self.ledger.missing_members_orm(pool, round_number)
        if missing:
            raise RoundIncompleteError(
                str(pool.id), round_number, [m.email for m in missing]
            )

        recipient = self.roster.recipient_for(pool, round_number)
        if recipient is None:
            raise MemberNotFoundError(str(pool.id), f"recipient of round {round_number}")

        amount = compute_payout_amount(pool.contribution_amount, pool.member_count)
        tx = PayoutTransaction(
            pool_id=pool.id,
            round_number=round_number,
            recipient_member_id=recipient.id,
            recipient_name=recipient.name,
            amount=amount,
            issued_at=t0,
            was_early_payout=early,
            reason=reason,
            scheduled_payout_date=pool.next_payout_date,
            initiated_by=initiated_by,
        )
        self.session.add(tx)
        pool.total_amount = max(0, pool.total_amount - amount)
        recipient.payouts_received += 1
        pool.touch(t0)
        self.repo.flush(pool.id)

        self.outbox.record(
            ActivityEvent(
                pool_id=pool.id,
                activity_type=ActivityType.PAYOUT_SENT,
                occurred_at=t0,
                data={
                    "memberName": recipient.name,
                    "amount": amount,
                    "round": round_number,
                },
            )
        )

        advance = self.tracker.advance(pool, round_number)

        self.outbox.notify(
            Notice(
                pool_id=pool.id,
                kind=NoticeKind.PAYOUT_ISSUED,
                recipients=(recipient.id,),
                data={
                    "amount": amount,
                    "round": round_number,
                    "early": early,
                },
            )
        )
        logger.info(
            "payout_issued",
            extra={
                "pool_id": str(pool.id),
                "round_number": round_number,
                "recipient_member_id": str(recipient.id),
                "amount": amount,
                "early": early,
                "next_round": advance.next_round,
                "pool_completed": advance.is_complete,
            },
        )
        return PayoutOutcome(transaction=PayoutInfo.from_model(tx), advance=advance)


"""
EarlyPayoutEvaluator -- eligibility check and early-trigger path.

Responsibility:
    Tells the admin whether the open round can be paid out before its
    scheduled date and, when it can, pays it out through PayoutEngine with
    the early flag set.

Architecture position:
    Kernel > Services.  Thin layer over PayoutEngine and ContributionLedger.

Invariants enforced:
    - The same evaluation backs the status query and the trigger; the
      trigger re-evaluates under the pool row lock, so a status answer
      that went stale can never produce a payout.
    - Early payouts keep the schedule: next_payout_date still moves one
      interval from the scheduled date, not from today.

Failure modes:
    - EarlyPayoutNotAllowedError (a StateError) carrying the same reason
      and missing-member list that check_status() reports.
      Payout-engine rejections that slip past the pre-check (a contribution
      undone between the two reads) are reported the same way.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from rosca_kernel.domain.clock import Clock
from rosca_kernel.domain.dtos import EarlyPayoutResult, EarlyPayoutStatus, MemberInfo
from rosca_kernel.domain.outbox import Outbox
from rosca_kernel.domain.rotation import ScheduleInterval, compute_payout_amount
from rosca_kernel.exceptions import (
    AlreadyPaidError,
    EarlyPayoutNotAllowedError,
    RoundIncompleteError,
)
from rosca_kernel.logging_config import get_logger
from rosca_kernel.models.pool import Pool
from rosca_kernel.services.base import BaseService
from rosca_kernel.services.payout_engine import PayoutEngine
from rosca_kernel.services.pool_repository import PoolRepository

logger = get_logger("services.early_payout")

REASON_NOT_ACTIVE = "Pool is not active"
REASON_NOT_STARTED = "Pool has not started"
REASON_ALREADY_PAID = "A payout transaction already exists for this round"
REASON_NO_RECIPIENT = "No eligible recipient found for the current round"
REASON_INCOMPLETE = "Not all contributions have been received"


class EarlyPayoutEvaluator(BaseService):
    """
    Service for early payouts.

    Contract:
        ``check_status()`` is read-only.  ``initiate_early_payout()`` either
        returns an EarlyPayoutResult or raises EarlyPayoutNotAllowedError.
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
        self.engine = PayoutEngine(session, self.clock, self.outbox, intervals=intervals)

    def check_status(self, pool_id: UUID | str) -> EarlyPayoutStatus:
        return self._evaluate(self.repo.get(pool_id))

    def initiate_early_payout(
        self,
        pool_id: UUID | str,
        reason: str | None = None,
        initiated_by: str | None = None,
    ) -> EarlyPayoutResult:
        pool = self.repo.load_for_update(pool_id)
        status = self._evaluate(pool)
        if not status.allowed:
            logger.info(
                "early_payout_rejected",
                extra={
                    "pool_id": str(pool.id),
                    "round_number": status.current_round,
                    "reason": status.reason,
                    "missing_count": len(status.missing_contributions),
                },
            )
            raise EarlyPayoutNotAllowedError(
                str(pool.id),
                status.reason or REASON_INCOMPLETE,
                [m.email for m in status.missing_contributions],
            )

        try:
            outcome = self.engine.issue_payout(
                pool.id,
                status.current_round,
                early=True,
                reason=reason,
                initiated_by=initiated_by,
            )
        except RoundIncompleteError as exc:
            raise EarlyPayoutNotAllowedError(
                str(pool.id), REASON_INCOMPLETE, list(exc.missing)
            ) from exc
        except AlreadyPaidError as exc:
            raise EarlyPayoutNotAllowedError(str(pool.id), REASON_ALREADY_PAID) from exc

        next_round = status.current_round + 1
        is_complete = next_round > pool.total_rounds
        logger.info(
            "early_payout_processed",
            extra={
                "pool_id": str(pool.id),
                "round_number": status.current_round,
                "scheduled_date": status.scheduled_date,
                "initiated_by": initiated_by,
            },
        )
        return EarlyPayoutResult(
            transaction=outcome.transaction,
            next_round=next_round,
            is_complete=is_complete,
            message=(
                f"Early payout of {outcome.transaction.amount} sent to "
                f"{outcome.transaction.recipient_name} for round {status.current_round}"
            ),
        )

    def _evaluate(self, pool: Pool) -> EarlyPayoutStatus:
        current = pool.current_round
        recipient = None
        missing: tuple[MemberInfo, ...] = ()
        amount = compute_payout_amount(pool.contribution_amount, pool.member_count)

        def status(allowed: bool, reason: str | None) -> EarlyPayoutStatus:
            return EarlyPayoutStatus(
                allowed=allowed,
                reason=reason,
                current_round=current,
                recipient=recipient,
                payout_amount=amount,
                scheduled_date=pool.next_payout_date,
                missing_contributions=missing,
            )

        if not pool.is_active:
            return status(False, REASON_NOT_ACTIVE)
        if not pool.has_started:
            return status(False, REASON_NOT_STARTED)

        member = self.engine.roster.recipient_for(pool, current)
        if member is None:
            return status(False, REASON_NO_RECIPIENT)
        recipient = MemberInfo.from_model(member)

        if self.repo.payout_for_round(pool.id, current) is not None:
            return status(False, REASON_ALREADY_PAID)

        missing = tuple(
            MemberInfo.from_model(m)
            for m in self.engine.ledger.missing_members_orm(pool, current)
        )
        if missing:
            return status(False, REASON_INCOMPLETE)
        return status(True, None)

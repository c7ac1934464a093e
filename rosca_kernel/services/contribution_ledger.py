"""
ContributionLedger -- per-(member, round) contribution attestations.

Responsibility:
    Records, undoes and disputes a member's attestation that they paid for
    a round, and answers whether a round has every contribution it needs.

Architecture position:
    Kernel > Services.  Depends on RosterService for member resolution and
    recipient derivation.  RoundTracker opens rounds through it and
    PayoutEngine consults it before paying out.

Invariants enforced:
    - Only the pool's open round accepts changes.  A round whose payout
      transaction exists is closed and its records are frozen.
    - The recipient of a round does not contribute in that round;
      is_complete() counts every other active member.
    - A record is exactly one of Pending, Confirmed or Failed
      (domain/contribution_state.py).
    - The pool balance and member statistics move together with the
      record, in the same flush, and the pool row is touched so concurrent
      writers conflict.

Failure modes:
    - PoolNotActiveError, RoundNotOpenError, RoundClosedError.
    - RecipientExemptError when the recipient tries to contribute.
    - AlreadyContributedError on a second confirmation.
    - ContributionNotConfirmedError when undoing a non-confirmed record.
    - MemberNotFoundError for an unknown member.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from rosca_kernel.domain.clock import Clock
from rosca_kernel.domain.contribution_state import (
    Confirmed,
    ContributionState,
    ContributionStatus,
    Failed,
    Pending,
    from_columns,
    to_columns,
)
from rosca_kernel.domain.dtos import ContributionInfo, MemberInfo
from rosca_kernel.domain.outbox import ActivityEvent, ActivityType, Outbox
from rosca_kernel.exceptions import (
    AlreadyContributedError,
    ContributionNotConfirmedError,
    PoolNotActiveError,
    RecipientExemptError,
    RoundClosedError,
    RoundNotOpenError,
    ValidationError,
)
from rosca_kernel.logging_config import get_logger
from rosca_kernel.models.contribution import (
    FAILURE_REASON_MAX_LENGTH,
    METHOD_MAX_LENGTH,
    TRANSACTION_REF_MAX_LENGTH,
    Contribution,
)
from rosca_kernel.models.member import Member
from rosca_kernel.models.pool import Pool
from rosca_kernel.services.base import BaseService
from rosca_kernel.services.pool_repository import PoolRepository
from rosca_kernel.services.roster_service import RosterService

logger = get_logger("services.contribution_ledger")


class ContributionLedger(BaseService):
    """
    Service for contribution attestations.

    Contract:
        Public methods take a pool id, lock the pool row, validate, mutate
        and flush.  They return ContributionInfo DTOs.

    Non-goals:
        - Payment settlement.  ``method`` and ``transaction_ref`` are
          recorded as given and drive no logic.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        outbox: Outbox | None = None,
        roster: RosterService | None = None,
    ):
        super().__init__(session, clock, outbox)
        self.repo = PoolRepository(session)
        self.roster = roster or RosterService(session, self.clock, self.outbox)

    # =========================================================================
    # Commands
    # =========================================================================

    def record_contribution(
        self,
        pool_id: UUID | str,
        member: UUID | str,
        round_number: int | None = None,
        method: str = "manual",
        transaction_ref: str | None = None,
    ) -> ContributionInfo:
        """Confirm ``member``'s contribution for the open round."""
        method = (method or "manual").strip() or "manual"
        _check_length("method", method, METHOD_MAX_LENGTH)
        if transaction_ref is not None:
            _check_length("transaction_ref", transaction_ref, TRANSACTION_REF_MAX_LENGTH)

        pool = self.repo.load_for_update(pool_id)
        round_number = self._require_open_round(pool, round_number)
        target = self.roster.lookup_orm(pool, member)
        self._require_not_recipient(pool, target, round_number)

        record = self._get_or_open(pool, target, round_number)
        if record.status == ContributionStatus.CONFIRMED.value:
            raise AlreadyContributedError(str(pool.id), str(target.id), round_number)

        now = self.clock.now()
        self._apply(record, Confirmed(at=now, method=method, transaction_ref=transaction_ref))
        target.total_contributed += record.amount
        if self._on_time(pool, now):
            target.payments_on_time += 1
        pool.total_amount += record.amount
        pool.touch(now)
        self.repo.flush(pool.id)

        self.outbox.record(
            ActivityEvent(
                pool_id=pool.id,
                activity_type=ActivityType.PAYMENT_RECEIVED,
                occurred_at=now,
                data={
                    "memberName": target.name,
                    "amount": record.amount,
                    "round": round_number,
                },
            )
        )
        logger.info(
            "contribution_recorded",
            extra={
                "pool_id": str(pool.id),
                "member_id": str(target.id),
                "round_number": round_number,
                "amount": record.amount,
                "method": method,
            },
        )
        return ContributionInfo.from_model(record)

    def undo_contribution(
        self,
        pool_id: UUID | str,
        member: UUID | str,
        round_number: int | None = None,
    ) -> ContributionInfo:
        """Return a confirmed contribution of the open round to pending."""
        pool = self.repo.load_for_update(pool_id)
        round_number = self._require_open_round(pool, round_number)
        target = self.roster.lookup_orm(pool, member)

        record = self.repo.contribution(pool.id, target.id, round_number)
        if record is None or record.status != ContributionStatus.CONFIRMED.value:
            status = record.status if record is not None else ContributionStatus.PENDING.value
            raise ContributionNotConfirmedError(
                str(pool.id), str(target.id), round_number, str(status)
            )

        self._reverse_confirmation(pool, target, record)
        self._apply(record, Pending())
        pool.touch(self.clock.now())
        self.repo.flush(pool.id)

        logger.info(
            "contribution_undone",
            extra={
                "pool_id": str(pool.id),
                "member_id": str(target.id),
                "round_number": round_number,
            },
        )
        return ContributionInfo.from_model(record)

    def mark_failed(
        self,
        pool_id: UUID | str,
        member: UUID | str,
        reason: str,
        round_number: int | None = None,
    ) -> ContributionInfo:
        """Dispute a member's attestation for the open round."""
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to mark a contribution failed")
        _check_length("reason", reason, FAILURE_REASON_MAX_LENGTH)

        pool = self.repo.load_for_update(pool_id)
        round_number = self._require_open_round(pool, round_number)
        target = self.roster.lookup_orm(pool, member)
        self._require_not_recipient(pool, target, round_number)

        record = self._get_or_open(pool, target, round_number)
        if record.status == ContributionStatus.CONFIRMED.value:
            self._reverse_confirmation(pool, target, record)
        self._apply(record, Failed(reason=reason))
        pool.touch(self.clock.now())
        self.repo.flush(pool.id)

        logger.warning(
            "contribution_marked_failed",
            extra={
                "pool_id": str(pool.id),
                "member_id": str(target.id),
                "round_number": round_number,
                "reason": reason,
            },
        )
        return ContributionInfo.from_model(record)

    def open_round(self, pool: Pool, round_number: int) -> int:
        """Create pending records for every contributor of ``round_number``.

        Idempotent: members that already have a record are skipped.
        Returns the number of records created.
        """
        recipient = self.roster.recipient_for(pool, round_number)
        existing = {
            c.member_id for c in self.repo.contributions_for_round(pool.id, round_number)
        }
        created = 0
        for member in self.repo.members(pool.id):
            if recipient is not None and member.id == recipient.id:
                continue
            if member.id in existing:
                continue
            self._new_record(pool, member, round_number)
            created += 1
        logger.debug(
            "round_opened",
            extra={
                "pool_id": str(pool.id),
                "round_number": round_number,
                "pending_created": created,
            },
        )
        return created

    def realign_open_round(self, pool: Pool) -> None:
        """Bring the open round's records in line with its current recipient.

        Called after the payout order changes.  A confirmation made by the
        member who is now the recipient is reversed, since the recipient
        does not pay into their own pot; members who lost the recipient slot
        get a pending record.
        """
        if not pool.is_active or pool.current_round < 1:
            return
        round_number = pool.current_round
        if self.repo.payout_for_round(pool.id, round_number) is not None:
            return

        recipient = self.roster.recipient_for(pool, round_number)
        if recipient is not None:
            record = self.repo.contribution(pool.id, recipient.id, round_number)
            if record is not None and record.status == ContributionStatus.CONFIRMED.value:
                self._reverse_confirmation(pool, recipient, record)
                self._apply(record, Pending())
                pool.touch(self.clock.now())
                logger.info(
                    "recipient_contribution_released",
                    extra={
                        "pool_id": str(pool.id),
                        "member_id": str(recipient.id),
                        "round_number": round_number,
                        "amount": record.amount,
                    },
                )
        self.open_round(pool, round_number)

    # =========================================================================
    # Queries
    # =========================================================================

    def state_of(
        self, pool_id: UUID | str, member: UUID | str, round_number: int
    ) -> ContributionState:
        pool = self.repo.get(pool_id)
        target = self.roster.lookup_orm(pool, member)
        record = self.repo.contribution(pool.id, target.id, round_number)
        if record is None:
            return Pending()
        return from_columns(
            record.status,
            confirmed_at=record.confirmed_at,
            method=record.method,
            transaction_ref=record.transaction_ref,
            failure_reason=record.failure_reason,
        )

    def is_complete(self, pool_id: UUID | str, round_number: int | None = None) -> bool:
        """True iff every active non-recipient member confirmed the round."""
        pool = self.repo.get(pool_id)
        return not self.missing_members_orm(pool, round_number or pool.current_round)

    def missing_members(
        self, pool_id: UUID | str, round_number: int | None = None
    ) -> list[MemberInfo]:
        pool = self.repo.get(pool_id)
        return [
            MemberInfo.from_model(m)
            for m in self.missing_members_orm(pool, round_number or pool.current_round)
        ]

    def missing_members_orm(self, pool: Pool, round_number: int) -> list[Member]:
        if round_number < 1:
            return list(self.repo.members(pool.id))
        recipient = self.roster.recipient_for(pool, round_number)
        confirmed = {
            c.member_id
            for c in self.repo.contributions_for_round(pool.id, round_number)
            if c.status == ContributionStatus.CONFIRMED.value
        }
        return [
            m
            for m in self.repo.members(pool.id)
            if (recipient is None or m.id != recipient.id) and m.id not in confirmed
        ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_open_round(self, pool: Pool, round_number: int | None) -> int:
        if not pool.is_active:
            raise PoolNotActiveError(str(pool.id), str(pool.status))
        current = pool.current_round
        if round_number is None:
            round_number = current
        if current < 1:
            raise RoundNotOpenError(str(pool.id), round_number, current)
        if round_number < current or self.repo.payout_for_round(pool.id, round_number):
            raise RoundClosedError(str(pool.id), round_number)
        if round_number != current:
            raise RoundNotOpenError(str(pool.id), round_number, current)
        return round_number

    def _require_not_recipient(self, pool: Pool, member: Member, round_number: int) -> None:
        recipient = self.roster.recipient_for(pool, round_number)
        if recipient is not None and recipient.id == member.id:
            raise RecipientExemptError(str(pool.id), str(member.id), round_number)

    def _get_or_open(self, pool: Pool, member: Member, round_number: int) -> Contribution:
        record = self.repo.contribution(pool.id, member.id, round_number)
        if record is None:
            record = self._new_record(pool, member, round_number)
        return record

    def _new_record(self, pool: Pool, member: Member, round_number: int) -> Contribution:
        record = Contribution(
            pool_id=pool.id,
            member_id=member.id,
            round_number=round_number,
            amount=pool.contribution_amount,
        )
        self._apply(record, Pending())
        self.session.add(record)
        return record

    def _reverse_confirmation(self, pool: Pool, member: Member, record: Contribution) -> None:
        member.total_contributed = max(0, member.total_contributed - record.amount)
        if record.confirmed_at is not None and self._on_time(pool, record.confirmed_at):
            member.payments_on_time = max(0, member.payments_on_time - 1)
        pool.total_amount = max(0, pool.total_amount - record.amount)

    @staticmethod
    def _apply(record: Contribution, state: ContributionState) -> None:
        for column, value in to_columns(state).items():
            setattr(record, column, value)

    @staticmethod
    def _on_time(pool: Pool, at: datetime) -> bool:
        return pool.next_payout_date is None or at.date() <= pool.next_payout_date


def _check_length(field: str, value: str, limit: int) -> None:
    if len(value) > limit:
        raise ValidationError(f"{field} must be at most {limit} characters")

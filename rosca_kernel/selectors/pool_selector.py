"""
Module: rosca_kernel.selectors.pool_selector
Responsibility: Read views over a pool -- the contribution-status board for
    a round and the payout history.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - The recipient shown for a round is derived with the same rotation
      rule the payout engine uses (rotation.recipient_position), so the
      board and the engine never disagree on who is exempt.
    - A member with no record for the round shows as pending.
"""

from uuid import UUID

from sqlalchemy import select

from rosca_kernel.domain.contribution_state import ContributionStatus
from rosca_kernel.domain.dtos import (
    ContributionInfo,
    ContributionStatusRow,
    ContributionStatusView,
    MemberInfo,
    PayoutInfo,
    PoolInfo,
)
from rosca_kernel.domain.rotation import recipient_position
from rosca_kernel.exceptions import PoolNotFoundError
from rosca_kernel.models.contribution import Contribution
from rosca_kernel.models.member import Member, MemberStatus
from rosca_kernel.models.payout import PayoutTransaction
from rosca_kernel.models.pool import Pool
from rosca_kernel.selectors.base import BaseSelector


class PoolSelector(BaseSelector):
    """Read-only queries for a single pool."""

    def get_pool(self, pool_id: UUID | str) -> PoolInfo:
        return PoolInfo.from_model(self._pool(pool_id))

    def list_members(self, pool_id: UUID | str, include_removed: bool = False) -> list[MemberInfo]:
        pool = self._pool(pool_id)
        return [MemberInfo.from_model(m) for m in self._members(pool.id, include_removed)]

    def contribution_status(
        self, pool_id: UUID | str, round_number: int | None = None
    ) -> ContributionStatusView:
        """Who has paid, who is pending, and who is exempt for a round."""
        pool = self._pool(pool_id)
        round_number = round_number or pool.current_round
        members = self._members(pool.id)

        recipient = None
        if round_number >= 1 and members:
            position = recipient_position(round_number, len(members))
            recipient = next((m for m in members if m.position == position), None)

        records = {
            c.member_id: c
            for c in self.session.execute(
                select(Contribution).where(
                    Contribution.pool_id == pool.id,
                    Contribution.round_number == round_number,
                )
            ).scalars()
        }

        rows = []
        for member in members:
            is_recipient = recipient is not None and member.id == recipient.id
            record = records.get(member.id)
            confirmed = (
                record is not None and record.status == ContributionStatus.CONFIRMED.value
            )
            if is_recipient:
                status = None
            elif record is None:
                status = ContributionStatus.PENDING.value
            else:
                status = str(getattr(record.status, "value", record.status))
            rows.append(
                ContributionStatusRow(
                    member_id=member.id,
                    name=member.name,
                    email=member.email,
                    position=member.position,
                    is_recipient=is_recipient,
                    has_contributed=confirmed,
                    contribution_date=record.confirmed_at if confirmed else None,
                    contribution_status=status,
                    amount=0 if is_recipient else pool.contribution_amount,
                )
            )

        all_received = round_number >= 1 and all(
            row.has_contributed for row in rows if not row.is_recipient
        )
        return ContributionStatusView(
            pool_id=pool.id,
            current_round=round_number,
            total_rounds=pool.total_rounds,
            contribution_amount=pool.contribution_amount,
            recipient=MemberInfo.from_model(recipient) if recipient is not None else None,
            contributions=tuple(rows),
            all_contributions_received=all_received,
        )

    def member_contributions(
        self, pool_id: UUID | str, member_id: UUID
    ) -> list[ContributionInfo]:
        pool = self._pool(pool_id)
        records = self.session.execute(
            select(Contribution)
            .where(Contribution.pool_id == pool.id, Contribution.member_id == member_id)
            .order_by(Contribution.round_number)
        ).scalars()
        return [ContributionInfo.from_model(c) for c in records]

    def payout_history(self, pool_id: UUID | str) -> list[PayoutInfo]:
        pool = self._pool(pool_id)
        txs = self.session.execute(
            select(PayoutTransaction)
            .where(PayoutTransaction.pool_id == pool.id)
            .order_by(PayoutTransaction.round_number)
        ).scalars()
        return [PayoutInfo.from_model(tx) for tx in txs]

    def _pool(self, pool_id: UUID | str) -> Pool:
        try:
            key = pool_id if isinstance(pool_id, UUID) else UUID(str(pool_id))
        except ValueError:
            raise PoolNotFoundError(str(pool_id)) from None
        pool = self.session.get(Pool, key)
        if pool is None:
            raise PoolNotFoundError(str(pool_id))
        return pool

    def _members(self, pool_id: UUID, include_removed: bool = False) -> list[Member]:
        stmt = select(Member).where(Member.pool_id == pool_id)
        if not include_removed:
            stmt = stmt.where(Member.status != MemberStatus.REMOVED.value)
        return list(self.session.execute(stmt.order_by(Member.position, Member.joined_at)).scalars())

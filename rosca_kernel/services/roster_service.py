"""
RosterService -- member identity, payout position, role and status.

Responsibility:
    Owns the pool's roster: who is in it, in which order they are paid,
    and how a member is resolved from an id or an email.  Also derives the
    recipient of a round from the current roster snapshot.

Architecture position:
    Kernel > Services.  Leaf service: depends only on PoolRepository and
    the pure rotation rules.  ContributionLedger, RoundTracker and
    PayoutEngine all build on it.

Invariants enforced:
    - Positions of non-removed members are exactly 1..member_count after
      every operation (add, remove, reorder).
    - The admin is assigned position 1 when the pool is created and can
      never be removed.
    - Emails are compared case-insensitively and stored lower-cased.
    - Reordering never touches PayoutTransactions; only rounds that have
      not been paid see the new order.

Failure modes:
    - RosterFullError when max_members is reached.
    - InvalidPositionError on a position collision.
    - DuplicateMemberError when the email is already on the roster.
    - InvalidReorderError when the new order is not a permutation.
    - AdminRemovalError on an attempt to remove the admin.
    - PoolAlreadyStartedError when removing a member from a running pool.
    - MemberNotFoundError for an unknown id / email.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from rosca_kernel.domain.clock import Clock
from rosca_kernel.domain.dtos import MemberInfo
from rosca_kernel.domain.outbox import ActivityEvent, ActivityType, Outbox
from rosca_kernel.domain.rotation import (
    compact_positions,
    is_permutation,
    next_free_position,
    recipient_position,
)
from rosca_kernel.exceptions import (
    AdminRemovalError,
    DuplicateMemberError,
    InvalidPositionError,
    InvalidReorderError,
    MemberNotFoundError,
    PoolAlreadyStartedError,
    PoolNotActiveError,
    RosterFullError,
    ValidationError,
)
from rosca_kernel.logging_config import get_logger
from rosca_kernel.models.member import Member, MemberRole, MemberStatus
from rosca_kernel.models.pool import Pool
from rosca_kernel.services.base import BaseService
from rosca_kernel.services.pool_repository import PoolRepository

logger = get_logger("services.roster")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class RosterService(BaseService):
    """
    Service for managing a pool's members and their payout order.

    Contract:
        Public methods take a pool id and return MemberInfo DTOs.  The
        ``*_orm`` helpers are for sibling kernel services running inside the
        same unit of work.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        outbox: Outbox | None = None,
    ):
        super().__init__(session, clock, outbox)
        self.repo = PoolRepository(session)

    # =========================================================================
    # Lookup
    # =========================================================================

    def lookup(self, pool_id: UUID | str, identifier: UUID | str) -> MemberInfo:
        """Resolve an active member by id or case-insensitive email."""
        pool = self.repo.get(pool_id)
        return MemberInfo.from_model(self.lookup_orm(pool, identifier))

    def lookup_orm(self, pool: Pool, identifier: UUID | str) -> Member:
        members = self.repo.members(pool.id)
        member_id = _maybe_uuid(identifier)
        if member_id is not None:
            for member in members:
                if member.id == member_id:
                    return member
        else:
            email = normalize_email(str(identifier))
            for member in members:
                if member.email == email:
                    return member
        raise MemberNotFoundError(str(pool.id), str(identifier))

    def active_members(self, pool_id: UUID | str) -> list[MemberInfo]:
        pool = self.repo.get(pool_id)
        return [MemberInfo.from_model(m) for m in self.repo.members(pool.id)]

    def member_at(self, pool: Pool, position: int) -> Member | None:
        for member in self.repo.members(pool.id):
            if member.position == position:
                return member
        return None

    def recipient_for(self, pool: Pool, round_number: int) -> Member | None:
        """Member who receives ``round_number`` under the current roster."""
        if pool.member_count < 1:
            return None
        return self.member_at(pool, recipient_position(round_number, pool.member_count))

    # =========================================================================
    # Positions
    # =========================================================================

    def assign_position(self, pool: Pool, member: Member) -> int:
        """Give ``member`` its payout position.

        The admin always takes position 1; everyone else takes the next
        free position.
        """
        active = [m for m in self.repo.members(pool.id) if m.id != member.id]
        if len(active) >= pool.max_members:
            raise RosterFullError(str(pool.id), pool.max_members)

        taken = [m.position for m in active if m.position is not None]
        if member.is_admin:
            position = 1
        else:
            position = next_free_position(taken)

        if position in taken:
            raise InvalidPositionError(
                str(pool.id), position, "Position already assigned"
            )
        member.position = position
        return position

    def add_member(
        self,
        pool_id: UUID | str,
        name: str,
        email: str,
        account_ref: str | None = None,
        role: MemberRole = MemberRole.MEMBER,
    ) -> MemberInfo:
        """Add a member at the end of the payout order."""
        pool = self.repo.load_for_update(pool_id)
        if not pool.is_active:
            raise PoolNotActiveError(str(pool.id), str(pool.status))
        member = self.add_member_orm(pool, name, email, account_ref, role)
        self.repo.flush(pool.id)
        return MemberInfo.from_model(member)

    def add_member_orm(
        self,
        pool: Pool,
        name: str,
        email: str,
        account_ref: str | None = None,
        role: MemberRole = MemberRole.MEMBER,
    ) -> Member:
        name = (name or "").strip()
        email = normalize_email(email or "")
        if not name:
            raise ValidationError("Member name is required")
        if "@" not in email:
            raise ValidationError(f"Invalid email address: {email!r}")
        if any(m.email == email for m in self.repo.members(pool.id)):
            raise DuplicateMemberError(str(pool.id), email)

        now = self.clock.now()
        member = Member(
            pool_id=pool.id,
            name=name,
            email=email,
            account_ref=account_ref,
            role=role.value,
            status=MemberStatus.UPCOMING.value,
            joined_at=now,
            total_contributed=0,
            payments_on_time=0,
            payouts_received=0,
        )
        position = self.assign_position(pool, member)
        self.session.add(member)

        pool.member_count = pool.member_count + 1
        pool.touch(now)
        self.sync_statuses(pool)

        self.outbox.record(
            ActivityEvent(
                pool_id=pool.id,
                activity_type=ActivityType.MEMBER_JOINED,
                occurred_at=now,
                data={"memberName": name, "position": position},
            )
        )
        logger.info(
            "member_added",
            extra={
                "pool_id": str(pool.id),
                "member_id": str(member.id),
                "position": position,
                "role": role.value,
            },
        )
        return member

    def remove_member(self, pool_id: UUID | str, identifier: UUID | str) -> MemberInfo:
        """Remove a member and close the gap in the payout order.

        The member row stays (status REMOVED, no position) so history keeps
        its reference.  Only allowed before the pool starts: closing the gap
        shifts later members onto rounds that may already be paid.
        """
        pool = self.repo.load_for_update(pool_id)
        if not pool.is_active:
            raise PoolNotActiveError(str(pool.id), str(pool.status))
        if pool.has_started:
            raise PoolAlreadyStartedError(str(pool.id), pool.current_round)
        member = self.lookup_orm(pool, identifier)
        if member.is_admin:
            raise AdminRemovalError(str(pool.id), str(member.id))

        old_position = member.position
        member.status = MemberStatus.REMOVED.value
        member.position = None

        remaining = [m for m in self.repo.members(pool.id) if m.id != member.id]
        for m, position in compact_positions(remaining).items():
            m.position = position
        pool.member_count = len(remaining)
        pool.touch(self.clock.now())
        self.sync_statuses(pool)
        self.repo.flush(pool.id)

        logger.info(
            "member_removed",
            extra={
                "pool_id": str(pool.id),
                "member_id": str(member.id),
                "old_position": old_position,
                "member_count": pool.member_count,
            },
        )
        return MemberInfo.from_model(member)

    def reorder(
        self, pool_id: UUID | str, new_order: Sequence[UUID | str]
    ) -> list[MemberInfo]:
        """Replace the payout order with ``new_order`` (all active member ids).

        Rounds already paid keep their recipient; rounds not yet paid are
        derived from the new order.  Contribution records of the open round
        are not touched here; RoundTracker.reorder() realigns them.
        """
        pool = self.repo.load_for_update(pool_id)
        if not pool.is_active:
            raise PoolNotActiveError(str(pool.id), str(pool.status))

        members = {m.id: m for m in self.repo.members(pool.id)}
        ordered_ids: list[UUID] = []
        for raw in new_order:
            member_id = _maybe_uuid(raw)
            if member_id is None or member_id not in members:
                raise InvalidReorderError(str(pool.id), f"unknown member {raw}")
            ordered_ids.append(member_id)
        if len(set(ordered_ids)) != len(ordered_ids):
            raise InvalidReorderError(str(pool.id), "duplicate member in order")
        if set(ordered_ids) != set(members):
            raise InvalidReorderError(
                str(pool.id), "order must list every active member exactly once"
            )

        positions = compact_positions(ordered_ids)
        for member_id, position in positions.items():
            members[member_id].position = position
        if not is_permutation(positions.values(), pool.member_count):
            raise InvalidReorderError(str(pool.id), "positions are not 1..n")

        pool.touch(self.clock.now())
        self.sync_statuses(pool)
        self.repo.flush(pool.id)

        logger.info(
            "roster_reordered",
            extra={
                "pool_id": str(pool.id),
                "order": [str(i) for i in ordered_ids],
            },
        )
        return [MemberInfo.from_model(members[i]) for i in ordered_ids]

    # =========================================================================
    # Statuses
    # =========================================================================

    def sync_statuses(self, pool: Pool) -> None:
        """Recompute CURRENT / UPCOMING / COMPLETED from the round counter.

        The recipient of the open round is CURRENT; members already paid
        are COMPLETED; everyone else is UPCOMING.
        """
        self.repo.flush(pool.id)
        members = self.repo.members(pool.id)
        recipient_id = None
        if 1 <= pool.current_round <= pool.total_rounds and pool.member_count > 0:
            position = recipient_position(pool.current_round, pool.member_count)
            recipient_id = next((m.id for m in members if m.position == position), None)

        for member in members:
            if member.id == recipient_id:
                status = MemberStatus.CURRENT
            elif member.payouts_received > 0:
                status = MemberStatus.COMPLETED
            else:
                status = MemberStatus.UPCOMING
            if member.status != status.value:
                member.status = status.value


def _maybe_uuid(value: UUID | str) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None

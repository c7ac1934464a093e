"""
Module: rosca_kernel.models.member
Responsibility: ORM persistence for roster entries -- identity, payout
    position, role and running statistics of each pool member.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Positions of a pool's non-removed members are exactly 1..member_count
      (maintained by RosterService; removed members hold NULL).
    - email is stored lower-cased.
    - Rows are never deleted: removal is a status change so contribution
      and payout history keep their member reference.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rosca_kernel.db.base import TrackedBase, UTCDateTime, UUIDString


class MemberRole(str, Enum):
    """Admin creates the pool and always starts at position 1."""

    ADMIN = "admin"
    MEMBER = "member"


class MemberStatus(str, Enum):
    """Where the member stands in the rotation.

    CURRENT: receives the payout of the open round.
    UPCOMING: still waiting for a turn.
    COMPLETED: already received a payout.
    REMOVED: left the pool; no position.
    """

    CURRENT = "current"
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    REMOVED = "removed"


class Member(TrackedBase):
    """
    One participant of one pool.

    Guarantees:
        - (pool_id, position) never collides among non-removed members.
        - total_contributed, payments_on_time and payouts_received are
          maintained by the ledger and payout services, never by callers.
    """

    __tablename__ = "pool_members"

    __table_args__ = (
        Index("idx_member_pool_position", "pool_id", "position"),
        Index("idx_member_pool_email", "pool_id", "email"),
    )

    pool_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("pools.id"),
        nullable=False,
    )

    # Link to an external account, when the member has one
    account_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str] = mapped_column(String(320), nullable=False)

    role: Mapped[MemberRole] = mapped_column(
        String(20),
        default=MemberRole.MEMBER,
        nullable=False,
    )

    position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[MemberStatus] = mapped_column(
        String(20),
        default=MemberStatus.UPCOMING,
        nullable=False,
    )

    joined_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    total_contributed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    payments_on_time: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    payouts_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Member {self.email} #{self.position}>"

    @property
    def is_active(self) -> bool:
        return MemberStatus(self.status) != MemberStatus.REMOVED

    @property
    def is_admin(self) -> bool:
        return MemberRole(self.role) == MemberRole.ADMIN

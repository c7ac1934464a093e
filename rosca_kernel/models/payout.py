"""
Module: rosca_kernel.models.payout
Responsibility: ORM persistence for issued payouts.  A PayoutTransaction row
    is the single source of truth that a round is closed.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one payout per (pool, round) (uq_payout_pool_round).  This is
      the backstop when two writers slip past the version check.
    - Rows are append-only: db/immutability.py rejects UPDATE and DELETE.
    - recipient_name is a snapshot taken at issue time, so later roster
      changes never rewrite history.

Failure modes:
    - IntegrityError on a second insert for the same round.
    - ImmutabilityViolationError on any attempt to modify or delete.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rosca_kernel.db.base import Base, UTCDateTime, UUIDString


class PayoutTransaction(Base):
    """
    The pooled amount handed to one member for one round.

    Guarantees:
        - amount = contribution_amount x member_count at issue time.
        - was_early_payout records whether the scheduled date was bypassed.
    """

    __tablename__ = "payout_transactions"

    __table_args__ = (
        UniqueConstraint("pool_id", "round_number", name="uq_payout_pool_round"),
    )

    pool_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("pools.id"),
        nullable=False,
    )

    round_number: Mapped[int] = mapped_column(Integer, nullable=False)

    recipient_member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("pool_members.id"),
        nullable=False,
    )

    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    issued_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    was_early_payout: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    scheduled_payout_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    initiated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<PayoutTransaction round {self.round_number}: {self.amount}>"

"""
Module: rosca_kernel.models.contribution
Responsibility: ORM persistence for per-(member, round) contribution
    attestations.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain/contribution_state.py (which owns the status enum).

Invariants enforced:
    - At most one record per (pool, member, round) (uq_contribution_member_round).
    - status/confirmed_at/method/transaction_ref/failure_reason are only ever
      written through rosca_kernel.domain.contribution_state, so a row always
      encodes exactly one of Pending, Confirmed or Failed.

Failure modes:
    - IntegrityError on a duplicate (pool, member, round) insert, which the
      ledger treats as a concurrent writer.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rosca_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from rosca_kernel.domain.contribution_state import ContributionStatus

METHOD_MAX_LENGTH = 50
TRANSACTION_REF_MAX_LENGTH = 200
FAILURE_REASON_MAX_LENGTH = 500


class Contribution(TrackedBase):
    """
    Attestation that a member paid (or has yet to pay) for a round.

    Non-goals:
        - Payment settlement.  ``method`` and ``transaction_ref`` are
          self-reported metadata and drive no logic.
    """

    __tablename__ = "contributions"

    __table_args__ = (
        UniqueConstraint(
            "pool_id", "member_id", "round_number",
            name="uq_contribution_member_round",
        ),
        Index("idx_contribution_pool_round", "pool_id", "round_number"),
    )

    pool_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("pools.id"),
        nullable=False,
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("pool_members.id"),
        nullable=False,
    )

    round_number: Mapped[int] = mapped_column(Integer, nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[ContributionStatus] = mapped_column(
        String(20),
        default=ContributionStatus.PENDING,
        nullable=False,
    )

    method: Mapped[str | None] = mapped_column(String(METHOD_MAX_LENGTH), nullable=True)

    confirmed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    transaction_ref: Mapped[str | None] = mapped_column(
        String(TRANSACTION_REF_MAX_LENGTH), nullable=True
    )

    failure_reason: Mapped[str | None] = mapped_column(
        String(FAILURE_REASON_MAX_LENGTH), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Contribution round {self.round_number}: {self.status}>"

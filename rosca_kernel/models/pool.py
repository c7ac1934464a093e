"""
Module: rosca_kernel.models.pool
Responsibility: ORM persistence for a savings circle -- its terms, its round
    counters and its attested balance.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - current_round is 0 before start, 1..total_rounds while running, and
      total_rounds + 1 once completed.
    - version is a SQLAlchemy version_id_col: every UPDATE carries
      ``WHERE version = :old`` so a concurrent writer that read a stale row
      fails with StaleDataError instead of overwriting.
    - Every mutating kernel operation touches this row (touch()), which
      makes the version counter the per-pool single-writer guard.

Failure modes:
    - StaleDataError at flush when another transaction committed first.
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.orm.attributes import flag_modified

from rosca_kernel.db.base import TrackedBase, UTCDateTime


class PoolStatus(str, Enum):
    """Lifecycle status of a pool.

    Contract: ACTIVE -> COMPLETED when the last round is paid out, or
    ACTIVE -> CANCELLED by the admin.  Both end states are terminal.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Frequency(str, Enum):
    """How often a round comes due."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class Pool(TrackedBase):
    """
    A rotating savings circle.

    Contract:
        Members contribute ``contribution_amount`` each round; one member,
        derived from the roster positions, receives the pooled amount.

    Guarantees:
        - member_count always equals the number of non-removed members.
        - total_amount is the attested balance: confirmed contributions
          minus issued payouts.

    Non-goals:
        - Does NOT derive the recipient; that is rotation.recipient_position
          applied to the roster.
    """

    __tablename__ = "pools"

    __table_args__ = (Index("idx_pool_status", "status"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    contribution_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    frequency: Mapped[Frequency] = mapped_column(
        String(20),
        default=Frequency.WEEKLY,
        nullable=False,
    )

    total_rounds: Mapped[int] = mapped_column(Integer, nullable=False)

    current_round: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    max_members: Mapped[int] = mapped_column(Integer, nullable=False)

    member_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[PoolStatus] = mapped_column(
        String(20),
        default=PoolStatus.ACTIVE,
        nullable=False,
    )

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    next_payout_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    total_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    last_activity_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Pool {self.name}: round {self.current_round}/{self.total_rounds}>"

    @property
    def is_active(self) -> bool:
        return PoolStatus(self.status) == PoolStatus.ACTIVE

    @property
    def has_started(self) -> bool:
        return self.current_round > 0

    @property
    def is_finished(self) -> bool:
        return self.current_round > self.total_rounds

    def touch(self, at: datetime) -> None:
        """Mark the row dirty so the version counter advances on flush."""
        self.last_activity_at = at
        flag_modified(self, "last_activity_at")

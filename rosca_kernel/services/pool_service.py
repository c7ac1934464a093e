"""
PoolService -- pool lifecycle: create, start, cancel.

Responsibility:
    Creates a pool with its admin seated at position 1, opens the first
    round, and cancels a pool that will not run to completion.

Architecture position:
    Kernel > Services.  Uses RosterService to seat the admin and
    RoundTracker to open round 1.

Invariants enforced:
    - contribution_amount lies within the configured bounds (default 1-20).
    - total_rounds defaults to max_members, so a full roster is paid
      exactly once; a longer pool wraps around the rotation.
    - Cancelled and completed pools reject every further mutation.

Failure modes:
    - InvalidContributionAmountError, ValidationError on bad terms.
    - PoolNotActiveError when cancelling a finished pool.
"""

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from rosca_kernel.domain.clock import Clock
from rosca_kernel.domain.dtos import PoolInfo
from rosca_kernel.domain.outbox import Outbox
from rosca_kernel.domain.rotation import ScheduleInterval
from rosca_kernel.exceptions import (
    InvalidContributionAmountError,
    PoolNotActiveError,
    ValidationError,
)
from rosca_kernel.logging_config import get_logger
from rosca_kernel.models.member import MemberRole
from rosca_kernel.models.pool import Frequency, Pool, PoolStatus
from rosca_kernel.services.base import BaseService
from rosca_kernel.services.pool_repository import PoolRepository
from rosca_kernel.services.roster_service import RosterService
from rosca_kernel.services.round_tracker import RoundTracker

logger = get_logger("services.pool")


class PoolService(BaseService):
    """
    Service for pool lifecycle.

    Contract:
        All public methods return PoolInfo DTOs.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        outbox: Outbox | None = None,
        *,
        min_contribution: int = 1,
        max_contribution: int = 20,
        default_max_members: int = 10,
        intervals: dict[str, ScheduleInterval] | None = None,
    ):
        super().__init__(session, clock, outbox)
        self.repo = PoolRepository(session)
        self.min_contribution = min_contribution
        self.max_contribution = max_contribution
        self.default_max_members = default_max_members
        self.roster = RosterService(session, self.clock, self.outbox)
        self.tracker = RoundTracker(
            session, self.clock, self.outbox, intervals=intervals, roster=self.roster
        )

    def create_pool(
        self,
        name: str,
        contribution_amount: int,
        admin_name: str,
        admin_email: str,
        *,
        frequency: Frequency | str = Frequency.WEEKLY,
        max_members: int | None = None,
        total_rounds: int | None = None,
        description: str | None = None,
        admin_account_ref: str | None = None,
    ) -> PoolInfo:
        """Create a pool and seat its admin at position 1."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Pool name is required")
        if isinstance(contribution_amount, bool) or not isinstance(contribution_amount, int):
            raise ValidationError("Contribution amount must be a whole number")
        if not self.min_contribution <= contribution_amount <= self.max_contribution:
            raise InvalidContributionAmountError(
                contribution_amount, self.min_contribution, self.max_contribution
            )
        try:
            frequency = Frequency(frequency)
        except ValueError:
            raise ValidationError(f"Unknown frequency: {frequency!r}") from None

        max_members = self.default_max_members if max_members is None else max_members
        if max_members < 2:
            raise ValidationError("A pool needs room for at least 2 members")
        total_rounds = max_members if total_rounds is None else total_rounds
        if total_rounds < 1:
            raise ValidationError("total_rounds must be positive")

        now = self.clock.now()
        pool = Pool(
            name=name,
            description=description,
            contribution_amount=contribution_amount,
            frequency=frequency.value,
            total_rounds=total_rounds,
            current_round=0,
            max_members=max_members,
            member_count=0,
            status=PoolStatus.ACTIVE.value,
            total_amount=0,
            last_activity_at=now,
        )
        self.session.add(pool)
        self.repo.flush(pool.id)

        self.roster.add_member_orm(
            pool, admin_name, admin_email, admin_account_ref, role=MemberRole.ADMIN
        )
        self.repo.flush(pool.id)

        logger.info(
            "pool_created",
            extra={
                "pool_id": str(pool.id),
                "contribution_amount": contribution_amount,
                "frequency": frequency.value,
                "max_members": max_members,
                "total_rounds": total_rounds,
            },
        )
        return PoolInfo.from_model(pool)

    def start_pool(self, pool_id: UUID | str, start_date: date | None = None) -> PoolInfo:
        return self.tracker.start(pool_id, start_date)

    def cancel_pool(self, pool_id: UUID | str) -> PoolInfo:
        pool = self.repo.load_for_update(pool_id)
        if not pool.is_active:
            raise PoolNotActiveError(str(pool.id), str(pool.status))
        pool.status = PoolStatus.CANCELLED.value
        pool.touch(self.clock.now())
        self.repo.flush(pool.id)
        logger.info(
            "pool_cancelled",
            extra={"pool_id": str(pool.id), "current_round": pool.current_round},
        )
        return PoolInfo.from_model(pool)

    def get_pool(self, pool_id: UUID | str) -> PoolInfo:
        return PoolInfo.from_model(self.repo.get(pool_id))

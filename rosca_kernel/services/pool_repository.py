"""
PoolRepository -- row access for one pool at a time.

Responsibility:
    Loads a pool (optionally row-locked), its roster, its contribution
    records and its payout transactions, and flushes pending changes while
    translating concurrent-write failures into ``ConflictError``.

Architecture position:
    Kernel > Services.  Used by every write-side service; holds no state of
    its own beyond the caller's session.

Invariants enforced:
    - Mutations load the pool with ``SELECT ... FOR UPDATE`` and
      ``populate_existing`` so a writer always works on the committed row
      (PostgreSQL).  SQLite ignores FOR UPDATE; the version counter catches
      the race instead.
    - flush() maps StaleDataError (version mismatch) and IntegrityError
      (duplicate payout / contribution row) to ConflictError.

Failure modes:
    - PoolNotFoundError for an unknown id.
    - ConflictError when another transaction won the race.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from rosca_kernel.exceptions import ConflictError, PoolNotFoundError
from rosca_kernel.logging_config import get_logger
from rosca_kernel.models.contribution import Contribution
from rosca_kernel.models.member import Member, MemberStatus
from rosca_kernel.models.payout import PayoutTransaction
from rosca_kernel.models.pool import Pool

logger = get_logger("services.pool_repository")


def as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class PoolRepository:
    """Explicit per-pool data access.  No caching across sessions."""

    def __init__(self, session: Session):
        self.session = session

    # -- pool ---------------------------------------------------------------

    def get(self, pool_id: UUID | str) -> Pool:
        pool = self.session.get(Pool, _parse_pool_id(pool_id))
        if pool is None:
            raise PoolNotFoundError(str(pool_id))
        return pool

    def load_for_update(self, pool_id: UUID | str) -> Pool:
        """Load the pool row with a row lock, refreshing any cached copy."""
        pool = self.session.execute(
            select(Pool)
            .where(Pool.id == _parse_pool_id(pool_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if pool is None:
            raise PoolNotFoundError(str(pool_id))
        return pool

    # -- roster -------------------------------------------------------------

    def members(self, pool_id: UUID, include_removed: bool = False) -> list[Member]:
        stmt = select(Member).where(Member.pool_id == pool_id)
        if not include_removed:
            stmt = stmt.where(Member.status != MemberStatus.REMOVED.value)
        stmt = stmt.order_by(Member.position, Member.joined_at)
        return list(self.session.execute(stmt).scalars())

    # -- contributions ------------------------------------------------------

    def contributions_for_round(self, pool_id: UUID, round_number: int) -> list[Contribution]:
        return list(
            self.session.execute(
                select(Contribution).where(
                    Contribution.pool_id == pool_id,
                    Contribution.round_number == round_number,
                )
            ).scalars()
        )

    def contribution(
        self, pool_id: UUID, member_id: UUID, round_number: int
    ) -> Contribution | None:
        return self.session.execute(
            select(Contribution).where(
                Contribution.pool_id == pool_id,
                Contribution.member_id == member_id,
                Contribution.round_number == round_number,
            )
        ).scalar_one_or_none()

    # -- payouts ------------------------------------------------------------

    def payout_for_round(self, pool_id: UUID, round_number: int) -> PayoutTransaction | None:
        return self.session.execute(
            select(PayoutTransaction).where(
                PayoutTransaction.pool_id == pool_id,
                PayoutTransaction.round_number == round_number,
            )
        ).scalar_one_or_none()

    # -- persistence --------------------------------------------------------

    def flush(self, pool_id: UUID) -> None:
        """Flush pending changes; a lost race surfaces as ConflictError."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "pool_version_conflict",
                extra={"pool_id": str(pool_id)},
            )
            raise ConflictError(str(pool_id), "stale pool version") from exc
        except IntegrityError as exc:
            logger.warning(
                "pool_integrity_conflict",
                extra={"pool_id": str(pool_id), "detail": str(exc.orig)},
            )
            raise ConflictError(str(pool_id), "concurrent insert") from exc


def _parse_pool_id(pool_id: UUID | str) -> UUID:
    try:
        return as_uuid(pool_id)
    except ValueError:
        raise PoolNotFoundError(str(pool_id)) from None

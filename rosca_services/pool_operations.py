"""
PoolOperations -- the public surface of the payout engine.

Responsibility:
    Runs every exposed operation as one unit of work: open a session,
    call the kernel service, commit, then hand the outbox to the activity
    sink and the notifier.  Translates kernel errors into OperationResult
    values so callers never see an exception.

Architecture position:
    Services -- stateful orchestration over rosca_kernel.  This is the only
    layer that owns transactions and retries; kernel services only flush.

Invariants enforced:
    - Activities and notices are delivered only after a successful commit.
      A rolled-back attempt discards its outbox, so a conflict retried
      twice never announces a payout twice.
    - Optimistic-lock conflicts are retried up to ``retry.max_attempts``
      times with exponential backoff.  Each retry re-reads the pool, so
      the loser of a payout race sees AlreadyPaidError on its next attempt.
    - Delivery failures are logged and never turn a committed operation
      into a failed one.

Failure modes:
    - Kernel errors -> OperationResult.rejected(code, message, details).
    - Conflicts after the last attempt -> OperationResult.conflict.
    - Anything else -> OperationResult.internal_error, logged with a
      traceback.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from rosca_config import EngineSettings, get_active_config
from rosca_kernel.db.engine import get_session_factory, session_scope
from rosca_kernel.domain.clock import Clock, SystemClock
from rosca_kernel.domain.dtos import (
    ContributionInfo,
    ContributionStatusView,
    EarlyPayoutResult,
    EarlyPayoutStatus,
    MemberInfo,
    PayoutInfo,
    PayoutOutcome,
    PoolInfo,
)
from rosca_kernel.domain.outbox import Outbox
from rosca_kernel.exceptions import ConflictError, RoscaKernelError
from rosca_kernel.logging_config import LogContext, get_logger
from rosca_kernel.models.pool import Frequency
from rosca_kernel.selectors.pool_selector import PoolSelector
from rosca_kernel.services.contribution_ledger import ContributionLedger
from rosca_kernel.services.early_payout import EarlyPayoutEvaluator
from rosca_kernel.services.payout_engine import PayoutEngine
from rosca_kernel.services.pool_service import PoolService
from rosca_kernel.services.roster_service import RosterService
from rosca_services.collaborators import (
    ActivitySink,
    LoggingActivitySink,
    LoggingNotifier,
    Notifier,
)
from rosca_services.results import OperationResult

logger = get_logger("services.pool_operations")

T = TypeVar("T")

_RETRYABLE = (ConflictError, StaleDataError, IntegrityError)

# Driver messages that mean "another writer holds the lock", not a broken query.
_LOCK_MARKERS = ("database is locked", "could not serialize", "deadlock detected")


@dataclass
class _Kernel:
    """Kernel services wired to one session and one outbox."""

    session: Session
    pools: PoolService
    roster: RosterService
    ledger: ContributionLedger
    engine: PayoutEngine
    early: EarlyPayoutEvaluator
    selector: PoolSelector


class PoolOperations:
    """
    Facade over the kernel for a single deployment.

    Contract:
        Every public method returns an OperationResult.  ``value`` holds a
        frozen DTO on success and ``None`` otherwise.

    Guarantees:
        - One transaction per attempt; nothing is committed on failure.
        - Collaborators see only committed facts.

    Non-goals:
        - Authorization.  Callers decide who may invoke admin operations.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        activity_sink: ActivitySink | None = None,
        notifier: Notifier | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self.settings = settings or get_active_config()
        self.clock = clock or SystemClock()
        self.activity_sink = activity_sink or LoggingActivitySink()
        self.notifier = notifier or LoggingNotifier()
        self._sleep = sleep
        self._intervals = self.settings.schedule_intervals() or None

    # =========================================================================
    # Pool lifecycle
    # =========================================================================

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
    ) -> OperationResult[PoolInfo]:
        return self._run(
            "create_pool",
            None,
            lambda k: k.pools.create_pool(
                name,
                contribution_amount,
                admin_name,
                admin_email,
                frequency=frequency,
                max_members=max_members,
                total_rounds=total_rounds,
                description=description,
                admin_account_ref=admin_account_ref,
            ),
            "Pool created",
        )

    def start_pool(
        self, pool_id: UUID | str, start_date: date | None = None
    ) -> OperationResult[PoolInfo]:
        return self._run(
            "start_pool",
            pool_id,
            lambda k: k.pools.start_pool(pool_id, start_date),
            "Pool started",
        )

    def cancel_pool(self, pool_id: UUID | str) -> OperationResult[PoolInfo]:
        return self._run(
            "cancel_pool", pool_id, lambda k: k.pools.cancel_pool(pool_id), "Pool cancelled"
        )

    # =========================================================================
    # Roster
    # =========================================================================

    def add_member(
        self,
        pool_id: UUID | str,
        name: str,
        email: str,
        account_ref: str | None = None,
    ) -> OperationResult[MemberInfo]:
        return self._run(
            "add_member",
            pool_id,
            lambda k: k.roster.add_member(pool_id, name, email, account_ref),
            "Member added",
        )

    def remove_member(
        self, pool_id: UUID | str, member: UUID | str
    ) -> OperationResult[MemberInfo]:
        return self._run(
            "remove_member",
            pool_id,
            lambda k: k.roster.remove_member(pool_id, member),
            "Member removed",
        )

    def reorder_positions(
        self, pool_id: UUID | str, new_order: Sequence[UUID | str]
    ) -> OperationResult[list[MemberInfo]]:
        return self._run(
            "reorder_positions",
            pool_id,
            lambda k: k.engine.tracker.reorder(pool_id, new_order),
            "Payout order updated",
        )

    # =========================================================================
    # Contributions
    # =========================================================================

    def get_contribution_status(
        self, pool_id: UUID | str
    ) -> OperationResult[ContributionStatusView]:
        return self._run(
            "get_contribution_status",
            pool_id,
            lambda k: k.selector.contribution_status(pool_id),
            "Contribution status retrieved",
        )

    def confirm_contribution(
        self,
        pool_id: UUID | str,
        member: UUID | str,
        method: str = "manual",
        transaction_ref: str | None = None,
    ) -> OperationResult[ContributionInfo]:
        return self._run(
            "confirm_contribution",
            pool_id,
            lambda k: k.ledger.record_contribution(
                pool_id, member, method=method, transaction_ref=transaction_ref
            ),
            "Contribution confirmed",
            actor_id=member,
        )

    def undo_contribution(
        self, pool_id: UUID | str, member: UUID | str
    ) -> OperationResult[ContributionInfo]:
        return self._run(
            "undo_contribution",
            pool_id,
            lambda k: k.ledger.undo_contribution(pool_id, member),
            "Contribution reverted to pending",
            actor_id=member,
        )

    def mark_contribution_failed(
        self, pool_id: UUID | str, member: UUID | str, reason: str
    ) -> OperationResult[ContributionInfo]:
        return self._run(
            "mark_contribution_failed",
            pool_id,
            lambda k: k.ledger.mark_failed(pool_id, member, reason),
            "Contribution marked as failed",
        )

    # =========================================================================
    # Payouts
    # =========================================================================

    def issue_payout(
        self,
        pool_id: UUID | str,
        round_number: int | None = None,
        initiated_by: str | None = None,
    ) -> OperationResult[PayoutOutcome]:
        return self._run(
            "issue_payout",
            pool_id,
            lambda k: k.engine.issue_payout(
                pool_id, round_number, initiated_by=initiated_by
            ),
            "Payout issued",
            actor_id=initiated_by,
        )

    def get_early_payout_status(
        self, pool_id: UUID | str
    ) -> OperationResult[EarlyPayoutStatus]:
        return self._run(
            "get_early_payout_status",
            pool_id,
            lambda k: k.early.check_status(pool_id),
            "Early payout status retrieved",
        )

    def initiate_early_payout(
        self,
        pool_id: UUID | str,
        reason: str | None = None,
        initiated_by: str | None = None,
    ) -> OperationResult[EarlyPayoutResult]:
        return self._run(
            "initiate_early_payout",
            pool_id,
            lambda k: k.early.initiate_early_payout(pool_id, reason, initiated_by),
            "Early payout processed successfully",
            actor_id=initiated_by,
        )

    def get_payout_history(self, pool_id: UUID | str) -> OperationResult[list[PayoutInfo]]:
        return self._run(
            "get_payout_history",
            pool_id,
            lambda k: k.selector.payout_history(pool_id),
            "Payout history retrieved",
        )

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _kernel(self, session: Session, outbox: Outbox) -> _Kernel:
        bounds = self.settings.contribution_bounds
        early = EarlyPayoutEvaluator(session, self.clock, outbox, intervals=self._intervals)
        engine = early.engine
        return _Kernel(
            session=session,
            pools=PoolService(
                session,
                self.clock,
                outbox,
                min_contribution=bounds.minimum,
                max_contribution=bounds.maximum,
                default_max_members=self.settings.default_max_members,
                intervals=self._intervals,
            ),
            roster=engine.roster,
            ledger=engine.ledger,
            engine=engine,
            early=early,
            selector=PoolSelector(session),
        )

    def _run(
        self,
        operation: str,
        pool_id: UUID | str | None,
        work: Callable[[_Kernel], T],
        success_message: str,
        actor_id: Any = None,
    ) -> OperationResult[T]:
        correlation_id = str(uuid.uuid4())
        max_attempts = self.settings.retry.max_attempts
        factory = self._session_factory or get_session_factory()

        for attempt in range(1, max_attempts + 1):
            outbox = Outbox()
            with LogContext.bind(
                correlation_id=correlation_id,
                pool_id=pool_id,
                actor_id=actor_id,
                operation=operation,
                attempt=attempt,
            ):
                try:
                    with session_scope(factory) as session:
                        value = work(self._kernel(session, outbox))
                except _RETRYABLE as exc:
                    outbox.discard()
                    conflict = _as_conflict(exc, pool_id)
                    if attempt < max_attempts:
                        delay = self.settings.retry.backoff_seconds(attempt)
                        logger.warning(
                            "operation_conflict_retrying",
                            extra={"error": str(conflict), "backoff_seconds": delay},
                        )
                        self._sleep(delay)
                        continue
                    logger.warning(
                        "operation_conflict_exhausted",
                        extra={"error": str(conflict), "attempts": attempt},
                    )
                    return OperationResult.conflict(conflict, attempts=attempt)
                except RoscaKernelError as exc:
                    outbox.discard()
                    logger.info(
                        "operation_rejected",
                        extra={"error_code": exc.code, "error": str(exc)},
                    )
                    return OperationResult.rejected(exc, attempts=attempt)
                except OperationalError as exc:
                    outbox.discard()
                    if _is_lock_contention(exc) and attempt < max_attempts:
                        delay = self.settings.retry.backoff_seconds(attempt)
                        logger.warning(
                            "operation_lock_contention_retrying",
                            extra={"backoff_seconds": delay},
                        )
                        self._sleep(delay)
                        continue
                    if _is_lock_contention(exc):
                        return OperationResult.conflict(
                            ConflictError(str(pool_id), "lock wait exhausted"),
                            attempts=attempt,
                        )
                    logger.exception("operation_failed")
                    return OperationResult.internal_error(attempts=attempt)
                except Exception:
                    outbox.discard()
                    logger.exception("operation_failed")
                    return OperationResult.internal_error(attempts=attempt)

                self._publish(outbox)
                logger.info("operation_succeeded", extra={"attempts": attempt})
                return OperationResult.ok(value, success_message, attempts=attempt)

        # max_attempts >= 1, so every path above returns.
        raise AssertionError("unreachable")

    def _publish(self, outbox: Outbox) -> None:
        activities, notices = outbox.drain()
        for event in activities:
            try:
                self.activity_sink.post(event)
            except Exception:
                logger.warning(
                    "activity_delivery_failed",
                    extra={"activity_type": event.activity_type.value},
                    exc_info=True,
                )
        for notice in notices:
            try:
                self.notifier.notify(notice)
            except Exception:
                logger.warning(
                    "notice_delivery_failed",
                    extra={"kind": notice.kind.value},
                    exc_info=True,
                )


def _as_conflict(exc: Exception, pool_id: UUID | str | None) -> ConflictError:
    if isinstance(exc, ConflictError):
        return exc
    return ConflictError(str(pool_id), type(exc).__name__)


def _is_lock_contention(exc: OperationalError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in text for marker in _LOCK_MARKERS)

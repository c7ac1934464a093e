"""
Payout race tests.

Several admins (threads) trigger the payout for the same round at the same
moment.  Exactly one transaction may exist for the round afterwards; every
other caller gets a clean rejection, never a second payout and never an
unhandled exception.

Expected Behavior:
- One caller succeeds
- Losers see ALREADY_PAID / EARLY_PAYOUT_NOT_ALLOWED (after retrying the
  lost optimistic-lock race) or CONFLICT if retries ran out
- Payout history holds exactly one transaction for round 1
- A contribution confirmed or undone while the early payout runs either
  lands before the payout (which then sees it) or after the round closed;
  a payout never lands while a contributor is pending
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from threading import Barrier

import pytest

from rosca_config.schema import RetryPolicy
from rosca_kernel.selectors.pool_selector import PoolSelector
from rosca_kernel.services.early_payout import REASON_INCOMPLETE
from rosca_services import OperationStatus, PoolOperations

pytestmark = [pytest.mark.slow_locks]

THREADS = 6


@pytest.fixture
def ready_pool(operations):
    pool = operations.create_pool("Race Circle", 10, "Ada", "ada@example.com").value
    for i in range(2, 5):
        operations.add_member(pool.id, f"Member{i}", f"m{i}@example.com")
    operations.start_pool(pool.id)
    for row in operations.get_contribution_status(pool.id).value.pending:
        assert operations.confirm_contribution(pool.id, row.member_id, "cash").success
    return pool


def _race(fn):
    return _race_each([lambda i=i: fn(i) for i in range(THREADS)])


def _race_each(fns):
    """Run every callable at the same moment, one thread each."""
    barrier = Barrier(len(fns))

    def worker(fn):
        barrier.wait()
        return fn()

    with ThreadPoolExecutor(max_workers=len(fns)) as pool:
        return list(pool.map(worker, fns))


def test_concurrent_issue_payout_pays_once(operations, ready_pool):
    results = _race(
        lambda i: operations.issue_payout(ready_pool.id, 1, initiated_by=f"admin-{i}")
    )

    winners = [r for r in results if r.success]
    assert len(winners) == 1
    for r in results:
        if not r.success:
            assert r.status in (OperationStatus.REJECTED, OperationStatus.CONFLICT)
            assert r.code in ("ALREADY_PAID", "ROUND_CLOSED", "CONFLICT")

    history = operations.get_payout_history(ready_pool.id).value
    assert [tx.round_number for tx in history] == [1]
    assert operations.get_contribution_status(ready_pool.id).value.current_round == 2


def test_concurrent_early_payout_pays_once(operations, ready_pool, notifier):
    results = _race(lambda i: operations.initiate_early_payout(ready_pool.id, reason=f"r{i}"))

    assert sum(1 for r in results if r.success) == 1
    assert all(r.code != "INTERNAL_ERROR" for r in results)
    assert len(operations.get_payout_history(ready_pool.id).value) == 1
    # Only the committed attempt announced its payout
    assert sum(1 for n in notifier.notices if n.kind.value == "PAYOUT_ISSUED") == 1


@pytest.fixture
def patient_operations(operations):
    """Enough attempts that each confirmer can lose to every other one."""
    return PoolOperations(
        session_factory=operations._session_factory,
        settings=replace(
            operations.settings,
            retry=RetryPolicy(max_attempts=THREADS * 2, base_backoff_ms=1, max_backoff_ms=20),
        ),
        clock=operations.clock,
        activity_sink=operations.activity_sink,
        notifier=operations.notifier,
    )


def test_concurrent_confirmations_all_land(patient_operations):
    operations = patient_operations
    pool = operations.create_pool(
        "Busy Circle", 10, "Ada", "ada@example.com", max_members=THREADS + 1
    ).value
    for i in range(THREADS):
        operations.add_member(pool.id, f"Member{i}", f"c{i}@example.com")
    operations.start_pool(pool.id)

    results = _race(
        lambda i: operations.confirm_contribution(pool.id, f"c{i}@example.com", "cash")
    )

    assert all(r.success for r in results), [r.error for r in results if not r.success]
    status = operations.get_contribution_status(pool.id).value
    assert status.all_contributions_received


# =============================================================================
# Contributions racing the early-payout trigger
# =============================================================================

TRIALS = 5


def _round_one_pending(session_factory, pool_id):
    """Emails of non-recipients whose round 1 record is not confirmed."""
    with session_factory() as session:
        view = PoolSelector(session).contribution_status(pool_id, round_number=1)
        return sorted(row.email for row in view.pending)


def _circle(operations, name, confirm):
    pool = operations.create_pool(name, 10, "Ada", "ada@example.com", max_members=4).value
    for i in range(2, 5):
        operations.add_member(pool.id, f"Member{i}", f"m{i}@example.com")
    operations.start_pool(pool.id)
    for email in confirm:
        assert operations.confirm_contribution(pool.id, email, "cash").success
    return pool


def _assert_stable_rejection(result):
    if result.code == "CONFLICT":
        return
    assert result.status == OperationStatus.REJECTED
    assert result.code == "EARLY_PAYOUT_NOT_ALLOWED"
    assert result.error == REASON_INCOMPLETE


def test_undo_racing_early_payout(operations, session_factory):
    everyone = ["m2@example.com", "m3@example.com", "m4@example.com"]
    for trial in range(TRIALS):
        pool = _circle(operations, f"Undo Circle {trial}", confirm=everyone)

        undo, early = _race_each(
            [
                lambda: operations.undo_contribution(pool.id, "m3@example.com"),
                lambda: operations.initiate_early_payout(pool.id, reason="race"),
            ]
        )

        history = operations.get_payout_history(pool.id).value
        assert len(history) <= 1
        assert not (undo.success and early.success)
        if early.success:
            # The payout won: round 1 closed with every record confirmed
            assert _round_one_pending(session_factory, pool.id) == []
        else:
            _assert_stable_rejection(early)
            assert history == []
        if undo.success:
            assert _round_one_pending(session_factory, pool.id) == ["m3@example.com"]


def test_confirmation_racing_early_payout(operations, session_factory):
    for trial in range(TRIALS):
        pool = _circle(
            operations, f"Confirm Circle {trial}", confirm=["m2@example.com", "m3@example.com"]
        )

        confirm, early = _race_each(
            [
                lambda: operations.confirm_contribution(pool.id, "m4@example.com", "cash"),
                lambda: operations.initiate_early_payout(pool.id, reason="race"),
            ]
        )

        assert confirm.success, confirm.error
        history = operations.get_payout_history(pool.id).value
        assert len(history) <= 1
        assert _round_one_pending(session_factory, pool.id) == []
        if early.success:
            assert [tx.round_number for tx in history] == [1]
        else:
            _assert_stable_rejection(early)
            if early.code == "EARLY_PAYOUT_NOT_ALLOWED":
                assert early.details["missing"] == ["m4@example.com"]
            assert history == []

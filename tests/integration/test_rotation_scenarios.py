"""
End-to-end rotation scenarios through the PoolOperations facade.

Each scenario runs in separate committed transactions, the way a web
handler would call the engine.
"""

import pytest

from rosca_kernel.domain.dtos import PoolInfo


def _pool(operations, members: int, amount: int, **kwargs) -> PoolInfo:
    pool = operations.create_pool(
        "Scenario Circle", amount, "Member1", "m1@example.com", **kwargs
    ).value
    for i in range(2, members + 1):
        assert operations.add_member(pool.id, f"Member{i}", f"m{i}@example.com").success
    started = operations.start_pool(pool.id)
    assert started.success, started.error
    return started.value


def _confirm_pending(operations, pool_id, limit=None):
    pending = operations.get_contribution_status(pool_id).value.pending
    for row in pending[:limit]:
        assert operations.confirm_contribution(pool_id, row.member_id, "cash").success
    return pending


def test_full_round_pays_out_pot(operations):
    pool = _pool(operations, members=5, amount=100)
    _confirm_pending(operations, pool.id)

    status = operations.get_contribution_status(pool.id).value
    assert status.all_contributions_received

    outcome = operations.issue_payout(pool.id).value
    assert outcome.transaction.amount == 500
    assert outcome.transaction.round_number == 1
    assert outcome.advance.next_round == 2
    assert len(operations.get_payout_history(pool.id).value) == 1
    assert operations.get_contribution_status(pool.id).value.current_round == 2


def test_partial_round_blocks_early_payout(operations):
    pool = _pool(operations, members=4, amount=10)
    pending = _confirm_pending(operations, pool.id, limit=2)

    status = operations.get_early_payout_status(pool.id).value
    assert status.allowed is False
    assert status.reason == "Not all contributions have been received"
    assert [m.id for m in status.missing_contributions] == [
        row.member_id for row in pending[2:]
    ]
    assert len(status.missing_contributions) == 1


def test_early_payout_on_complete_round(operations):
    pool = _pool(operations, members=3, amount=10)
    _confirm_pending(operations, pool.id)

    result = operations.initiate_early_payout(pool.id)
    assert result.success
    assert result.value.next_round == pool.current_round + 1
    assert result.value.is_complete == (result.value.next_round > pool.total_rounds)
    assert result.value.transaction.was_early_payout


def test_reorder_changes_future_recipients_only(operations):
    pool = _pool(operations, members=3, amount=10)
    _confirm_pending(operations, pool.id)
    first = operations.issue_payout(pool.id).value.transaction
    assert first.recipient_name == "Member1"

    rows = operations.get_contribution_status(pool.id).value.contributions
    by_name = {row.name: row.member_id for row in rows}
    reordered = operations.reorder_positions(
        pool.id, [by_name["Member3"], by_name["Member1"], by_name["Member2"]]
    )
    assert reordered.success

    # Round 2 now pays position 2, which is Member1 again under the new order
    view = operations.get_contribution_status(pool.id).value
    assert view.recipient.name == "Member1"

    history = operations.get_payout_history(pool.id).value
    assert history[0].recipient_name == "Member1"
    assert history[0].recipient_member_id == first.recipient_member_id


@pytest.mark.parametrize("members", [2, 3, 5])
def test_complete_cycle_pays_everyone_once(operations, members):
    pool = _pool(operations, members=members, amount=10, max_members=members)
    for _ in range(members):
        _confirm_pending(operations, pool.id)
        assert operations.issue_payout(pool.id).success

    history = operations.get_payout_history(pool.id).value
    assert sorted(tx.recipient_name for tx in history) == sorted(
        f"Member{i}" for i in range(1, members + 1)
    )
    final = operations.issue_payout(pool.id)
    assert not final.success
    assert final.code in ("ALREADY_PAID", "POOL_NOT_ACTIVE")

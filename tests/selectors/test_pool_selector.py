"""PoolSelector read models."""

from rosca_kernel.domain.contribution_state import ContributionStatus


def test_contribution_status_before_any_payment(started_pool, selector):
    view = selector.contribution_status(started_pool.id)

    assert view.current_round == 1
    assert view.total_rounds == 3
    assert view.contribution_amount == 10
    assert view.recipient.email == "m1@example.com"
    assert not view.all_contributions_received

    rows = {row.email: row for row in view.contributions}
    assert rows["m1@example.com"].is_recipient
    assert rows["m1@example.com"].contribution_status is None
    assert rows["m1@example.com"].amount == 0
    assert rows["m2@example.com"].contribution_status == ContributionStatus.PENDING.value
    assert rows["m2@example.com"].amount == 10
    assert [row.email for row in view.pending] == ["m2@example.com", "m3@example.com"]


def test_contribution_status_after_payments(started_pool, ledger, selector, deterministic_clock):
    ledger.record_contribution(started_pool.id, "m2@example.com")
    ledger.mark_failed(started_pool.id, "m3@example.com", "card declined")

    view = selector.contribution_status(started_pool.id)
    rows = {row.email: row for row in view.contributions}
    assert rows["m2@example.com"].has_contributed
    assert rows["m2@example.com"].contribution_date == deterministic_clock.now()
    assert rows["m3@example.com"].contribution_status == ContributionStatus.FAILED.value
    assert not rows["m3@example.com"].has_contributed
    assert not view.all_contributions_received


def test_all_received(started_pool, confirm_all, selector):
    confirm_all(started_pool.id)
    assert selector.contribution_status(started_pool.id).all_contributions_received


def test_unstarted_pool_has_no_recipient(make_pool, selector):
    pool = make_pool(members=2)
    view = selector.contribution_status(pool.id)
    assert view.recipient is None
    assert not view.all_contributions_received


def test_list_members_hides_removed_by_default(make_pool, roster, selector):
    pool = make_pool(members=3)
    roster.remove_member(pool.id, "m3@example.com")
    assert len(selector.list_members(pool.id)) == 2
    assert len(selector.list_members(pool.id, include_removed=True)) == 3


def test_member_contribution_history(started_pool, confirm_all, payout_engine, roster, selector):
    confirm_all(started_pool.id)
    payout_engine.issue_payout(started_pool.id)
    member = roster.lookup(started_pool.id, "m3@example.com")

    history = selector.member_contributions(started_pool.id, member.id)
    assert [(c.round_number, c.is_confirmed) for c in history] == [(1, True), (2, False)]


def test_payout_history_empty(started_pool, selector):
    assert selector.payout_history(started_pool.id) == []

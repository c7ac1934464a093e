"""
ContributionLedger tests.

Tests cover:
- Confirm: stats, pool balance, activity, duplicate rejection, field lengths
- Recipient exemption
- Undo: back to pending, stats reversed
- Mark failed: dispute, re-confirmation allowed
- Round guards: not started, closed, future, finished pool
- Completeness: missing members, late joiners
"""

from datetime import UTC, datetime

import pytest

from rosca_kernel.domain.contribution_state import Confirmed, ContributionStatus, Failed, Pending
from rosca_kernel.domain.outbox import ActivityType
from rosca_kernel.exceptions import (
    AlreadyContributedError,
    ContributionNotConfirmedError,
    PoolNotActiveError,
    RecipientExemptError,
    RoundClosedError,
    RoundNotOpenError,
    ValidationError,
)


class TestRecordContribution:
    def test_confirm_marks_record(self, started_pool, ledger):
        info = ledger.record_contribution(
            started_pool.id, "m2@example.com", method="venmo", transaction_ref="v-1"
        )
        assert info.is_confirmed
        assert info.round_number == 1
        assert info.amount == 10
        assert isinstance(info.state, Confirmed)
        assert info.state.method == "venmo"
        assert info.state.transaction_ref == "v-1"

    def test_confirm_updates_member_and_pool(self, started_pool, ledger, roster, pool_service):
        ledger.record_contribution(started_pool.id, "m2@example.com")
        member = roster.lookup(started_pool.id, "m2@example.com")
        assert member.total_contributed == 10
        assert member.payments_on_time == 1
        assert pool_service.get_pool(started_pool.id).total_amount == 10

    def test_late_confirmation_not_on_time(
        self, started_pool, ledger, roster, deterministic_clock
    ):
        # next_payout_date is 2024-01-08
        deterministic_clock.set_time(datetime(2024, 1, 10, 9, 0, tzinfo=UTC))
        ledger.record_contribution(started_pool.id, "m2@example.com")
        member = roster.lookup(started_pool.id, "m2@example.com")
        assert member.total_contributed == 10
        assert member.payments_on_time == 0

    def test_payment_received_activity(self, started_pool, ledger, outbox):
        ledger.record_contribution(started_pool.id, "m3@example.com")
        event = outbox.activities[-1]
        assert event.activity_type == ActivityType.PAYMENT_RECEIVED
        assert event.data == {"memberName": "Member3", "amount": 10, "round": 1}

    def test_second_confirmation_rejected(self, started_pool, ledger):
        ledger.record_contribution(started_pool.id, "m2@example.com")
        with pytest.raises(AlreadyContributedError) as exc_info:
            ledger.record_contribution(started_pool.id, "m2@example.com")
        assert str(exc_info.value) == "You have already contributed for this round"

    def test_recipient_is_exempt(self, started_pool, ledger):
        with pytest.raises(RecipientExemptError) as exc_info:
            ledger.record_contribution(started_pool.id, "m1@example.com")
        assert str(exc_info.value) == (
            "You are the recipient for this round and do not need to contribute"
        )

    def test_not_started_pool(self, make_pool, ledger):
        pool = make_pool(members=3)
        with pytest.raises(RoundNotOpenError):
            ledger.record_contribution(pool.id, "m2@example.com")

    def test_future_round_rejected(self, started_pool, ledger):
        with pytest.raises(RoundNotOpenError):
            ledger.record_contribution(started_pool.id, "m2@example.com", round_number=2)

    def test_paid_round_is_closed(self, started_pool, confirm_all, payout_engine, ledger):
        confirm_all(started_pool.id)
        payout_engine.issue_payout(started_pool.id)
        with pytest.raises(RoundClosedError):
            ledger.record_contribution(started_pool.id, "m3@example.com", round_number=1)

    def test_cancelled_pool_rejected(self, started_pool, pool_service, ledger):
        pool_service.cancel_pool(started_pool.id)
        with pytest.raises(PoolNotActiveError):
            ledger.record_contribution(started_pool.id, "m2@example.com")

    def test_overlong_method_rejected(self, started_pool, ledger):
        with pytest.raises(ValidationError):
            ledger.record_contribution(started_pool.id, "m2@example.com", method="m" * 51)
        assert ledger.state_of(started_pool.id, "m2@example.com", 1) == Pending()

    def test_overlong_transaction_ref_rejected(self, started_pool, ledger):
        with pytest.raises(ValidationError):
            ledger.record_contribution(
                started_pool.id, "m2@example.com", transaction_ref="r" * 201
            )

    def test_method_at_limit_accepted(self, started_pool, ledger):
        info = ledger.record_contribution(started_pool.id, "m2@example.com", method="m" * 50)
        assert info.is_confirmed


class TestUndoContribution:
    def test_undo_returns_to_pending(self, started_pool, ledger, roster, pool_service):
        ledger.record_contribution(started_pool.id, "m2@example.com")
        info = ledger.undo_contribution(started_pool.id, "m2@example.com")

        assert info.status == ContributionStatus.PENDING
        assert info.state == Pending()
        member = roster.lookup(started_pool.id, "m2@example.com")
        assert member.total_contributed == 0
        assert member.payments_on_time == 0
        assert pool_service.get_pool(started_pool.id).total_amount == 0

    def test_undo_pending_rejected(self, started_pool, ledger):
        with pytest.raises(ContributionNotConfirmedError):
            ledger.undo_contribution(started_pool.id, "m2@example.com")

    def test_confirm_after_undo(self, started_pool, ledger):
        ledger.record_contribution(started_pool.id, "m2@example.com")
        ledger.undo_contribution(started_pool.id, "m2@example.com")
        assert ledger.record_contribution(started_pool.id, "m2@example.com").is_confirmed


class TestMarkFailed:
    def test_failed_reverses_confirmation(self, started_pool, ledger, roster):
        ledger.record_contribution(started_pool.id, "m2@example.com")
        info = ledger.mark_failed(started_pool.id, "m2@example.com", "payment bounced")

        assert info.state == Failed(reason="payment bounced")
        assert roster.lookup(started_pool.id, "m2@example.com").total_contributed == 0
        assert not ledger.is_complete(started_pool.id)

    def test_reason_required(self, started_pool, ledger):
        with pytest.raises(ValidationError):
            ledger.mark_failed(started_pool.id, "m2@example.com", "  ")

    def test_overlong_reason_rejected(self, started_pool, ledger):
        with pytest.raises(ValidationError):
            ledger.mark_failed(started_pool.id, "m2@example.com", "r" * 501)

    def test_failed_can_be_reconfirmed(self, started_pool, ledger):
        ledger.mark_failed(started_pool.id, "m2@example.com", "never arrived")
        assert ledger.record_contribution(started_pool.id, "m2@example.com").is_confirmed


class TestCompleteness:
    def test_round_opens_with_pending_records(self, started_pool, ledger):
        assert ledger.state_of(started_pool.id, "m2@example.com", 1) == Pending()
        assert [m.email for m in ledger.missing_members(started_pool.id)] == [
            "m2@example.com",
            "m3@example.com",
        ]

    def test_complete_when_all_non_recipients_confirm(self, started_pool, ledger):
        ledger.record_contribution(started_pool.id, "m2@example.com")
        assert not ledger.is_complete(started_pool.id)
        ledger.record_contribution(started_pool.id, "m3@example.com")
        assert ledger.is_complete(started_pool.id)

    def test_late_joiner_must_contribute(self, make_pool, ledger, roster):
        pool = make_pool(members=3, max_members=4, start=True)
        ledger.record_contribution(pool.id, "m2@example.com")
        ledger.record_contribution(pool.id, "m3@example.com")
        roster.add_member(pool.id, "Late", "late@example.com")

        assert not ledger.is_complete(pool.id)
        assert [m.email for m in ledger.missing_members(pool.id)] == ["late@example.com"]
        ledger.record_contribution(pool.id, "late@example.com")
        assert ledger.is_complete(pool.id)

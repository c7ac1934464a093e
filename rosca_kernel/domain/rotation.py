"""
Rotation -- pure rules for payout order, round progression and schedule.

Responsibility:
    Derives who receives each round's payout, how much they receive, where
    a new member slots into the order, and when the next round comes due.
    Every function here is a pure function of its arguments.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - recipient_position(r, n) is in 1..n for every r >= 1 and n >= 1.
      When a pool runs more rounds than it has members the rotation wraps
      around: position ((r - 1) mod n) + 1.
    - compact_positions() always yields the permutation 1..n.
    - scheduled_date() is measured from the start date for every round, so
      month-end clamping never compounds.
    - Round state is a closed variant: NotStarted, RoundInProgress(r) or
      Completed.

Failure modes:
    - ValueError on non-positive round numbers or empty rosters.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import TypeVar, Union

from dateutil.relativedelta import relativedelta

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Round state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotStarted:
    """The pool has not opened round 1 yet."""


@dataclass(frozen=True)
class RoundInProgress:
    """Round ``round_number`` is open for contributions."""

    round_number: int


@dataclass(frozen=True)
class Completed:
    """Every round has been paid out."""

    rounds_paid: int


RoundState = Union[NotStarted, RoundInProgress, Completed]


def round_state(current_round: int, total_rounds: int) -> RoundState:
    """Classify the pool's round counter."""
    if current_round <= 0:
        return NotStarted()
    if current_round > total_rounds:
        return Completed(rounds_paid=total_rounds)
    return RoundInProgress(round_number=current_round)


# ---------------------------------------------------------------------------
# Payout order
# ---------------------------------------------------------------------------


def recipient_position(round_number: int, member_count: int) -> int:
    """Position of the member who receives round ``round_number``."""
    if round_number < 1:
        raise ValueError(f"round_number must be >= 1, got {round_number}")
    if member_count < 1:
        raise ValueError(f"member_count must be >= 1, got {member_count}")
    return ((round_number - 1) % member_count) + 1


def next_free_position(taken: Iterable[int]) -> int:
    """Smallest positive position not already assigned."""
    used = set(taken)
    position = 1
    while position in used:
        position += 1
    return position


def is_permutation(positions: Iterable[int], member_count: int) -> bool:
    """True if ``positions`` is exactly {1..member_count} with no repeats."""
    values = list(positions)
    return len(values) == member_count and set(values) == set(range(1, member_count + 1))


def compact_positions(ordered: Sequence[T]) -> dict[T, int]:
    """Number items 1..n in their given order."""
    return {item: index for index, item in enumerate(ordered, start=1)}


def compute_payout_amount(contribution_amount: int, member_count: int) -> int:
    """Pooled amount handed to a round's recipient."""
    if contribution_amount < 0 or member_count < 0:
        raise ValueError("contribution_amount and member_count must be non-negative")
    return contribution_amount * member_count


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduleInterval:
    """Distance between two payout dates."""

    days: int = 0
    months: int = 0


DEFAULT_INTERVALS: dict[str, ScheduleInterval] = {
    "weekly": ScheduleInterval(days=7),
    "biweekly": ScheduleInterval(days=14),
    "monthly": ScheduleInterval(months=1),
}


def scheduled_date(start: date, interval: ScheduleInterval, round_number: int) -> date:
    """Due date of ``round_number``: ``round_number`` whole intervals after start.

    Each round is measured from the start date, so a month-end start
    clamps per round (Jan 31 -> Feb 29 -> Mar 31) instead of drifting.
    """
    if round_number < 0:
        raise ValueError(f"round_number must be >= 0, got {round_number}")
    return start + relativedelta(
        days=interval.days * round_number,
        months=interval.months * round_number,
    )

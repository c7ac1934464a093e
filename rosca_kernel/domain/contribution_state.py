"""
ContributionState -- closed variant for a member's attestation in one round.

Responsibility:
    A contribution record is exactly one of ``Pending``, ``Confirmed`` or
    ``Failed``.  The persisted row spreads that over five nullable columns;
    this module is the only place that maps between the two, so a row can
    never carry a confirmation time while pending or a failure reason while
    confirmed.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Transitions (enforced by ContributionLedger):
    Pending   --record-->  Confirmed
    Failed    --record-->  Confirmed
    Confirmed --undo---->  Pending
    Pending   --fail---->  Failed
    Confirmed --fail---->  Failed
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union


class ContributionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class Pending:
    """Awaiting the member's attestation."""

    status = ContributionStatus.PENDING


@dataclass(frozen=True)
class Confirmed:
    """The member reported paying.  method and transaction_ref are metadata."""

    at: datetime
    method: str
    transaction_ref: str | None = None

    status = ContributionStatus.CONFIRMED

    def __post_init__(self) -> None:
        if self.at.tzinfo is None:
            raise ValueError("Confirmed.at must be timezone-aware")


@dataclass(frozen=True)
class Failed:
    """An admin disputed or rejected the attestation."""

    reason: str

    status = ContributionStatus.FAILED


ContributionState = Union[Pending, Confirmed, Failed]


def is_confirmed(state: ContributionState) -> bool:
    return isinstance(state, Confirmed)


def from_columns(
    status: str,
    confirmed_at: datetime | None = None,
    method: str | None = None,
    transaction_ref: str | None = None,
    failure_reason: str | None = None,
) -> ContributionState:
    """Rebuild the variant from persisted columns.

    Raises:
        ValueError: if the columns do not describe a valid state.
    """
    status = ContributionStatus(status)
    if status == ContributionStatus.PENDING:
        return Pending()
    if status == ContributionStatus.CONFIRMED:
        if confirmed_at is None:
            raise ValueError("Confirmed contribution without confirmed_at")
        return Confirmed(at=confirmed_at, method=method or "", transaction_ref=transaction_ref)
    return Failed(reason=failure_reason or "")


def to_columns(state: ContributionState) -> dict[str, Any]:
    """Flatten the variant into the column values a row must hold."""
    match state:
        case Confirmed(at=at, method=method, transaction_ref=ref):
            return {
                "status": ContributionStatus.CONFIRMED.value,
                "confirmed_at": at,
                "method": method,
                "transaction_ref": ref,
                "failure_reason": None,
            }
        case Failed(reason=reason):
            return {
                "status": ContributionStatus.FAILED.value,
                "confirmed_at": None,
                "method": None,
                "transaction_ref": None,
                "failure_reason": reason,
            }
        case Pending():
            return {
                "status": ContributionStatus.PENDING.value,
                "confirmed_at": None,
                "method": None,
                "transaction_ref": None,
                "failure_reason": None,
            }
    raise TypeError(f"Not a contribution state: {state!r}")

"""Domain models for the rosca kernel."""

from rosca_kernel.models.contribution import Contribution, ContributionStatus
from rosca_kernel.models.member import Member, MemberRole, MemberStatus
from rosca_kernel.models.payout import PayoutTransaction
from rosca_kernel.models.pool import Frequency, Pool, PoolStatus

__all__ = [
    "Contribution",
    "ContributionStatus",
    "Frequency",
    "Member",
    "MemberRole",
    "MemberStatus",
    "PayoutTransaction",
    "Pool",
    "PoolStatus",
]

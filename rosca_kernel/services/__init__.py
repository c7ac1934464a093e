"""Services for the rosca kernel (write side)."""

from rosca_kernel.services.contribution_ledger import ContributionLedger
from rosca_kernel.services.early_payout import EarlyPayoutEvaluator
from rosca_kernel.services.payout_engine import PayoutEngine
from rosca_kernel.services.pool_repository import PoolRepository
from rosca_kernel.services.pool_service import PoolService
from rosca_kernel.services.roster_service import RosterService
from rosca_kernel.services.round_tracker import RoundTracker

__all__ = [
    "ContributionLedger",
    "EarlyPayoutEvaluator",
    "PayoutEngine",
    "PoolRepository",
    "PoolService",
    "RosterService",
    "RoundTracker",
]

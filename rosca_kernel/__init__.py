"""
Rosca Kernel - rotation and payout engine for rotating savings circles.

A single-writer-per-pool engine with:
- Fixed payout order over a member roster
- Per-round contribution attestations
- Exactly one payout transaction per round
- Early payouts once every contribution is in
- Optimistic versioning plus row locks against concurrent writers
"""

__version__ = "0.1.0"

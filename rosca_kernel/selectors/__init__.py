"""Selectors for the rosca kernel (read side)."""

from rosca_kernel.selectors.pool_selector import PoolSelector

__all__ = ["PoolSelector"]

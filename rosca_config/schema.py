"""
EngineSettings schema.

Frozen dataclasses that a configuration set is parsed into.  The loader
builds them from YAML; ``get_active_config()`` hands them to the service
layer, which passes plain values down to the kernel.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rosca_kernel.domain.rotation import ScheduleInterval

# ---------------------------------------------------------------------------
# Pool terms
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContributionBounds:
    """Inclusive range for a pool's contribution amount."""

    minimum: int = 1
    maximum: int = 20

    def __post_init__(self) -> None:
        if self.minimum < 1:
            raise ValueError(f"contribution minimum must be >= 1, got {self.minimum}")
        if self.maximum < self.minimum:
            raise ValueError(
                f"contribution maximum {self.maximum} is below minimum {self.minimum}"
            )


@dataclass(frozen=True)
class IntervalDef:
    """Distance between two payout dates for one frequency."""

    days: int = 0
    months: int = 0

    def __post_init__(self) -> None:
        if self.days < 0 or self.months < 0 or (self.days == 0 and self.months == 0):
            raise ValueError("interval must move forward by days or months")

    def to_kernel(self) -> ScheduleInterval:
        return ScheduleInterval(days=self.days, months=self.months)


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    """How often a conflicting unit of work is re-run."""

    max_attempts: int = 3
    base_backoff_ms: int = 20
    max_backoff_ms: int = 250

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_backoff_ms < 0 or self.max_backoff_ms < self.base_backoff_ms:
            raise ValueError("backoff bounds are inconsistent")

    def backoff_seconds(self, attempt: int) -> float:
        """Exponential backoff before ``attempt + 1`` (attempt is 1-based)."""
        delay_ms = min(self.base_backoff_ms * (2 ** (attempt - 1)), self.max_backoff_ms)
        return delay_ms / 1000.0


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineSettings:
    """The complete runtime configuration of the engine."""

    config_id: str
    version: int
    contribution_bounds: ContributionBounds = field(default_factory=ContributionBounds)
    default_max_members: int = 10
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    schedule: dict[str, IntervalDef] = field(default_factory=dict)
    checksum: str = ""

    def schedule_intervals(self) -> dict[str, ScheduleInterval]:
        return {name: interval.to_kernel() for name, interval in self.schedule.items()}

"""
rosca_services -- Package init and public API.

Responsibility:
    Transaction ownership, retries and post-commit delivery over the pure
    flush-only services in rosca_kernel.  This is the only layer that
    commits, sleeps between attempts or talks to collaborators.

Architecture position:
    Services -- stateful orchestration over the kernel.

        rosca_services/ -> rosca_kernel/  (allowed)
        rosca_services/ -> rosca_config/  (allowed)
        rosca_kernel/   -> rosca_services/ (FORBIDDEN)

Audit relevance:
    - This package is the canonical import surface for external consumers.
      Changes to __all__ must be reviewed for backwards-compatibility.
"""

from rosca_kernel.logging_config import get_logger

logger = get_logger("services")

from rosca_services.collaborators import (  # noqa: E402
    ActivitySink,
    LoggingActivitySink,
    LoggingNotifier,
    Notifier,
)
from rosca_services.pool_operations import PoolOperations  # noqa: E402
from rosca_services.results import OperationResult, OperationStatus  # noqa: E402

__all__ = [
    "ActivitySink",
    "LoggingActivitySink",
    "LoggingNotifier",
    "Notifier",
    "OperationResult",
    "OperationStatus",
    "PoolOperations",
]

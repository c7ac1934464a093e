"""
OperationResult -- what every exposed operation returns.

Kernel errors never cross the engine boundary as exceptions.  The facade
turns each one into a failed result with the error's stable ``code`` and a
human-readable message; unexpected errors become ``INTERNAL_ERROR`` with a
generic message and are logged with full context instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from rosca_kernel.exceptions import RoscaKernelError

T = TypeVar("T")

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"
INTERNAL_ERROR_MESSAGE = "An unexpected error occurred"


class OperationStatus(str, Enum):
    SUCCESS = "success"
    REJECTED = "rejected"
    CONFLICT = "conflict"
    ERROR = "error"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    status: OperationStatus
    message: str
    value: T | None = None
    error: str | None = None
    code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    attempts: int = 1

    @property
    def success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @classmethod
    def ok(cls, value: T, message: str, attempts: int = 1) -> OperationResult[T]:
        return cls(
            status=OperationStatus.SUCCESS,
            message=message,
            value=value,
            attempts=attempts,
        )

    @classmethod
    def rejected(cls, exc: RoscaKernelError, attempts: int = 1) -> OperationResult[T]:
        details = {
            k: v for k, v in vars(exc).items() if not k.startswith("_")
        }
        return cls(
            status=OperationStatus.REJECTED,
            message=str(exc),
            error=str(exc),
            code=exc.code,
            details=details,
            attempts=attempts,
        )

    @classmethod
    def conflict(cls, exc: RoscaKernelError, attempts: int) -> OperationResult[T]:
        return cls(
            status=OperationStatus.CONFLICT,
            message="The pool was modified concurrently; please retry",
            error=str(exc),
            code=exc.code,
            attempts=attempts,
        )

    @classmethod
    def internal_error(cls, attempts: int = 1) -> OperationResult[T]:
        return cls(
            status=OperationStatus.ERROR,
            message=INTERNAL_ERROR_MESSAGE,
            error=INTERNAL_ERROR_MESSAGE,
            code=INTERNAL_ERROR_CODE,
            attempts=attempts,
        )

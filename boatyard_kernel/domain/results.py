"""
GovernanceResult -- the outcome type of every public governance operation.

Expected domain violations (frozen configuration, illegal transition,
missing permission) come back as a failed result carrying the error
``code`` and the user-facing messages.  Only programmer errors propagate
as exceptions.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from boatyard_kernel.exceptions import BoatyardKernelError

T = TypeVar("T")


class ResultStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class GovernanceResult(Generic[T]):
    """Result of a governance operation."""

    status: ResultStatus
    value: T | None = None
    error_code: str | None = None
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_success(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    @property
    def message(self) -> str:
        """All error messages joined into one sentence list."""
        return ". ".join(self.errors)

    @classmethod
    def success(
        cls,
        value: T | None = None,
        warnings: Sequence[str] = (),
    ) -> GovernanceResult[T]:
        return cls(
            status=ResultStatus.SUCCESS,
            value=value,
            warnings=tuple(warnings),
        )

    @classmethod
    def failure(
        cls,
        error_code: str,
        errors: Sequence[str],
        warnings: Sequence[str] = (),
    ) -> GovernanceResult[T]:
        return cls(
            status=ResultStatus.FAILURE,
            error_code=error_code,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    @classmethod
    def from_error(
        cls,
        error: BoatyardKernelError,
        warnings: Sequence[str] = (),
    ) -> GovernanceResult[T]:
        """Convert a domain exception, keeping every message it carries."""
        messages = getattr(error, "errors", None) or [str(error)]
        return cls.failure(error.code, messages, warnings)

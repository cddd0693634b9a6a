"""
Optimistic concurrency retry.

Governance services never hold a lock across the read-plan-write cycle.
Instead the repository compares versions on write, and the service runs
the whole cycle inside ``run_with_optimistic_retry``: on a conflict the
session is rolled back (expiring everything it had loaded), and the
operation runs again against fresh state.
"""

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session

from boatyard_kernel.exceptions import OptimisticLockError
from boatyard_kernel.logging_config import get_logger

logger = get_logger("services.concurrency")

T = TypeVar("T")

DEFAULT_RETRY_ATTEMPTS = 3


def run_with_optimistic_retry(
    session: Session,
    operation: Callable[[], T],
    attempts: int = DEFAULT_RETRY_ATTEMPTS,
    operation_name: str = "operation",
) -> T:
    """
    Run ``operation`` until it stops losing optimistic-lock races.

    ``operation`` must load everything it needs itself; it is called again
    from scratch after each conflict.

    Raises:
        OptimisticLockError: Every attempt conflicted.
        ValueError: ``attempts`` is less than 1.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except OptimisticLockError:
            session.rollback()
            if attempt == attempts:
                logger.error(
                    "optimistic_retry_exhausted",
                    extra={"operation_name": operation_name, "attempts": attempts},
                )
                raise
            logger.warning(
                "optimistic_retry",
                extra={"operation_name": operation_name, "attempt": attempt},
            )
    raise AssertionError("unreachable")

"""
Injected time source.

Snapshot freeze times, amendment approvals, library pins, planned
production dates and audit timestamps are all read from a ``Clock`` handed
to the service at construction.  Nothing in the kernel calls
``datetime.now()`` except ``SystemClock``.

All clocks return timezone-aware UTC datetimes.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

#: Default start for test clocks: the yard's first working day of 2024.
DEFAULT_EPOCH = datetime(2024, 1, 2, 8, 0, 0, tzinfo=UTC)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""


class SystemClock(Clock):
    """Wall-clock time; the production default."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Frozen time for tests.

    Guarantees:
        ``now()`` keeps returning the same instant until ``advance`` or
        ``set`` moves it, so two records written in one command carry
        equal timestamps.
    """

    def __init__(self, instant: datetime | None = None):
        self._instant = _as_utc(instant or DEFAULT_EPOCH)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = _as_utc(instant)

    def advance(self, delta: timedelta | int = 1) -> datetime:
        """Move forward by ``delta`` (seconds when an int) and return the new time."""
        if isinstance(delta, int):
            delta = timedelta(seconds=delta)
        self._instant += delta
        return self._instant


class TickingClock(Clock):
    """
    Steps forward on every read.

    The n-th call to ``now()`` returns ``start + n * step``, which makes the
    order of clock reads inside a command visible in the recorded times.
    """

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self._next = _as_utc(start or DEFAULT_EPOCH)
        self._step = step

    def now(self) -> datetime:
        current, self._next = self._next, self._next + self._step
        return current


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        raise ValueError("Clock instants must be timezone-aware")
    return instant.astimezone(UTC)

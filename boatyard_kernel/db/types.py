"""
Column types that read back exactly what the domain wrote.

SQLite has no UUID, no exact decimal and no timezone storage, so each of
those is carried as text or normalised here:

* ``UUIDString``: 36-character text, ``UUID`` on read.
* ``DecimalString``: the decimal's own text, so ``Decimal("1000.05")``
  comes back digit for digit.  Floats are refused outright; a price that
  has been through a float is already wrong.
* ``UTCDateTime``: aware datetimes only, stored in UTC, UTC attached on
  read.  A naive value means someone bypassed the injected clock.
"""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, String
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class DecimalString(TypeDecorator):
    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError(f"Refusing to store float {value!r} in an exact decimal column")
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)


class UTCDateTime(TypeDecorator):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetimes are not accepted; use an injected Clock")
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)

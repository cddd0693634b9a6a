"""
Declarative base for the boatyard schema.

Every table gets a UUID primary key, and annotated columns pick their SQL
type from one map so the whole schema agrees on three things:

* ``Decimal`` columns hold exact decimal text (prices, VAT rates, costs);
* ``datetime`` columns come back timezone-aware UTC, SQLite included;
* ``UUID`` columns are 36-character strings.

``TrackedBase`` adds who-and-when columns for mutable aggregate rows.
History rows (snapshots, amendments, BOMs, audit entries) declare their own
``created_at``/``created_by_id`` because they are written once and never
touched again.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from boatyard_kernel.db.types import DecimalString, UTCDateTime, UUIDString

__all__ = ["Base", "TrackedBase", "UUIDString"]


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: DecimalString(),
        datetime: UTCDateTime(),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Mutable row with authorship.

    ``created_at``/``created_by_id`` are supplied by the service from its
    injected clock and actor; ``updated_at`` is stamped by the database on
    every UPDATE and ``updated_by_id`` by the repository.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    created_by_id: Mapped[UUID]
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    updated_by_id: Mapped[UUID | None]

"""Persistence plumbing: engine, declarative base, column types, append-only guards."""

from boatyard_kernel.db.base import Base, TrackedBase
from boatyard_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from boatyard_kernel.db.types import DecimalString, UTCDateTime, UUIDString

__all__ = [
    "Base",
    "DecimalString",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]

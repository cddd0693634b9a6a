"""
Engine and session lifecycle.

Responsibility:
    Own the process-wide engine and session factory, create and drop the
    schema, and hand out sessions.

Architecture position:
    Kernel > DB.  Imports models only inside ``create_tables`` so that the
    mapper registry is populated before ``create_all``.

Invariants enforced:
    - An in-memory SQLite URL is served by a single shared connection;
      otherwise each session would see its own empty database.
    - ``create_tables`` always arms the append-only listeners, so a schema
      is never usable without them.
    - Sessions keep loaded state after commit (``expire_on_commit=False``);
      services return domain values built before the commit.

Failure modes:
    - ``RuntimeError`` from any accessor before ``init_engine_from_url``.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from boatyard_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None

_NOT_READY = "Database not initialized; call init_engine_from_url() first"


def _engine_options(database_url: str, pool_size: int, pool_recycle: int) -> dict[str, Any]:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return {
            "pool_size": pool_size,
            "pool_recycle": pool_recycle,
            "pool_pre_ping": True,
        }
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


def init_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 10,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Bind the kernel to ``database_url`` (any SQLAlchemy URL).

    Pool settings apply to server databases only.  Calling again replaces
    the previous engine without disposing it; use ``reset_engine`` first
    when that matters.
    """
    global _engine, _sessions

    _engine = create_engine(
        database_url, echo=echo, **_engine_options(database_url, pool_size, pool_recycle)
    )
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_READY)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that need several independent sessions."""
    if _sessions is None:
        raise RuntimeError(_NOT_READY)
    return _sessions


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One unit of work: commit on success, roll back and re-raise on error.

    Governance services commit on their own; this is for scripts and
    fixtures that write through the repository directly.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the schema and arm the append-only listeners."""
    import boatyard_kernel.models  # noqa: F401
    from boatyard_kernel.db.base import Base
    from boatyard_kernel.db.immutability import register_immutability_listeners

    Base.metadata.create_all(get_engine())
    register_immutability_listeners()
    logger.info("schema_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    from boatyard_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget it; accessors raise until re-initialized."""
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None

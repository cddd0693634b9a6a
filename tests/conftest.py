"""
Pytest fixtures for the boatyard kernel test suite.

Provides:
- SQLite in-memory database sessions (fresh schema per test)
- Deterministic clocks
- In-memory fakes for the quote, client and catalog collaborators
- The wired governance service graph built from the packaged settings
- Project factories that walk a project through its lifecycle
"""

import json
import logging
from io import StringIO
from uuid import UUID, uuid4

import pytest

from boatyard_config import get_active_settings
from boatyard_config.bridges import GovernanceServices, build_governance_services
from boatyard_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from boatyard_kernel.domain.actors import AuditContext, User
from boatyard_kernel.domain.clock import DeterministicClock
from boatyard_kernel.domain.configuration import NewConfigurationItem
from boatyard_kernel.domain.project import NewProject, Project
from boatyard_kernel.domain.status_machine import ProjectStatus
from boatyard_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.helpers import (
    LIFECYCLE_ORDER,
    FakeClientDirectory,
    FakeQuoteProvider,
    make_user,
)

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture boatyard_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, services):
            services.projects.archive(...)
            logs = captured_logs()
            assert any(r["message"] == "governance_operation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("boatyard_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite schema for each test."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Clock and actors
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def actor() -> AuditContext:
    return AuditContext(actor_id=TEST_ACTOR_ID, actor_name="Test Actor")


@pytest.fixture
def admin_user() -> User:
    return make_user("ADMIN")


@pytest.fixture
def manager_user() -> User:
    return make_user("MANAGER")


@pytest.fixture
def sales_user() -> User:
    return make_user("SALES")


# =============================================================================
# Collaborator fakes
# =============================================================================


@pytest.fixture
def quotes() -> FakeQuoteProvider:
    return FakeQuoteProvider()


@pytest.fixture
def clients() -> FakeClientDirectory:
    return FakeClientDirectory()


@pytest.fixture
def client_id(clients) -> UUID:
    return clients.add("Van der Berg Yachting")


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def settings():
    return get_active_settings()


@pytest.fixture
def services(session, settings, quotes, clients, deterministic_clock) -> GovernanceServices:
    return build_governance_services(
        session, settings, quotes, clients, clock=deterministic_clock
    )


@pytest.fixture
def create_project(services, client_id, actor):
    """Factory: create a DRAFT project, optionally with items."""

    def _create(
        items: tuple[NewConfigurationItem, ...] = (),
        title: str = "Eagle 28 electric",
        boat_model_version_id: str | None = "eagle-28-v3",
    ) -> Project:
        result = services.projects.create_project(
            NewProject(
                title=title,
                client_id=client_id,
                boat_model_version_id=boat_model_version_id,
            ),
            actor,
        )
        assert result.is_success, result.message
        project = result.value
        for new_item in items:
            added = services.configuration.add_item(project.id, new_item, actor)
            assert added.is_success, added.message
        return services.projects.get_by_id(project.id)

    return _create


@pytest.fixture
def advance_to(services, quotes, actor):
    """Walk a project along the happy path up to ``target``, satisfying prerequisites."""

    def _advance(project_id: UUID, target: ProjectStatus) -> Project:
        quotes.satisfy_all(project_id)
        project = services.projects.get_by_id(project_id)
        start = LIFECYCLE_ORDER.index(project.status) + 1
        for status in LIFECYCLE_ORDER[start : LIFECYCLE_ORDER.index(target) + 1]:
            result = services.projects.transition_status(project_id, status, actor)
            assert result.is_success, result.message
            project = result.value
        assert project.status == target
        return project

    return _advance

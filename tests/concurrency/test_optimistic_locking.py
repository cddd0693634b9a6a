"""
Optimistic locking across sessions.

Two sessions share a file-backed SQLite database so each has its own
connection and identity map.  Session B commits a competing write after
session A has planned its change and before A saves it.

Verifies:
- The repository turns a lost compare-and-swap into OptimisticLockError
- Governance services retry against fresh state and succeed
- A service out of retry attempts reports OPTIMISTIC_LOCK_CONFLICT
- run_with_optimistic_retry rolls back between attempts and rejects attempts < 1
"""

from dataclasses import replace

import pytest

from boatyard_config.bridges import build_governance_services
from boatyard_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from boatyard_kernel.domain.clock import DeterministicClock
from boatyard_kernel.domain.project import NewProject
from boatyard_kernel.domain.status_machine import ProjectStatus
from boatyard_kernel.exceptions import OptimisticLockError
from boatyard_kernel.services.auditor_service import AuditorService
from boatyard_kernel.services.concurrency import run_with_optimistic_retry
from boatyard_kernel.services.repository import SqlProjectRepository
from tests.helpers import item

pytestmark = pytest.mark.slow


@pytest.fixture
def session_pair(tmp_path):
    init_engine_from_url(f"sqlite:///{tmp_path / 'boatyard.db'}")
    create_tables()
    factory = get_session_factory()
    first, second = factory(), factory()
    yield first, second
    first.close()
    second.close()
    drop_tables()
    reset_engine()


@pytest.fixture
def wire(settings, quotes, clients):
    def _wire(session, **overrides):
        return build_governance_services(
            session,
            replace(settings, **overrides),
            quotes,
            clients,
            clock=DeterministicClock(),
        )

    return _wire


@pytest.fixture
def shared_project(session_pair, wire, client_id, actor, quotes):
    first, _ = session_pair
    result = wire(first).projects.create_project(
        NewProject(title="Eagle 28 electric", client_id=client_id), actor
    )
    assert result.is_success
    quotes.satisfy_all(result.value.id)
    return result.value


class TestRepositoryConflicts:
    def test_stale_identity_map_conflicts(self, session_pair, shared_project):
        first, second = session_pair
        stale = SqlProjectRepository(first).get_by_id(shared_project.id)

        writer = SqlProjectRepository(second)
        current = writer.get_by_id(shared_project.id)
        writer.save(replace(current, title="Written by B"))
        second.commit()

        with pytest.raises(OptimisticLockError):
            SqlProjectRepository(first).save(replace(stale, title="Written by A"))
        first.rollback()

        assert SqlProjectRepository(first).get_by_id(shared_project.id).title == "Written by B"


def write_before_save(monkeypatch, repository, competing_write, times=1):
    """Run ``competing_write`` just before each of the next ``times`` saves."""
    real_save = repository.save
    remaining = [times]

    def save(project, *args, **kwargs):
        if remaining[0] > 0:
            remaining[0] -= 1
            competing_write()
        return real_save(project, *args, **kwargs)

    monkeypatch.setattr(repository, "save", save)


class TestServiceRetry:
    def test_retry_succeeds_against_fresh_state(
        self, session_pair, wire, shared_project, actor, captured_logs, monkeypatch
    ):
        first, second = session_pair
        services_a = wire(first)
        services_b = wire(second)

        def add_item_in_b():
            added = services_b.configuration.add_item(shared_project.id, item(), actor)
            assert added.is_success

        write_before_save(monkeypatch, services_a.projects._repository, add_item_in_b)

        result = services_a.projects.transition_status(
            shared_project.id, ProjectStatus.QUOTED, actor
        )

        assert result.is_success
        assert result.value.version == 3
        assert len(result.value.configuration.items) == 1
        assert any(r["message"] == "optimistic_retry" for r in captured_logs())
        assert AuditorService(second).validate_chain()

    def test_retry_exhausted(self, session_pair, wire, shared_project, actor, monkeypatch):
        first, second = session_pair
        services_a = wire(first, optimistic_retry_attempts=1)
        services_b = wire(second)

        write_before_save(
            monkeypatch,
            services_a.projects._repository,
            lambda: services_b.configuration.add_item(shared_project.id, item(), actor),
        )

        result = services_a.projects.transition_status(
            shared_project.id, ProjectStatus.QUOTED, actor
        )
        assert result.error_code == "OPTIMISTIC_LOCK_CONFLICT"
        stored = services_a.projects.get_by_id(shared_project.id)
        assert stored.status is ProjectStatus.DRAFT
        assert stored.version == 2


class TestRetryHelper:
    def test_retries_then_returns(self, session):
        calls = []

        def operation():
            calls.append(1)
            if len(calls) < 3:
                raise OptimisticLockError("Project", "prj-1")
            return "done"

        assert run_with_optimistic_retry(session, operation, attempts=3) == "done"
        assert len(calls) == 3

    def test_exhausted_reraises(self, session):
        calls = []

        def operation():
            calls.append(1)
            raise OptimisticLockError("Project", "prj-1")

        with pytest.raises(OptimisticLockError):
            run_with_optimistic_retry(session, operation, attempts=2)
        assert len(calls) == 2

    def test_other_errors_are_not_retried(self, session):
        calls = []

        def operation():
            calls.append(1)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run_with_optimistic_retry(session, operation)
        assert len(calls) == 1

    def test_attempts_must_be_positive(self, session):
        with pytest.raises(ValueError):
            run_with_optimistic_retry(session, lambda: None, attempts=0)

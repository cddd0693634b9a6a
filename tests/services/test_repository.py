"""
SqlProjectRepository.

Verifies:
- Aggregates round-trip through the ORM, history included
- save() increments version by one and rejects stale versions
- History is append-only; pins are write-once
- update helpers and list/count queries
- session_scope commits on success and rolls back on error
"""

from dataclasses import replace
from uuid import uuid4

import pytest

from boatyard_kernel.db.engine import session_scope
from boatyard_kernel.domain.configuration import SnapshotTrigger, plan_freeze
from boatyard_kernel.domain.milestones import plan_library_pins
from boatyard_kernel.domain.status_machine import ProjectStatus
from boatyard_kernel.exceptions import (
    ImmutabilityViolationError,
    OptimisticLockError,
    ProjectNotFoundError,
)
from boatyard_kernel.services.repository import SqlProjectRepository
from tests.helpers import FIXED_TIME, item, make_project

ACTOR = uuid4()


@pytest.fixture
def repository(session):
    return SqlProjectRepository(session)


@pytest.fixture
def stored(repository):
    return repository.create(make_project(items=[item(), item(name="Mast", unit_price="750")]))


class TestRoundTrip:
    def test_create_and_load(self, repository, stored):
        loaded = repository.get_by_id(stored.id)
        assert loaded == stored
        assert loaded.version == 1
        assert [i.name for i in loaded.configuration.items] == ["Hull package", "Mast"]

    def test_missing(self, repository):
        assert repository.get_by_id(uuid4()) is None
        assert not repository.exists(uuid4())

    def test_snapshots_round_trip(self, repository, stored):
        plan = plan_freeze(stored, SnapshotTrigger.ORDER_CONFIRMED, ACTOR, FIXED_TIME)
        saved = repository.save(plan.project, actor_id=ACTOR)
        assert saved.configuration_snapshots == (plan.snapshot,)
        assert repository.get_by_id(stored.id).latest_snapshot == plan.snapshot


class TestVersioning:
    def test_save_increments_version(self, repository, stored):
        saved = repository.save(replace(stored, title="Renamed"))
        assert saved.version == 2
        assert saved.title == "Renamed"

    def test_stale_version_rejected(self, repository, stored):
        repository.save(replace(stored, title="First"))
        with pytest.raises(OptimisticLockError):
            repository.save(replace(stored, title="Second"))
        assert repository.get_by_id(stored.id).title == "First"

    def test_save_missing_project(self, repository):
        with pytest.raises(ProjectNotFoundError):
            repository.save(make_project())


class TestAppendOnly:
    def test_dropping_snapshots_rejected(self, repository, stored):
        plan = plan_freeze(stored, SnapshotTrigger.MANUAL, ACTOR, FIXED_TIME)
        saved = repository.save(plan.project)
        with pytest.raises(ImmutabilityViolationError):
            repository.save(replace(saved, configuration_snapshots=()))

    def test_replacing_pins_rejected(self, repository, stored):
        pinned = repository.save(
            plan_library_pins(stored, {}, [], "catalog-2025", ACTOR, FIXED_TIME)
        )
        with pytest.raises(ImmutabilityViolationError):
            repository.save(
                replace(pinned, library_pins=replace(pinned.library_pins, catalog_version_id="x"))
            )


class TestUpdateHelpers:
    def test_update_status(self, repository, stored):
        updated = repository.update_status(stored.id, ProjectStatus.QUOTED, expected_version=1)
        assert updated.status is ProjectStatus.QUOTED
        assert updated.version == 2

    def test_update_with_stale_expected_version(self, repository, stored):
        repository.update(stored.id, title="Renamed")
        with pytest.raises(OptimisticLockError):
            repository.update(stored.id, expected_version=1, title="Again")

    def test_update_missing(self, repository):
        assert repository.update_configuration(uuid4(), make_project().configuration) is None

    def test_list_active_and_count(self, repository, stored):
        other = repository.create(replace(make_project(), project_number="PRJ-2025-0002"))
        repository.save(replace(other, is_archived=True, archived_at=FIXED_TIME))

        assert [p.id for p in repository.list_active()] == [stored.id]
        assert repository.count_projects() == 2


class TestSessionScope:
    def test_commits_on_success(self, db_engine):
        with session_scope() as session:
            created = SqlProjectRepository(session).create(make_project())

        with session_scope() as session:
            assert SqlProjectRepository(session).exists(created.id)

    def test_rolls_back_on_error(self, db_engine):
        project = make_project()
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                SqlProjectRepository(session).create(project)
                raise RuntimeError("abandoned")

        with session_scope() as session:
            assert SqlProjectRepository(session).count_projects() == 0

"""
SqlProjectRepository -- SQLAlchemy persistence for the project aggregate.

Responsibility:
    Loads ``Project`` aggregates from ``ProjectModel`` rows and writes a
    planned aggregate back in a single flush: scalar columns, JSON
    documents, and any newly appended snapshots, amendments and BOM
    snapshots.

Architecture position:
    Kernel > Services -- the concrete ``ProjectRepository``.  Services
    depend on the protocol in ``domain/collaborators.py``; only the
    factory and tests name this class.

Invariants enforced:
    - Compare-and-swap on ``version``: a write carries the version the
      aggregate was loaded at, and the UPDATE matches only that version.
    - Append-only history: the stored snapshot, amendment and BOM
      sequences must be a prefix of the written ones.
    - Library pins are write-once.

Failure modes:
    - OptimisticLockError: the row was written by someone else since load.
    - ImmutabilityViolationError: history rewritten or pins replaced.
    - SnapshotTamperedError: a stored snapshot fails hash verification
      on load.

Non-goals:
    - Does NOT commit.  The calling service owns the transaction.
"""

from collections.abc import Sequence
from dataclasses import replace
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from boatyard_kernel.domain.configuration import ConfigurationState
from boatyard_kernel.domain.project import Project
from boatyard_kernel.domain.status_machine import ProjectStatus
from boatyard_kernel.exceptions import (
    ImmutabilityViolationError,
    OptimisticLockError,
    ProjectNotFoundError,
)
from boatyard_kernel.logging_config import get_logger
from boatyard_kernel.models.project import (
    BOMSnapshotModel,
    ConfigurationSnapshotModel,
    ProjectAmendmentModel,
    ProjectModel,
)

logger = get_logger("services.repository")


def _append_history(
    project_id: UUID,
    entity_type: str,
    stored: list,
    written: Sequence,
    to_model,
) -> None:
    stored_ids = [row.id for row in stored]
    written_ids = [item.id for item in written[: len(stored_ids)]]
    if stored_ids != written_ids:
        raise ImmutabilityViolationError(
            entity_type=entity_type,
            entity_id=str(project_id),
            reason="History is append-only; existing entries cannot be changed or removed",
        )
    for item in written[len(stored_ids):]:
        stored.append(to_model(item))


class SqlProjectRepository:
    """
    ``ProjectRepository`` backed by a SQLAlchemy session.

    Contract:
        Not-found reads return None.  Writes flush but never commit.

    Guarantees:
        - ``save`` increments ``version`` by exactly one per write,
          including writes that only append history.
    """

    def __init__(self, session: Session):
        self._session = session

    def _load_model(self, project_id: UUID) -> ProjectModel | None:
        return self._session.get(ProjectModel, project_id)

    def get_by_id(self, project_id: UUID) -> Project | None:
        model = self._load_model(project_id)
        if model is None:
            return None
        return model.to_dto()

    def exists(self, project_id: UUID) -> bool:
        return self._load_model(project_id) is not None

    def create(self, project: Project) -> Project:
        model = ProjectModel.from_dto(project)
        self._session.add(model)
        self._session.flush()
        logger.debug(
            "project_row_created",
            extra={"project_id": str(project.id), "project_number": project.project_number},
        )
        return model.to_dto()

    def save(self, project: Project, actor_id: UUID | None = None) -> Project:
        """
        Write ``project`` over the stored row.

        Raises:
            ProjectNotFoundError: No row for ``project.id``.
            OptimisticLockError: ``project.version`` is stale.
            ImmutabilityViolationError: History would be rewritten.
        """
        model = self._load_model(project.id)
        if model is None:
            raise ProjectNotFoundError(str(project.id))
        if model.version != project.version:
            logger.warning(
                "optimistic_lock_conflict",
                extra={
                    "project_id": str(project.id),
                    "expected_version": project.version,
                    "stored_version": model.version,
                },
            )
            raise OptimisticLockError("Project", str(project.id))

        pins = project.library_pins.to_payload() if project.library_pins else None
        if model.library_pins is not None and pins != model.library_pins:
            raise ImmutabilityViolationError(
                entity_type="Project",
                entity_id=str(project.id),
                reason="Library pins are write-once and cannot be replaced",
            )

        _append_history(
            project.id,
            "ConfigurationSnapshot",
            model.snapshots,
            project.configuration_snapshots,
            ConfigurationSnapshotModel.from_dto,
        )
        _append_history(
            project.id,
            "ProjectAmendment",
            model.amendments,
            project.amendments,
            ProjectAmendmentModel.from_dto,
        )
        _append_history(
            project.id,
            "BOMSnapshot",
            model.bom_snapshots,
            project.bom_snapshots,
            BOMSnapshotModel.from_dto,
        )

        model.title = project.title
        model.project_type = project.project_type.value
        model.status = project.status.value
        model.configuration = project.configuration.to_payload()
        model.library_pins = pins
        model.production_stages = [s.to_payload() for s in project.production_stages]
        model.is_archived = project.is_archived
        model.archived_at = project.archived_at
        model.archived_by_id = project.archived_by
        model.archive_reason = project.archive_reason
        if actor_id is not None:
            model.updated_by_id = actor_id
        model.version = project.version + 1

        try:
            self._session.flush()
        except StaleDataError as exc:
            logger.warning(
                "optimistic_lock_conflict",
                extra={"project_id": str(project.id), "expected_version": project.version},
            )
            raise OptimisticLockError("Project", str(project.id)) from exc

        return model.to_dto()

    def update(
        self,
        project_id: UUID,
        expected_version: int | None = None,
        **fields: Any,
    ) -> Project | None:
        """Replace the given aggregate fields; None when the project does not exist."""
        current = self.get_by_id(project_id)
        if current is None:
            return None
        if expected_version is not None and expected_version != current.version:
            raise OptimisticLockError("Project", str(project_id))
        return self.save(replace(current, **fields))

    def update_status(
        self,
        project_id: UUID,
        status: ProjectStatus,
        expected_version: int | None = None,
    ) -> Project | None:
        return self.update(project_id, expected_version, status=ProjectStatus(status))

    def update_configuration(
        self,
        project_id: UUID,
        configuration: ConfigurationState,
        expected_version: int | None = None,
    ) -> Project | None:
        return self.update(project_id, expected_version, configuration=configuration)

    def list_active(self) -> list[Project]:
        """Projects that are not archived, by project number."""
        models = self._session.execute(
            select(ProjectModel)
            .where(ProjectModel.is_archived.is_(False))
            .order_by(ProjectModel.project_number)
        ).scalars().all()
        return [model.to_dto() for model in models]

    def count_projects(self) -> int:
        return self._session.execute(select(func.count(ProjectModel.id))).scalar_one()

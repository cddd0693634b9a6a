"""
LibraryPinningService -- write-once pinning of library versions.

At order confirmation a project records which boat model, equipment
catalog, document templates and production procedures it was sold
against.  Pins are written once; a second attempt fails with
LIBRARY_PINS_ALREADY_SET rather than replacing them.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from boatyard_kernel.domain.actors import AuditContext
from boatyard_kernel.domain.collaborators import LibraryCatalog
from boatyard_kernel.domain.milestones import (
    default_catalog_version_id,
    plan_library_pins,
)
from boatyard_kernel.domain.project import LibraryPins, Project
from boatyard_kernel.domain.results import GovernanceResult
from boatyard_kernel.logging_config import get_logger
from boatyard_kernel.models.audit_entry import AuditAction
from boatyard_kernel.services.base import GovernanceService, OperationScope

logger = get_logger("services.library_pinning")

DEFAULT_CATALOG_PREFIX = "catalog"


@dataclass(frozen=True)
class StaticLibraryCatalog:
    """``LibraryCatalog`` over fixed approved versions."""

    template_versions: Mapping[str, str] = field(default_factory=dict)
    procedure_versions: tuple[str, ...] = ()
    catalog_version: str | None = None

    def approved_template_versions(self) -> Mapping[str, str]:
        return dict(self.template_versions)

    def approved_procedure_versions(self) -> Sequence[str]:
        return self.procedure_versions

    def current_catalog_version(self) -> str | None:
        return self.catalog_version


class LibraryPinningService(GovernanceService):
    def __init__(
        self,
        session: Session,
        catalog: LibraryCatalog,
        catalog_prefix: str = DEFAULT_CATALOG_PREFIX,
        **kwargs,
    ):
        super().__init__(session, **kwargs)
        self._catalog = catalog
        self._catalog_prefix = catalog_prefix

    def plan(self, project: Project, actor_id: UUID, at: datetime) -> Project:
        """
        Return ``project`` with pins taken from the catalog.

        Raises:
            LibraryPinsAlreadySetError: The project is already pinned.
        """
        catalog_version = self._catalog.current_catalog_version() or default_catalog_version_id(
            self._catalog_prefix, at
        )
        return plan_library_pins(
            project,
            self._catalog.approved_template_versions(),
            self._catalog.approved_procedure_versions(),
            catalog_version,
            actor_id,
            at,
        )

    def pin_versions(
        self,
        project_id: UUID,
        context: AuditContext,
    ) -> GovernanceResult[LibraryPins]:
        def body(scope: OperationScope) -> LibraryPins:
            project = self._load(project_id)
            pinned = self.plan(project, context.actor_id, self._clock.now())
            self._repository.save(pinned, actor_id=context.actor_id)
            pins = pinned.library_pins
            scope.audit(
                AuditAction.LIBRARY_VERSIONS_PINNED,
                "Project",
                project_id,
                "Library versions pinned",
                after=pins.to_payload(),
            )
            logger.info(
                "library_versions_pinned",
                extra={
                    "catalog_version_id": pins.catalog_version_id,
                    "template_count": len(pins.template_version_ids),
                    "procedure_count": len(pins.procedure_version_ids),
                },
            )
            return pins

        return self._run("pin_versions", project_id, context, body)

    def get_pins(self, project_id: UUID) -> LibraryPins | None:
        project = self._repository.get_by_id(project_id)
        return project.library_pins if project is not None else None

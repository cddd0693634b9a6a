"""
Collaborator interfaces for the governance services.

Pluggable interfaces the services depend on.  Concrete SQLAlchemy
implementations live in ``services/``; tests substitute in-memory fakes.
Quote state, the library catalogue and client records are owned by other
subsystems, so only their interfaces appear here.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from boatyard_kernel.domain.actors import AuditContext, User
from boatyard_kernel.domain.bom import BOMSnapshot
from boatyard_kernel.domain.configuration import ConfigurationState, SnapshotTrigger
from boatyard_kernel.domain.project import Project
from boatyard_kernel.domain.results import GovernanceResult
from boatyard_kernel.domain.status_machine import ProjectStatus


@runtime_checkable
class ProjectRepository(Protocol):
    """
    Persistence for the project aggregate.

    Not-found is ``None``, never an exception.  Writes raise
    ``OptimisticLockError`` when ``expected_version`` is stale and
    ``ImmutabilityViolationError`` when append-only history would change.
    """

    def get_by_id(self, project_id: UUID) -> Project | None: ...

    def create(self, project: Project) -> Project: ...

    def update(
        self,
        project_id: UUID,
        expected_version: int | None = None,
        **fields: Any,
    ) -> Project | None: ...

    def update_status(
        self,
        project_id: UUID,
        status: ProjectStatus,
        expected_version: int | None = None,
    ) -> Project | None: ...

    def update_configuration(
        self,
        project_id: UUID,
        configuration: ConfigurationState,
        expected_version: int | None = None,
    ) -> Project | None: ...

    def save(self, project: Project, actor_id: UUID | None = None) -> Project: ...

    def list_active(self) -> list[Project]: ...

    def count_projects(self) -> int: ...


@runtime_checkable
class QuoteStatusProvider(Protocol):
    """Quote and delivery facts consulted before a transition."""

    def has_draft_quote(self, project_id: UUID) -> bool: ...

    def has_sent_quote(self, project_id: UUID) -> bool: ...

    def has_accepted_quote(self, project_id: UUID) -> bool: ...

    def is_delivery_checklist_complete(self, project_id: UUID) -> bool: ...


@runtime_checkable
class BOMGenerator(Protocol):
    """Generates a new sequential BOM snapshot from the latest configuration snapshot."""

    def generate_bom(
        self,
        project_id: UUID,
        trigger: SnapshotTrigger,
        context: AuditContext,
    ) -> GovernanceResult[BOMSnapshot]: ...


@runtime_checkable
class LibraryCatalog(Protocol):
    """Currently approved library versions."""

    def approved_template_versions(self) -> Mapping[str, str]:
        """Document type -> approved current template version id."""
        ...

    def approved_procedure_versions(self) -> Sequence[str]: ...

    def current_catalog_version(self) -> str | None:
        """Catalog version id, or None to use the yearly default tag."""
        ...


@runtime_checkable
class AmendmentAuthority(Protocol):
    def can_approve_amendment(self, user: User) -> bool: ...

    def can_emergency_unlock(self, user: User) -> bool: ...


@runtime_checkable
class ClientDirectory(Protocol):
    def exists(self, client_id: UUID) -> bool: ...

    def name_of(self, client_id: UUID) -> str | None: ...

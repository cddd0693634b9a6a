"""
Project aggregate (``boatyard_kernel.domain.project``).

Responsibility
--------------
The immutable in-memory form of a project and its owned records:
configuration, configuration snapshots, amendments, BOM snapshots,
library pins and production stages.  Services plan changes by building a
new ``Project`` with ``dataclasses.replace`` and hand it to the repository
in one write.

Invariants enforced
-------------------
* Snapshot, amendment and BOM sequences are append-only tuples; a planned
  aggregate only ever extends them.
* ``version`` is the optimistic concurrency counter read at load time; the
  repository rejects a write whose ``version`` is stale.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from boatyard_kernel.domain import status_machine
from boatyard_kernel.domain.amendment import ProjectAmendment
from boatyard_kernel.domain.bom import BOMSnapshot
from boatyard_kernel.domain.configuration import (
    ConfigurationSnapshot,
    ConfigurationState,
)
from boatyard_kernel.domain.status_machine import ProjectStatus, StatusCapability


class ProjectType(str, Enum):
    NEW_BUILD = "NEW_BUILD"
    REFIT = "REFIT"
    MAINTENANCE = "MAINTENANCE"


# =========================================================================
# Library pins
# =========================================================================


@dataclass(frozen=True)
class LibraryPins:
    """Library versions frozen onto a project at order confirmation. Write-once."""

    boat_model_version_id: str
    catalog_version_id: str
    template_version_ids: Mapping[str, str]
    procedure_version_ids: tuple[str, ...]
    pinned_at: datetime
    pinned_by: UUID

    def to_payload(self) -> dict[str, Any]:
        return {
            "boat_model_version_id": self.boat_model_version_id,
            "catalog_version_id": self.catalog_version_id,
            "template_version_ids": dict(sorted(self.template_version_ids.items())),
            "procedure_version_ids": list(self.procedure_version_ids),
            "pinned_at": self.pinned_at.isoformat(),
            "pinned_by": str(self.pinned_by),
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> LibraryPins:
        return cls(
            boat_model_version_id=data["boat_model_version_id"],
            catalog_version_id=data["catalog_version_id"],
            template_version_ids=dict(data.get("template_version_ids", {})),
            procedure_version_ids=tuple(data.get("procedure_version_ids", ())),
            pinned_at=datetime.fromisoformat(data["pinned_at"]),
            pinned_by=UUID(str(data["pinned_by"])),
        )


# =========================================================================
# Production stages
# =========================================================================


class ProductionStageStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"


@dataclass(frozen=True)
class StageDefinition:
    """Template for one production stage."""

    code: str
    name: str
    order: int
    estimated_days: int


DEFAULT_STAGE_DEFINITIONS: tuple[StageDefinition, ...] = (
    StageDefinition("PREP", "Preparation", 1, 5),
    StageDefinition("HULL", "Hull Construction", 2, 15),
    StageDefinition("PROPULSION", "Propulsion Installation", 3, 7),
    StageDefinition("ELECTRICAL", "Electrical Systems", 4, 10),
    StageDefinition("INTERIOR", "Interior Fit-out", 5, 12),
    StageDefinition("EXTERIOR", "Exterior & Finishing", 6, 8),
    StageDefinition("SYSTEMS", "Navigation & Safety Systems", 7, 5),
    StageDefinition("TESTING", "Testing & Quality Assurance", 8, 5),
    StageDefinition("FINAL", "Final Inspection & Handover Prep", 9, 3),
)


@dataclass(frozen=True)
class ProductionStage:
    id: UUID
    project_id: UUID
    code: str
    name: str
    order: int
    estimated_days: int
    created_at: datetime
    status: ProductionStageStatus = ProductionStageStatus.NOT_STARTED
    progress_percent: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "project_id": str(self.project_id),
            "code": self.code,
            "name": self.name,
            "order": self.order,
            "estimated_days": self.estimated_days,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "progress_percent": self.progress_percent,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> ProductionStage:
        return cls(
            id=UUID(str(data["id"])),
            project_id=UUID(str(data["project_id"])),
            code=data["code"],
            name=data["name"],
            order=int(data["order"]),
            estimated_days=int(data["estimated_days"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            status=ProductionStageStatus(data.get("status", "NOT_STARTED")),
            progress_percent=int(data.get("progress_percent", 0)),
        )


# =========================================================================
# Aggregate root
# =========================================================================


@dataclass(frozen=True)
class Project:
    """
    Project aggregate root.

    The only mutable thing about a project is which ``Project`` value the
    repository currently stores for its id.
    """

    id: UUID
    project_number: str
    title: str
    client_id: UUID
    created_by: UUID
    created_at: datetime
    project_type: ProjectType = ProjectType.NEW_BUILD
    status: ProjectStatus = ProjectStatus.DRAFT
    configuration: ConfigurationState = field(default_factory=ConfigurationState)
    configuration_snapshots: tuple[ConfigurationSnapshot, ...] = ()
    amendments: tuple[ProjectAmendment, ...] = ()
    bom_snapshots: tuple[BOMSnapshot, ...] = ()
    library_pins: LibraryPins | None = None
    production_stages: tuple[ProductionStage, ...] = ()
    is_archived: bool = False
    archived_at: datetime | None = None
    archived_by: UUID | None = None
    archive_reason: str | None = None
    version: int = 1

    @property
    def latest_snapshot(self) -> ConfigurationSnapshot | None:
        if not self.configuration_snapshots:
            return None
        return self.configuration_snapshots[-1]

    @property
    def capabilities(self) -> frozenset[StatusCapability]:
        return status_machine.capabilities_of(self.status)


@dataclass(frozen=True)
class NewProject:
    """Input for creating a project."""

    title: str
    client_id: UUID
    project_type: ProjectType = ProjectType.NEW_BUILD
    boat_model_version_id: str | None = None
    propulsion_type: str | None = None
    vat_rate: Decimal | None = None
    vat_country: str | None = None
    project_number: str | None = None

"""
Module: boatyard_kernel.models.project
Responsibility: ORM persistence for the project aggregate: the project row
    plus its append-only configuration snapshots, amendments and BOM
    snapshots.
Architecture position: Kernel > Models.  May import from db/ and, lazily
    inside conversion methods, from domain/.

Invariants enforced:
    - Optimistic concurrency: ``version`` is the mapper's version counter.
      Every UPDATE carries ``WHERE version = <loaded version>``; a stale
      write raises StaleDataError, which the repository translates.
    - Snapshot, amendment and BOM rows are append-only (ORM listeners in
      db/immutability.py).
    - Snapshot numbers are unique per project (UNIQUE constraint).
    - Snapshot content hashes are verified whenever a row is converted
      back to its domain value.

Failure modes:
    - IntegrityError on a duplicate snapshot or amendment number.
    - SnapshotTamperedError when a stored snapshot no longer matches its
      content hash.
    - ImmutabilityViolationError on UPDATE/DELETE of history rows.

Audit relevance:
    Snapshots and amendments are the evidence of what the customer
    ordered and how it changed afterwards.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boatyard_kernel.db.base import Base, TrackedBase, UUIDString
from boatyard_kernel.exceptions import SnapshotTamperedError

if TYPE_CHECKING:
    from boatyard_kernel.domain.amendment import ProjectAmendment
    from boatyard_kernel.domain.bom import BOMSnapshot
    from boatyard_kernel.domain.configuration import ConfigurationSnapshot
    from boatyard_kernel.domain.project import Project


class ProjectModel(TrackedBase):
    """
    Persistent project aggregate root.

    Contract:
        The configuration, library pins and production stages are stored
        as JSON documents; history lives in child tables.  Every write to
        the aggregate, including one that only appends history, bumps
        ``version``.

    Guarantees:
        - project_number is unique.
        - library_pins is write-once (db/immutability.py).
    """

    __tablename__ = "projects"

    __table_args__ = (
        Index("idx_project_status", "status"),
        Index("idx_project_client", "client_id"),
    )

    project_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    project_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)

    configuration: Mapped[dict] = mapped_column(JSON, nullable=False)
    library_pins: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    production_stages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    archived_at: Mapped[datetime | None] = mapped_column(nullable=True)
    archived_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    archive_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    snapshots: Mapped[list[ConfigurationSnapshotModel]] = relationship(
        "ConfigurationSnapshotModel",
        order_by="ConfigurationSnapshotModel.snapshot_number",
        lazy="selectin",
    )
    amendments: Mapped[list[ProjectAmendmentModel]] = relationship(
        "ProjectAmendmentModel",
        order_by="ProjectAmendmentModel.amendment_number",
        lazy="selectin",
    )
    bom_snapshots: Mapped[list[BOMSnapshotModel]] = relationship(
        "BOMSnapshotModel",
        order_by="BOMSnapshotModel.snapshot_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Project {self.project_number} status={self.status} v{self.version}>"

    def to_dto(self) -> Project:
        """Convert ORM model to frozen domain aggregate."""
        from boatyard_kernel.domain.configuration import ConfigurationState
        from boatyard_kernel.domain.project import (
            LibraryPins,
            ProductionStage,
            Project,
            ProjectType,
        )
        from boatyard_kernel.domain.status_machine import ProjectStatus

        return Project(
            id=self.id,
            project_number=self.project_number,
            title=self.title,
            client_id=self.client_id,
            created_by=self.created_by_id,
            created_at=self.created_at,
            project_type=ProjectType(self.project_type),
            status=ProjectStatus(self.status),
            configuration=ConfigurationState.from_payload(self.configuration),
            configuration_snapshots=tuple(s.to_dto() for s in self.snapshots),
            amendments=tuple(a.to_dto() for a in self.amendments),
            bom_snapshots=tuple(b.to_dto() for b in self.bom_snapshots),
            library_pins=(
                LibraryPins.from_payload(self.library_pins)
                if self.library_pins is not None
                else None
            ),
            production_stages=tuple(
                ProductionStage.from_payload(s) for s in self.production_stages or ()
            ),
            is_archived=self.is_archived,
            archived_at=self.archived_at,
            archived_by=self.archived_by_id,
            archive_reason=self.archive_reason,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Project) -> ProjectModel:
        """Create ORM model (with history rows) from a domain aggregate."""
        model = cls(
            id=dto.id,
            project_number=dto.project_number,
            title=dto.title,
            client_id=dto.client_id,
            project_type=dto.project_type.value,
            status=dto.status.value,
            configuration=dto.configuration.to_payload(),
            library_pins=dto.library_pins.to_payload() if dto.library_pins else None,
            production_stages=[s.to_payload() for s in dto.production_stages],
            is_archived=dto.is_archived,
            archived_at=dto.archived_at,
            archived_by_id=dto.archived_by,
            archive_reason=dto.archive_reason,
            version=dto.version,
            created_at=dto.created_at,
            created_by_id=dto.created_by,
        )
        model.snapshots = [ConfigurationSnapshotModel.from_dto(s) for s in dto.configuration_snapshots]
        model.amendments = [ProjectAmendmentModel.from_dto(a) for a in dto.amendments]
        model.bom_snapshots = [BOMSnapshotModel.from_dto(b) for b in dto.bom_snapshots]
        return model


class ConfigurationSnapshotModel(Base):
    """
    Persistent configuration snapshot. Append-only.

    Guarantees:
        - UNIQUE(project_id, snapshot_number).
        - ``to_dto`` recomputes the content hash and refuses tampered rows.
    """

    __tablename__ = "configuration_snapshots"

    __table_args__ = (
        UniqueConstraint("project_id", "snapshot_number", name="uq_snapshot_number"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    snapshot_number: Mapped[int] = mapped_column(nullable=False)
    trigger: Mapped[str] = mapped_column(String(30), nullable=False)
    trigger_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return f"<ConfigurationSnapshot #{self.snapshot_number} {self.trigger}>"

    def to_dto(self) -> ConfigurationSnapshot:
        from boatyard_kernel.domain.configuration import (
            ConfigurationSnapshot,
            ConfigurationState,
            SnapshotTrigger,
            compute_content_hash,
        )

        data = ConfigurationState.from_payload(self.data)
        actual = compute_content_hash(data)
        if actual != self.content_hash:
            raise SnapshotTamperedError(str(self.id), self.content_hash, actual)

        return ConfigurationSnapshot(
            id=self.id,
            project_id=self.project_id,
            snapshot_number=self.snapshot_number,
            data=data,
            trigger=SnapshotTrigger(self.trigger),
            trigger_reason=self.trigger_reason,
            created_at=self.created_at,
            created_by=self.created_by_id,
            content_hash=self.content_hash,
        )

    @classmethod
    def from_dto(cls, dto: ConfigurationSnapshot) -> ConfigurationSnapshotModel:
        return cls(
            id=dto.id,
            project_id=dto.project_id,
            snapshot_number=dto.snapshot_number,
            trigger=dto.trigger.value,
            trigger_reason=dto.trigger_reason,
            data=dto.data.to_payload(),
            content_hash=dto.content_hash,
            created_at=dto.created_at,
            created_by_id=dto.created_by,
        )


class ProjectAmendmentModel(Base):
    """Persistent amendment record. Append-only."""

    __tablename__ = "project_amendments"

    __table_args__ = (
        UniqueConstraint("project_id", "amendment_number", name="uq_amendment_number"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    amendment_number: Mapped[int] = mapped_column(nullable=False)
    amendment_type: Mapped[str] = mapped_column(String(30), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    before_snapshot_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("configuration_snapshots.id"), nullable=False
    )
    after_snapshot_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("configuration_snapshots.id"), nullable=False
    )
    price_impact_excl_vat: Mapped[Decimal] = mapped_column(nullable=False)
    affected_items: Mapped[list] = mapped_column(JSON, nullable=False)
    requested_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(nullable=False)
    approved_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    approved_at: Mapped[datetime] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<ProjectAmendment #{self.amendment_number} {self.amendment_type}>"

    def to_dto(self) -> ProjectAmendment:
        from boatyard_kernel.domain.amendment import AmendmentType, ProjectAmendment

        return ProjectAmendment(
            id=self.id,
            project_id=self.project_id,
            amendment_number=self.amendment_number,
            amendment_type=AmendmentType(self.amendment_type),
            reason=self.reason,
            before_snapshot_id=self.before_snapshot_id,
            after_snapshot_id=self.after_snapshot_id,
            price_impact_excl_vat=self.price_impact_excl_vat,
            affected_items=tuple(self.affected_items),
            requested_by=self.requested_by_id,
            requested_at=self.requested_at,
            approved_by=self.approved_by_id,
            approved_at=self.approved_at,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: ProjectAmendment) -> ProjectAmendmentModel:
        return cls(
            id=dto.id,
            project_id=dto.project_id,
            amendment_number=dto.amendment_number,
            amendment_type=dto.amendment_type.value,
            reason=dto.reason,
            before_snapshot_id=dto.before_snapshot_id,
            after_snapshot_id=dto.after_snapshot_id,
            price_impact_excl_vat=dto.price_impact_excl_vat,
            affected_items=list(dto.affected_items),
            requested_by_id=dto.requested_by,
            requested_at=dto.requested_at,
            approved_by_id=dto.approved_by,
            approved_at=dto.approved_at,
            created_at=dto.created_at,
        )


class BOMSnapshotModel(Base):
    """Persistent bill of materials snapshot. Append-only."""

    __tablename__ = "bom_snapshots"

    __table_args__ = (
        UniqueConstraint("project_id", "snapshot_number", name="uq_bom_snapshot_number"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    snapshot_number: Mapped[int] = mapped_column(nullable=False)
    configuration_snapshot_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("configuration_snapshots.id"), nullable=False
    )
    items: Mapped[list] = mapped_column(JSON, nullable=False)
    total_parts: Mapped[Decimal] = mapped_column(nullable=False)
    total_cost_excl_vat: Mapped[Decimal] = mapped_column(nullable=False)
    estimated_cost_count: Mapped[int] = mapped_column(nullable=False)
    estimated_cost_total: Mapped[Decimal] = mapped_column(nullable=False)
    actual_cost_total: Mapped[Decimal] = mapped_column(nullable=False)
    cost_estimation_ratio: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    trigger: Mapped[str] = mapped_column(String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return f"<BOMSnapshot #{self.snapshot_number} {self.status}>"

    def to_dto(self) -> BOMSnapshot:
        from boatyard_kernel.domain.bom import BOMItem, BOMSnapshot, BOMStatus
        from boatyard_kernel.domain.configuration import SnapshotTrigger

        return BOMSnapshot(
            id=self.id,
            project_id=self.project_id,
            snapshot_number=self.snapshot_number,
            configuration_snapshot_id=self.configuration_snapshot_id,
            items=tuple(BOMItem.from_payload(i) for i in self.items),
            total_parts=self.total_parts,
            total_cost_excl_vat=self.total_cost_excl_vat,
            estimated_cost_count=self.estimated_cost_count,
            estimated_cost_total=self.estimated_cost_total,
            actual_cost_total=self.actual_cost_total,
            cost_estimation_ratio=self.cost_estimation_ratio,
            status=BOMStatus(self.status),
            trigger=SnapshotTrigger(self.trigger),
            created_at=self.created_at,
            created_by=self.created_by_id,
        )

    @classmethod
    def from_dto(cls, dto: BOMSnapshot) -> BOMSnapshotModel:
        return cls(
            id=dto.id,
            project_id=dto.project_id,
            snapshot_number=dto.snapshot_number,
            configuration_snapshot_id=dto.configuration_snapshot_id,
            items=[i.to_payload() for i in dto.items],
            total_parts=dto.total_parts,
            total_cost_excl_vat=dto.total_cost_excl_vat,
            estimated_cost_count=dto.estimated_cost_count,
            estimated_cost_total=dto.estimated_cost_total,
            actual_cost_total=dto.actual_cost_total,
            cost_estimation_ratio=dto.cost_estimation_ratio,
            status=dto.status.value,
            trigger=dto.trigger.value,
            created_at=dto.created_at,
            created_by_id=dto.created_by,
        )
